from dataclasses import dataclass

from pos.rbac import Perm, Role, permissions_for


@dataclass(frozen=True)
class Principal:
    """Verified actor for one request. Built by pos.deps, passed explicitly to services."""
    id: str
    role: Role
    outlet_id: str
    is_active: bool = True

    @property
    def permissions(self) -> frozenset[Perm]:
        return permissions_for(self.role)
