from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class ModifierIn(BaseModel):
    name: str
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    is_required: bool = False

class ModifierGroupIn(BaseModel):
    name: str
    min_selection: int = Field(default=0, ge=0)
    max_selection: int = 1
    modifiers: list[ModifierIn] = Field(default_factory=list)

class MenuCategoryIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    display_order: int = 0

class MenuCategoryOut(MenuCategoryIn):
    model_config = ConfigDict(from_attributes=True)
    id: str
    is_active: bool

class MenuItemIn(BaseModel):
    category_id: str
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    image: Optional[str] = None
    sku: Optional[str] = None
    is_active: bool = True
    modifier_groups: list[ModifierGroupIn] = Field(default_factory=list)

class MenuItemUpdate(BaseModel):
    category_id: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    image: Optional[str] = None
    sku: Optional[str] = None
    is_active: Optional[bool] = None
    modifier_groups: Optional[list[ModifierGroupIn]] = None

class MenuItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    outlet_id: str
    category_id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    image: Optional[str] = None
    sku: Optional[str] = None
    is_active: bool
    modifier_groups: list[ModifierGroupIn] = []
    created_at: datetime
    updated_at: datetime
