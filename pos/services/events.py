"""
Kitchen-facing lifecycle events.

The services hand events to an emitter after their commit; delivery is
best-effort and a failing emitter never undoes or fails the order change.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx
from fastapi.encoders import jsonable_encoder

from pos.config import settings

logger = logging.getLogger(__name__)

ORDER_CREATED = "order.created"
ORDER_UPDATED = "order.updated"


@dataclass(frozen=True)
class Event:
    name: str
    outlet_id: str
    payload: dict
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def room(self) -> str:
        return f"kitchen-{self.outlet_id}"

    def as_dict(self) -> dict:
        return jsonable_encoder({
            "event": self.name,
            "room": self.room,
            "outlet_id": self.outlet_id,
            "at": self.at,
            "data": self.payload,
        })


class Emitter:
    def emit(self, event: Event) -> None:
        raise NotImplementedError


class NullEmitter(Emitter):
    def emit(self, event: Event) -> None:
        logger.debug("no kitchen webhook configured, dropping %s for %s", event.name, event.room)


class WebhookEmitter(Emitter):
    """POSTs each event to the kitchen display webhook."""

    def __init__(self, url: str, timeout: float = 3.0):
        self.url = url
        self.timeout = timeout

    def emit(self, event: Event) -> None:
        with httpx.Client(timeout=self.timeout) as client:
            r = client.post(self.url, json=event.as_dict())
            r.raise_for_status()


class BackgroundEmitter(Emitter):
    """Defers delivery to FastAPI's BackgroundTasks so the request never waits on it."""

    def __init__(self, tasks, target: Emitter):
        self.tasks = tasks
        self.target = target

    def emit(self, event: Event) -> None:
        self.tasks.add_task(deliver, self.target, event)


def deliver(emitter: Emitter, event: Event) -> bool:
    try:
        emitter.emit(event)
        return True
    except Exception:
        # kitchen display might be offline, the order stands regardless
        logger.warning("failed to deliver %s to %s", event.name, event.room, exc_info=True)
        return False


def publish(emitter: Emitter | None, event: Event) -> None:
    if emitter is None:
        return
    deliver(emitter, event)


def default_emitter() -> Emitter:
    if settings.KITCHEN_WEBHOOK_URL:
        return WebhookEmitter(settings.KITCHEN_WEBHOOK_URL, timeout=settings.WEBHOOK_TIMEOUT)
    return NullEmitter()
