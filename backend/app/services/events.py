from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)

CLASS_STATUS_CHANGED = "class.status_changed"
SCHEDULE_CONFLICT_ADVISORY = "schedule.conflict_advisory"

SYSTEM_ACTOR_ID = "system"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Actor:
    user_id: str
    tenant_id: str | None = None

    @property
    def is_system(self) -> bool:
        return self.user_id == SYSTEM_ACTOR_ID


def system_actor(tenant_id: str | None = None) -> Actor:
    return Actor(user_id=SYSTEM_ACTOR_ID, tenant_id=tenant_id)


@dataclass(frozen=True)
class ClassStatusChangedEvent:
    class_id: str
    old_status: str
    new_status: str
    reason: str | None
    actor: Actor
    tenant_id: str
    occurred_at: datetime = field(default_factory=_utc_now)

    name = CLASS_STATUS_CHANGED

    def to_payload(self) -> dict:
        return {
            "event": self.name,
            "class_id": self.class_id,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "reason": self.reason,
            "actor_id": self.actor.user_id,
            "tenant_id": self.tenant_id,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class ScheduleConflictAdvisoryEvent:
    group_id: str | None
    class_id: str
    conflicts: list[dict]
    actor: Actor
    tenant_id: str
    occurred_at: datetime = field(default_factory=_utc_now)

    name = SCHEDULE_CONFLICT_ADVISORY

    def to_payload(self) -> dict:
        return {
            "event": self.name,
            "group_id": self.group_id,
            "class_id": self.class_id,
            "conflicts": self.conflicts,
            "actor_id": self.actor.user_id,
            "tenant_id": self.tenant_id,
            "occurred_at": self.occurred_at.isoformat(),
        }


EventHandler = Callable[[Any], None]


class EventBus:
    """Outbound channel for domain events published after a commit.

    Handlers run synchronously in subscription order; a failing handler
    propagates to the publisher.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_name)
            if not handlers:
                return
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(event_name, None)

    def publish(self, event: Any) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event.name, ()))
        if not handlers:
            logger.debug("No subscribers for %s", event.name)
            return
        for handler in handlers:
            handler(event)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


event_bus = EventBus()


def publish_committed(bus: EventBus, event: Any) -> bool:
    """Publish an event for an already committed change.

    Subscriber failures are logged and reported through the return value.
    """
    try:
        bus.publish(event)
    except Exception:
        logger.exception("Failed to publish %s", event.name)
        return False
    return True
