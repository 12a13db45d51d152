from collections.abc import Generator

from fastapi import Header, Request
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services.events import Actor, EventBus, event_bus


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_event_bus(request: Request) -> EventBus:
    return getattr(request.app.state, "event_bus", event_bus)


def get_actor(
    actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
    tenant_id: str | None = Header(default=None, alias="X-Tenant-Id"),
) -> Actor | None:
    if not actor_id:
        return None
    return Actor(user_id=actor_id, tenant_id=tenant_id or None)
