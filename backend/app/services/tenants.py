from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.center import Center

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantClock:
    tenant_id: str
    timezone: str

    def local_now(self, now: datetime | None = None) -> datetime:
        """Naive wall-clock time in the tenant's zone.

        Class start/end dates are stored as center-local wall clock, so they
        compare directly against this value.
        """
        current = now or datetime.now(timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        return current.astimezone(ZoneInfo(self.timezone)).replace(tzinfo=None)

    def to_local(self, value: datetime) -> datetime:
        """Naive values are already center-local; aware ones are converted."""
        if value.tzinfo is None:
            return value
        return value.astimezone(ZoneInfo(self.timezone)).replace(tzinfo=None)


def resolve_timezone(name: str | None) -> str:
    fallback = get_settings().default_timezone
    candidate = (name or "").strip()
    if not candidate:
        return fallback
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to %s", candidate, fallback)
        return fallback
    return candidate


class TenantDirectory:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_active_tenants(self) -> list[TenantClock]:
        rows = self.db.execute(
            select(Center.id, Center.timezone).where(Center.is_active.is_(True)).order_by(Center.id)
        ).all()
        return [TenantClock(tenant_id=center_id, timezone=resolve_timezone(tz)) for center_id, tz in rows]

    def clock_for(self, tenant_id: str) -> TenantClock:
        tz = self.db.execute(select(Center.timezone).where(Center.id == tenant_id)).scalar_one_or_none()
        return TenantClock(tenant_id=tenant_id, timezone=resolve_timezone(tz))
