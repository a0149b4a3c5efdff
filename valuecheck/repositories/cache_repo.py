"""
Cache repository.

Idempotency key: cache key (e.g. "stock:AAPL:annual", "fx:EUR:USD", "trending")

Freshness tiers (age = now - updated_at):
  fresh    age <= 24h        served directly
  stale    24h < age <= 7d   served only when the caller allows it (fallback)
  expired  age > 7d          treated as absent

Every write resets updated_at to now and pushes expires_at to now + 7d,
regardless of the tier the previous entry was in.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from sqlalchemy import delete
from sqlalchemy.orm import Session

from valuecheck.models import CacheEntry

logger = logging.getLogger(__name__)

FRESH_TTL: timedelta = timedelta(hours=24)
STALE_TTL: timedelta = timedelta(days=7)

CacheState = Literal["fresh", "stale", "expired"]


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite DateTime columns drop tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def cache_state(
    updated_at: datetime,
    now: datetime,
    fresh_ttl: timedelta = FRESH_TTL,
    stale_ttl: timedelta = STALE_TTL,
) -> CacheState:
    age = now - updated_at
    if age <= fresh_ttl:
        return "fresh"
    if age <= stale_ttl:
        return "stale"
    return "expired"


def get_cache_entry(
    db: Session,
    key: str,
    *,
    now: datetime | None = None,
) -> tuple[Any, CacheState] | None:
    """Return (payload, state) for a non-expired entry, or None."""
    now = now or utcnow()
    row = db.get(CacheEntry, key)
    if row is None or row.updated_at is None:
        return None
    state = cache_state(row.updated_at, now)
    if state == "expired":
        logger.debug("[Cache] %s expired (updated_at=%s)", key, row.updated_at)
        return None
    return row.payload, state


def get_cache(
    db: Session,
    key: str,
    *,
    allow_stale: bool = False,
    now: datetime | None = None,
) -> Any | None:
    """Fresh payload, or stale payload when allow_stale=True; None otherwise."""
    found = get_cache_entry(db, key, now=now)
    if found is None:
        return None
    payload, state = found
    if state == "fresh" or allow_stale:
        return payload
    return None


def put_cache(
    db: Session,
    key: str,
    payload: Any,
    *,
    now: datetime | None = None,
) -> None:
    now = now or utcnow()
    row = db.get(CacheEntry, key)
    if row is None:
        row = CacheEntry(key=key)
        db.add(row)
    row.payload = payload
    row.updated_at = now
    row.expires_at = now + STALE_TTL
    try:
        db.commit()
        logger.debug("[Cache] wrote %s", key)
    except Exception as exc:
        db.rollback()
        raise RuntimeError(f"Cache write failed for {key}: {exc}") from exc


def purge_expired(db: Session, *, now: datetime | None = None) -> int:
    """Delete entries past the stale window. Returns the number removed."""
    now = now or utcnow()
    result = db.execute(delete(CacheEntry).where(CacheEntry.expires_at < now))
    db.commit()
    removed = result.rowcount or 0
    logger.info("[Cache] purged %d expired entries", removed)
    return removed
