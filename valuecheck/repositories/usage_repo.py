"""
Daily usage repository (new-ticker quota).

One counter per UTC calendar day plus one (day, ticker) row per ticker charged
that day.

charge_ticker() is an atomic check-and-increment:
  1. insert (day, ticker); the unique constraint rejects a ticker that was
     already charged today -> allowed, nothing counted
  2. UPDATE daily_usage SET count = count + 1 WHERE day = :day AND count < :cap
     rowcount == 1 -> allowed; rowcount == 0 -> cap reached, roll back step 1
Both steps share one transaction, so two requests racing on the same new
ticker cannot count it twice and a denied ticker leaves no trace.
"""

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from valuecheck.models import DailyUsage, DailyUsageTicker
from valuecheck.repositories.cache_repo import utcnow

logger = logging.getLogger(__name__)


def day_key(now: datetime | None = None) -> str:
    return (now or utcnow()).date().isoformat()


def _ensure_day_row(db: Session, day: str) -> None:
    if db.get(DailyUsage, day) is not None:
        return
    db.add(DailyUsage(day=day, count=0))
    try:
        db.commit()
    except IntegrityError:
        # Another request created it first
        db.rollback()


def charge_ticker(
    db: Session,
    ticker: str,
    cap: int,
    *,
    now: datetime | None = None,
) -> bool:
    """
    Return True if `ticker` may be fetched live today, charging it against the
    cap if it is new. Re-serving an already-charged ticker is always allowed.
    """
    day = day_key(now)
    _ensure_day_row(db, day)

    db.add(DailyUsageTicker(day=day, ticker=ticker))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.debug("[Quota] %s already charged on %s", ticker, day)
        return True

    try:
        result = db.execute(
            update(DailyUsage)
            .where(DailyUsage.day == day, DailyUsage.count < cap)
            .values(count=DailyUsage.count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            logger.warning("[Quota] daily cap %d reached on %s, denying %s", cap, day, ticker)
            return False
        db.commit()
    except Exception as exc:
        db.rollback()
        raise RuntimeError(f"Quota update failed for {ticker}: {exc}") from exc

    logger.info("[Quota] charged %s on %s", ticker, day)
    return True


def get_usage(db: Session, day: str | date) -> dict[str, Any]:
    """Return {"count": N, "tickers": set[str]} for a day (zeros if untouched)."""
    day = day.isoformat() if isinstance(day, date) else day
    row = db.get(DailyUsage, day)
    tickers = db.scalars(
        select(DailyUsageTicker.ticker).where(DailyUsageTicker.day == day)
    ).all()
    return {"count": row.count if row else 0, "tickers": set(tickers)}


def purge_usage_before(db: Session, day: str) -> int:
    """Delete usage records for days strictly before `day` (ISO date)."""
    db.execute(delete(DailyUsageTicker).where(DailyUsageTicker.day < day))
    result = db.execute(delete(DailyUsage).where(DailyUsage.day < day))
    db.commit()
    removed = result.rowcount or 0
    logger.info("[Quota] purged %d usage day(s) before %s", removed, day)
    return removed
