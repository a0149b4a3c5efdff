"""
Daily maintenance job.

Run from the project root:
    python3 -m valuecheck.scripts.purge_cache [--refresh-trending]

  - deletes cache entries past the 7-day stale window
  - deletes quota usage for days before yesterday (UTC)
  - with --refresh-trending, rewrites the cached trending payload
"""

import argparse
import logging
from datetime import datetime, timedelta

from dotenv import load_dotenv

load_dotenv()

from valuecheck.config import load_settings
from valuecheck.database import Base, SessionLocal, engine
from valuecheck.repositories.cache_repo import purge_expired, utcnow
from valuecheck.repositories.usage_repo import day_key, purge_usage_before
from valuecheck.services.trending import get_trending

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def run_purge(refresh_trending: bool = False, now: datetime | None = None) -> dict[str, int]:
    now = now or utcnow()
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as session:
        cache_removed = purge_expired(session, now=now)
        usage_removed = purge_usage_before(session, day_key(now - timedelta(days=1)))
        if refresh_trending:
            get_trending(session, load_settings().trending_tickers, now=now, refresh=True)

    logger.info("cache entries removed=%s usage days removed=%s", cache_removed, usage_removed)
    return {"cache_entries": cache_removed, "usage_days": usage_removed}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Purge expired ValueCheck cache and quota rows.")
    parser.add_argument("--refresh-trending", action="store_true", help="rewrite the trending payload")
    args = parser.parse_args(argv)
    run_purge(refresh_trending=args.refresh_trending)


if __name__ == "__main__":
    main()
