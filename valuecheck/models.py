from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint

from valuecheck.database import Base


class CacheEntry(Base):
    __tablename__ = "cache_entries"

    key = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)


class DailyUsage(Base):
    __tablename__ = "daily_usage"

    day = Column(String, primary_key=True)       # YYYY-MM-DD (UTC)
    count = Column(Integer, nullable=False, default=0)


class DailyUsageTicker(Base):
    __tablename__ = "daily_usage_tickers"
    __table_args__ = (UniqueConstraint("day", "ticker", name="uq_usage_day_ticker"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    day = Column(String, nullable=False, index=True)
    ticker = Column(String, nullable=False)
