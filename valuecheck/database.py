import os
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Absolute path anchored to this file so it works regardless of CWD
_DB_PATH = Path(__file__).resolve().parent / "valuecheck.db"
DATABASE_URL = os.environ.get("VALUECHECK_DATABASE_URL") or f"sqlite:///{_DB_PATH}"

engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
