import os
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Explicitly load .env from project root (parent of dynqr/)
ENV_PATH = Path(__file__).parent.parent / ".env"
load_dotenv(ENV_PATH)
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
DATABASE_URL = os.getenv("DATABASE_URL")

# Prod must point at a real store; a missing URL is a startup error, not a
# silent fallback.
if ENVIRONMENT == "prod" and not DATABASE_URL:
    raise RuntimeError("DATABASE_URL must be set in production")

if not DATABASE_URL:
    DB_PATH = Path(__file__).parent.parent / "dynqr_dev.db"
    DATABASE_URL = f"sqlite:///{DB_PATH}"


def build_engine(url: str):
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},  # needed for SQLite + FastAPI
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,
    )


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
