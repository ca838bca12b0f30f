from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

from config import DATABASE_URL, DB_CONNECT_TIMEOUT_SECONDS, DB_STATEMENT_TIMEOUT_MS


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": DB_CONNECT_TIMEOUT_SECONDS}
    if url.startswith("postgresql"):
        # Bound every query so a stuck store call cannot stall a scheduler pass.
        return {
            "connect_timeout": DB_CONNECT_TIMEOUT_SECONDS,
            "options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}",
        }
    return {}


# NullPool: each request gets a fresh connection, no pool sharing across
# Gunicorn forked workers.
engine = create_engine(
    DATABASE_URL,
    poolclass=NullPool,
    pool_pre_ping=True,
    connect_args=_connect_args(DATABASE_URL),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
