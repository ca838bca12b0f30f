"""
Migration script: creates missing tables and the reminder de-duplication index.
Safe to run multiple times (checks before altering).
"""

import logging

from sqlalchemy import text, inspect
from database import engine, Base

# Import all models so Base.metadata knows about them
import models  # noqa: F401

logger = logging.getLogger("botilyx.migrate")

DEDUPE_INDEX = "uq_notification_dose_channel"


def get_existing_indexes(conn, table_name: str) -> set:
    """Names of the indexes and unique constraints already on a table."""
    insp = inspect(conn)
    names = {ix["name"] for ix in insp.get_indexes(table_name)}
    names |= {uc["name"] for uc in insp.get_unique_constraints(table_name)}
    return names


def migrate(bind=None):
    bind = bind or engine
    with bind.connect() as conn:
        lock_acquired = False
        if conn.dialect.name == "postgresql":
            # Prevent concurrent migration execution across multiple startup workers.
            lock_acquired = bool(conn.execute(text("SELECT pg_try_advisory_lock(987654321)")).scalar())
            if not lock_acquired:
                logger.info("Migration skipped: another process is running migrations")
                return

        try:
            Base.metadata.create_all(bind=conn)
            conn.commit()
            logger.info("Tables created/verified")

            # create_all skips tables that already exist, so a notifications
            # table created outside this script may lack the index.
            if DEDUPE_INDEX not in get_existing_indexes(conn, "notifications"):
                conn.execute(text(
                    f"CREATE UNIQUE INDEX IF NOT EXISTS {DEDUPE_INDEX} "
                    "ON notifications (treatment_medication_id, dose_index, channel)"
                ))
                conn.commit()
                logger.info("Created unique index %s", DEDUPE_INDEX)
        finally:
            if lock_acquired:
                conn.execute(text("SELECT pg_advisory_unlock(987654321)"))
                conn.commit()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Running migrations...")
    migrate()
    print("Done!")
