import unittest

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from migrate import DEDUPE_INDEX, get_existing_indexes, migrate


def memory_engine():
    return create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)


class TestMigrate(unittest.TestCase):
    def test_creates_tables_and_is_repeatable(self):
        engine = memory_engine()
        migrate(engine)
        migrate(engine)
        tables = set(inspect(engine).get_table_names())
        self.assertTrue({"notifications", "treatments", "intake_events", "push_subscriptions"} <= tables)
        with engine.connect() as conn:
            self.assertIn(DEDUPE_INDEX, get_existing_indexes(conn, "notifications"))

    def test_adds_dedupe_index_to_existing_notifications_table(self):
        engine = memory_engine()
        with engine.begin() as conn:
            conn.execute(text(
                "CREATE TABLE notifications ("
                "id INTEGER PRIMARY KEY, treatment_medication_id INTEGER, "
                "dose_index INTEGER, channel VARCHAR(7))"
            ))
        with self.assertLogs("botilyx.migrate", level="INFO") as logs:
            migrate(engine)
        self.assertTrue(any(DEDUPE_INDEX in line for line in logs.output))

        insert = text(
            "INSERT INTO notifications (treatment_medication_id, dose_index, channel) "
            "VALUES (1, 0, 'push')"
        )
        with engine.begin() as conn:
            conn.execute(insert)
        with self.assertRaises(IntegrityError):
            with engine.begin() as conn:
                conn.execute(insert)


if __name__ == '__main__':
    unittest.main()
