import json
import logging
import sys

from database import SessionLocal
from services.dose_scheduler import run_notification_pass
from services.push import init_firebase


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    init_firebase()
    db = SessionLocal()
    try:
        summary = run_notification_pass(db)
    finally:
        db.close()
    print(json.dumps(summary, indent=2))
    return 0 if summary["ok"] else 1


if __name__ == "__main__":
    sys.exit(main())
