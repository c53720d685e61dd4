"""
Send event, training, policy and equipment-return reminders.
Meant to run once a day from cron:

    python scripts/send_reminders.py
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from reservehub.db import SessionLocal
from reservehub.logging import setup_logging
from reservehub.services.reminders import REMINDERS, process_all_reminders


def main(only=None) -> int:
    setup_logging()
    db = SessionLocal()
    try:
        if only:
            REMINDERS[only](db)
            results = {only: True}
        else:
            results = process_all_reminders(db)
    finally:
        db.close()

    for kind, ok in results.items():
        print(f"[{'OK' if ok else 'FAILED'}] {kind}")
    return 0 if all(results.values()) else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Send scheduled reminders")
    parser.add_argument("--only", choices=sorted(REMINDERS), help="Run a single reminder kind")
    args = parser.parse_args()

    sys.exit(main(only=args.only))
