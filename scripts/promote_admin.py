"""
Grant the admin role to an existing user, looked up by email.
The first admin has to be bootstrapped this way since new users start as guests.
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from reservehub.db import SessionLocal
from reservehub.models.enums import Role
from reservehub.models.models import User
from reservehub.services.users import update_user_role


def promote(email: str, dry_run: bool = False) -> int:
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            print(f"[ERROR] No user with email {email}; they must sign in once first")
            return 1
        if user.role == Role.admin:
            print(f"[SKIP] {email} is already an admin")
            return 0
        if dry_run:
            print(f"[DRY-RUN] Would promote {email} ({user.role.value} -> admin)")
            return 0
        update_user_role(db, user.id, Role.admin)
        print(f"[OK] {email} is now an admin")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Promote a user to admin")
    parser.add_argument("email")
    parser.add_argument("--dry-run", action="store_true", help="Dry run mode - don't make changes")
    args = parser.parse_args()

    sys.exit(promote(args.email, dry_run=args.dry_run))
