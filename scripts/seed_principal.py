#!/usr/bin/env python3
"""Create or update a principal in the users table.

The auth service only reads principals; this script is how they get there.

Usage:
    python scripts/seed_principal.py alice --password hunter22 --roles USER,ADMIN
    python scripts/seed_principal.py bob --disable
"""
import argparse
import getpass
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def seed_principal(username: str, password: str | None, roles: str, enabled: bool) -> str:
    from core.database import Base, SessionLocal, engine
    from models.users import User
    from utils.hashing import get_password_hash

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.username == username).one_or_none()
        status = "updated"
        if user is None:
            if not password:
                raise ValueError("A password is required to create a principal")
            user = User(username=username)
            db.add(user)
            status = "created"

        if password:
            user.hashed_password = get_password_hash(password)
        user.roles = roles
        user.enabled = enabled
        db.commit()
        return status
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or update an auth principal")
    parser.add_argument("username")
    parser.add_argument("--password", help="Prompted for when omitted on creation")
    parser.add_argument("--roles", default="USER", help="Comma separated roles (default: USER)")
    parser.add_argument("--disable", action="store_true", help="Mark the principal disabled")
    args = parser.parse_args(argv)

    if len(args.username) < 3:
        parser.error("username must be at least 3 characters")

    password = args.password
    if password is None and sys.stdin.isatty():
        password = getpass.getpass("Password (empty to keep current): ") or None
    if password is not None and len(password) < 6:
        parser.error("password must be at least 6 characters")

    try:
        status = seed_principal(args.username, password, args.roles, not args.disable)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Principal {args.username} {status}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
