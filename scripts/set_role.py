#!/usr/bin/env python3
"""Grant or revoke a role flag on a user (idempotent).

Usage:
  python scripts/set_role.py --login komagata --role admin
  python scripts/set_role.py --login advijirou --role adviser --revoke
"""

import argparse
import os
import sys
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.bootcamp.models import User

ROLE_FLAGS = ("admin", "mentor", "adviser", "trainee")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--login", required=True, help="login_name of the user")
    parser.add_argument("--role", required=True, choices=ROLE_FLAGS)
    parser.add_argument("--revoke", action="store_true", help="clear the flag instead of setting it")
    args = parser.parse_args()

    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///bootcamp.db").strip()
    engine = create_engine(db_url, future=True)
    with Session(engine) as s:
        user = s.query(User).filter(User.login_name == args.login.strip().lower()).one_or_none()
        if not user:
            print(f"User not found: {args.login}")
            return
        value = not args.revoke
        if getattr(user, args.role) == value:
            print(f"No change: {args.login} {args.role}={value}")
            return
        if args.role == "admin" and value and user.trainee:
            print("Trainees cannot be admins; revoke trainee first.")
            return
        setattr(user, args.role, value)
        s.commit()
        print(f"{args.login}: {args.role}={value}")


if __name__ == "__main__":
    main()
