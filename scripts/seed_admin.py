#!/usr/bin/env python3
"""Promote (or create) an admin account outside request handling."""
import argparse
import asyncio
import getpass
import sys

from hidden_gems.core.database import SessionLocal, create_tables, engine
from hidden_gems.services.bootstrap_service import promote_admin


async def run(email: str, password: str, full_name: str) -> int:
    await create_tables()
    async with SessionLocal() as db:
        user = await promote_admin(db, email, password=password or None, full_name=full_name or None)
    await engine.dispose()
    print(f"{user.email} is now an admin (id={user.id})")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Grant the admin role to an account.")
    parser.add_argument("email", help="Account email; created when missing")
    parser.add_argument("--name", default="", help="Full name for a new account")
    parser.add_argument(
        "--password",
        action="store_true",
        help="Prompt for a password to set on the account",
    )
    args = parser.parse_args()

    password = getpass.getpass("Password: ") if args.password else ""
    return asyncio.run(run(args.email, password, args.name))


if __name__ == "__main__":
    sys.exit(main())
