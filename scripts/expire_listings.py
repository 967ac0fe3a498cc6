#!/usr/bin/env python3
"""Expire lapsed listings and warn owners of terms ending soon. Meant for cron."""
import argparse
import asyncio
import json
import sys

from hidden_gems.core.database import SessionLocal, engine
from hidden_gems.services.gem_service import expire_listings


async def run() -> dict:
    async with SessionLocal() as db:
        result = await expire_listings(db)
    await engine.dispose()
    return result


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the listing expiry sweep once.")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    args = parser.parse_args()

    result = asyncio.run(run())
    if args.json:
        print(json.dumps(result))
    else:
        print(f"expired={result['expired']} expiring={result['expiring']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
