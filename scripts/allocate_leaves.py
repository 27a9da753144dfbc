#!/usr/bin/env python3
"""Year rollover — allocate leave balances for a new year.

Every user who held a balance in ``year - 1`` gets a row per active leave
type for ``year``, with carry-forward applied. Safe to re-run: existing rows
are left untouched.

Usage:
    python -m scripts.allocate_leaves --tenant <uuid>                # next year
    python -m scripts.allocate_leaves --tenant <uuid> --year 2027
    python -m scripts.allocate_leaves --tenant <uuid> --dry-run      # roll back at the end

Requires in .env (project root):
    DATABASE_URL, JWT_SECRET
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

env_path = PROJECT_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("allocate_leaves")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Allocate leave balances for a year")
    parser.add_argument("--tenant", required=True, type=uuid.UUID, help="Tenant UUID")
    parser.add_argument(
        "--year",
        type=int,
        default=datetime.now(timezone.utc).year + 1,
        help="Year to allocate (default: next year)",
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Compute allocations, then roll back",
    )
    return parser.parse_args(argv)


async def run(tenant_id: uuid.UUID, year: int, dry_run: bool = False) -> tuple[int, int]:
    # Imported late so .env is loaded before settings are read
    from hr_leave.database import async_session_factory, engine
    from hr_leave.leave.service import LeaveService

    try:
        async with async_session_factory() as session:
            users, created = await LeaveService.allocate_year(session, tenant_id, year)
            if dry_run:
                await session.rollback()
                logger.info("Dry run: rolled back %d new balances", created)
            else:
                await session.commit()
    finally:
        await engine.dispose()
    return users, created


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logger.info("Allocating %s for tenant %s", args.year, args.tenant)
    users, created = asyncio.run(run(args.tenant, args.year, args.dry_run))
    logger.info("Done: %d users, %d balances created", users, created)
    return 0


if __name__ == "__main__":
    sys.exit(main())
