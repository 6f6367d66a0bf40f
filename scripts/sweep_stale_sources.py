"""Fail sources stuck in ``processing`` past SOURCE_STALE_AFTER_MINUTES.

Run from cron or by hand:

    python scripts/sweep_stale_sources.py [--minutes N] [--yes]

Without ``--yes`` the stale sources are only listed.
"""

import argparse
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import select

# Ensure the project root is on sys.path so `app` package imports work
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from app.core.config import settings
from app.domain.models import Source
from app.domain.source_state import SourceStatus
from app.infrastructure.container import ServiceContainer
from app.infrastructure.database.session import DatabaseTransactionManager
from app.infrastructure.monitoring.logging_setup import get_logger

logger = get_logger("sweep_stale_sources")


async def list_stale(minutes: int) -> None:
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=minutes)
    async with DatabaseTransactionManager() as db:
        result = await db.execute(
            select(Source.id, Source.updated_at)
            .where(Source.processing_status == SourceStatus.PROCESSING, Source.updated_at < cutoff)
            .order_by(Source.updated_at)
        )
        rows = result.all()
    print(f"{len(rows)} source(s) in processing since before {cutoff.isoformat()}")
    for source_id, updated_at in rows:
        print(f"  {source_id}  last update {updated_at}")


async def sweep(minutes: int) -> int:
    async with DatabaseTransactionManager() as db:
        service = ServiceContainer(db=db).get_stale_source_service()
        service.stale_after_minutes = minutes
        failed = await service.fail_stale_sources()
    print(f"Marked {len(failed)} source(s) failed")
    return len(failed)


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--minutes", type=int, default=settings.SOURCE_STALE_AFTER_MINUTES)
    parser.add_argument("--yes", action="store_true", help="apply the sweep instead of listing")
    args = parser.parse_args()

    if not args.minutes or args.minutes <= 0:
        print("SOURCE_STALE_AFTER_MINUTES is unset; pass --minutes to sweep.")
        sys.exit(1)

    if args.yes:
        asyncio.run(sweep(args.minutes))
    else:
        asyncio.run(list_stale(args.minutes))
        print("Re-run with '--yes' to mark them failed.")


if __name__ == "__main__":
    main()
