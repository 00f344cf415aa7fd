"""Operations helper to delete read notifications past the retention window.

Expired notifications (``expires_at`` in the past) are removed regardless of
their read state. Intended for a nightly cron job.
"""

import argparse
import asyncio

from dotenv import load_dotenv

from snapybara.core.config import get_settings
from snapybara.db import create_engine, create_session_factory
from snapybara.infra.unit_of_work import SqlAlchemyUnitOfWork
from snapybara.logging import setup_logging
from snapybara.services.notifications import NotificationService


async def purge(retention_days: int) -> int:
    settings = get_settings()
    engine = create_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    try:
        svc = NotificationService(lambda: SqlAlchemyUnitOfWork(session_factory))
        return await svc.purge_expired(retention_days)
    finally:
        await engine.dispose()


async def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    setup_logging()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention window in days (default: NOTIFICATION_RETENTION_DAYS)",
    )
    args = parser.parse_args(argv)
    days = args.days or get_settings().notification_retention_days
    count = await purge(days)
    print(f"✅ purged notifications: {count} (retention {days} days)")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
