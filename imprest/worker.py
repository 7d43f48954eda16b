"""Worker process for the scheduled overdue check.

Runs an asyncio loop that moves disbursed requests past their accounting
due date to ``overdue``, once per ``overdue_check_interval_seconds``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from imprest.config import get_settings
from imprest.db import get_session_factory

logger = logging.getLogger(__name__)


async def run_overdue_loop() -> None:
    """Main worker loop that runs the overdue check on a fixed interval."""
    from imprest.services.request import run_overdue_check

    settings = get_settings()
    logger.info("Overdue worker started (interval=%ds)", settings.overdue_check_interval_seconds)
    session_factory = get_session_factory()

    while True:
        today = datetime.now(UTC).date()
        logger.info("Running overdue check for %s", today)
        try:
            async with session_factory() as session:
                await run_overdue_check(session, today)
        except Exception:
            logger.exception("Overdue check failed for %s", today)

        await asyncio.sleep(settings.overdue_check_interval_seconds)


def main() -> None:
    """Entry point for the worker process."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    asyncio.run(run_overdue_loop())


if __name__ == "__main__":
    main()
