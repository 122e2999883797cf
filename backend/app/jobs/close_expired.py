"""
ClubShelf Voting Backend — Expired Cycle Sweep
================================================

What:  Closes every voting cycle whose window has elapsed, exactly as an
       admin calling POST /voting/results would.
Who:   Run by cron or a scheduler: `python -m app.jobs.close_expired`
When:  Every few minutes. A run that finds nothing closes nothing, and a
       club closed by an admin between listing and closing is skipped.

Exit status:
    0 when every due club closed (or was skipped), 1 if any failed.
"""

import asyncio
import logging
import sys

from app.database import dispose_engine
from app.main import setup_logging
from app.schemas.voting import SweepResponse
from app.services.voting_service import voting_service

logger = logging.getLogger(__name__)


async def run_sweep() -> SweepResponse:
    try:
        return await voting_service.close_expired_cycles()
    finally:
        await dispose_engine()


def main() -> int:
    setup_logging()
    logger.info("Expired voting cycle sweep starting")
    report = asyncio.run(run_sweep())
    if report.failed:
        logger.error("Sweep could not close %d club(s): %s", len(report.failed), report.failed)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
