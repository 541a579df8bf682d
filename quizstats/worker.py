"""Scheduled rollup sweep.

RUN:  python -m quizstats.worker [--once] [--interval SECONDS]

Reads already roll a user's windows forward, so nothing depends on
this process.  What it adds is timeliness for users who stop playing:
their "last week" and "last month" records get archived shortly after
midnight instead of whenever they next open the app, and the archive
endpoints show complete history.

Each pass walks every stored user through ProgressService.sweep_all(),
which takes the same per-user lock as the API.  A user that fails is
logged and skipped; the pass carries on with the rest.

In Docker/Kubernetes this is the same image with a different command:
  api:    uvicorn quizstats.main:app --host 0.0.0.0 --port 8000
  worker: python -m quizstats.worker
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import time

from quizstats.api.dependencies import progress_service
from quizstats.core.config import SETTINGS
from quizstats.core.logging import setup_logging
from quizstats.db.engine import lifespan_db
from quizstats.db.redis import lifespan_redis
from quizstats.services.progress_service import ProgressService

logger = logging.getLogger("worker")

DEFAULT_INTERVAL_SECONDS = 15 * 60


async def sweep_once(service: ProgressService) -> tuple[int, int]:
    start = time.monotonic()
    processed, changed = await service.sweep_all()
    logger.info(
        "Rollup sweep finished: users=%d updated=%d (%.1fs)",
        processed,
        changed,
        time.monotonic() - start,
    )
    return processed, changed


async def run_worker(*, interval: float, once: bool = False) -> None:
    async with lifespan_db():
        async with lifespan_redis():
            logger.info("Rollup worker started, interval=%ss", interval)
            while True:
                try:
                    await sweep_once(progress_service)
                except Exception:
                    # A store outage fails the whole pass; try again next tick.
                    logger.exception("Rollup sweep aborted")
                if once:
                    return
                await asyncio.sleep(interval)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="quizstats.worker")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_INTERVAL_SECONDS,
        help="seconds between sweeps (default: %(default)s)",
    )
    args = parser.parse_args(argv)

    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker(interval=args.interval, once=args.once))


if __name__ == "__main__":
    main()
