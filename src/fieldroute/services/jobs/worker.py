"""Polling worker that drains the optimization job queue.

Run with ``fieldroute-worker`` (or ``python -m fieldroute.services.jobs.worker``)
next to, or instead of, in-process background tasks.
"""

from __future__ import annotations

import argparse
import logging
import time

from ...config import settings
from ...persistence import get_store
from ..travel import get_travel_provider
from .manager import JobManager, default_worker_id

logger = logging.getLogger(__name__)


def run_forever(manager: JobManager, *, interval: float, batch_size: int, worker_id: str) -> None:
    logger.info(f"Worker {worker_id} polling every {interval:.1f}s (batch {batch_size})")
    while True:
        processed = manager.run_pending(batch_size, worker_id)
        if not processed:
            time.sleep(interval)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Process queued route optimization jobs.")
    parser.add_argument("--once", action="store_true", help="Drain one batch and exit.")
    parser.add_argument("--batch-size", type=int, default=settings.worker_batch_size)
    parser.add_argument("--interval", type=float, default=settings.worker_poll_interval_seconds)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    manager = JobManager(get_store(), get_travel_provider())
    worker_id = default_worker_id()

    if args.once:
        processed = manager.run_pending(args.batch_size, worker_id)
        logger.info(f"Processed {processed} jobs")
        return 0
    try:
        run_forever(manager, interval=args.interval, batch_size=args.batch_size, worker_id=worker_id)
    except KeyboardInterrupt:
        logger.info("Worker interrupted; exiting")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
