"""
Standalone lead import worker.

Usage:
    python -m travelcrm.worker --workers 2
"""

from __future__ import annotations

import argparse
import logging
import signal
import threading

from travelcrm.core.config import settings
from travelcrm.core.logging import configure_logging
from travelcrm.core.redis import get_redis_client
from travelcrm.db.session import SessionLocal
from travelcrm.services.lead_import.service import build_worker_pool

logger = logging.getLogger("travelcrm.worker")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Consume the lead import stream.")
    parser.add_argument("--workers", type=int, default=settings.LEAD_IMPORT_WORKERS, help="competing consumers in this process")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    if args.workers < 1:
        logger.error("--workers must be >= 1")
        return 2

    stop = threading.Event()

    def _handle_signal(signum, _frame):
        logger.info("Received %s, stopping lead import workers", signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    pool = build_worker_pool(get_redis_client(), SessionLocal, workers=args.workers)
    pool.start()
    try:
        stop.wait()
    finally:
        clean = pool.stop()
    return 0 if clean else 1


if __name__ == "__main__":
    raise SystemExit(main())
