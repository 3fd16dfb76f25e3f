from __future__ import annotations

import logging
import time
from typing import Callable

from travelcrm.services.lead_import.processor import LeadImportProcessor

logger = logging.getLogger(__name__)


def consumer_name(prefix: str, worker_id: int | str) -> str:
    return f"{prefix}-{worker_id}"


class LeadImportWorkerPool:
    """Runs N processors, each on its own thread with its own consumer name."""

    def __init__(
        self,
        processor_factory: Callable[[str], LeadImportProcessor],
        workers: int = 1,
        consumer_prefix: str = "lead-import-consumer",
        shutdown_timeout: float = 5.0,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._processor_factory = processor_factory
        self.workers = workers
        self.consumer_prefix = consumer_prefix
        self.shutdown_timeout = shutdown_timeout
        self.processors: list[LeadImportProcessor] = []

    def start(self) -> None:
        if self.processors:
            return
        for worker_id in range(1, self.workers + 1):
            processor = self._processor_factory(consumer_name(self.consumer_prefix, worker_id))
            processor.start()
            self.processors.append(processor)
        logger.info("lead_import_pool_started workers=%s prefix=%s", self.workers, self.consumer_prefix)

    def stop(self) -> bool:
        """Stop every processor within one shared timeout budget. Returns False if any was abandoned."""
        for processor in self.processors:
            processor.request_stop()

        deadline = time.monotonic() + self.shutdown_timeout
        clean = True
        for processor in self.processors:
            remaining = max(0.0, deadline - time.monotonic())
            if not processor.stop(remaining):
                clean = False
        if not clean:
            logger.warning("lead_import_pool_shutdown_timeout timeout=%.1fs", self.shutdown_timeout)
        self.processors = []
        return clean

    def health(self) -> list[dict]:
        return [
            {
                "consumer": p.consumer_name,
                "running": p.is_running,
                "handled": p.handled,
                "last_error": p.last_error,
            }
            for p in self.processors
        ]
