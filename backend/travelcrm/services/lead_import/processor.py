from __future__ import annotations

import logging
import threading
import time

from pydantic import ValidationError
from redis.exceptions import RedisError

from travelcrm.schemas.lead_import import ImportBatchMessage
from travelcrm.services.lead_import.progress import ImportProgressTracker
from travelcrm.services.lead_import.streams import RedisStreamTransport, StreamMessage
from travelcrm.services.lead_import.types import BatchOutcome
from travelcrm.services.lead_import.writer import LeadBatchWriter

logger = logging.getLogger(__name__)


class ImportMessageError(ValueError):
    """Stream entry that can never be processed (missing or malformed job body)."""


def decode_batch(message: StreamMessage) -> ImportBatchMessage:
    if message.decode_error:
        raise ImportMessageError(f"Stream entry {message.id} is not valid UTF-8: {message.decode_error}")
    raw = message.fields.get("job")
    if not raw:
        raise ImportMessageError(f"Stream entry {message.id} has no job field")
    try:
        return ImportBatchMessage.model_validate_json(raw)
    except ValidationError as exc:
        raise ImportMessageError(f"Stream entry {message.id} is not a valid import batch: {exc}") from exc


class LeadImportProcessor:
    """
    One competing consumer of the lead import stream.

    Loop: blocking group read -> write the batch -> report progress -> ack. An entry
    is acknowledged once the writer returns, whatever the record-level outcome, so
    batches are never retried wholesale. Entries this consumer did not get to ack
    stay pending and are picked up by the idle-entry sweep of any consumer.
    """

    def __init__(
        self,
        transport: RedisStreamTransport,
        writer: LeadBatchWriter,
        tracker: ImportProgressTracker,
        consumer_name: str,
        block_ms: int = 5000,
        read_count: int = 1,
        reclaim_idle_ms: int = 60000,
        reclaim_every: int = 12,
        reclaim_count: int = 10,
        error_backoff: float = 1.0,
    ):
        self.transport = transport
        self.writer = writer
        self.tracker = tracker
        self.consumer_name = consumer_name
        self.block_ms = block_ms
        self.read_count = read_count
        self.reclaim_idle_ms = reclaim_idle_ms
        self.reclaim_every = max(1, reclaim_every)
        self.reclaim_count = max(1, reclaim_count)
        self.error_backoff = error_backoff

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.handled = 0
        self.last_error: str | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def handle(self, message: StreamMessage) -> BatchOutcome | None:
        try:
            batch = decode_batch(message)
        except ImportMessageError as exc:
            logger.error("lead_import_poison_message consumer=%s entry_id=%s error=%s", self.consumer_name, message.id, exc)
            self._ack(message.id)
            return None

        size = len(batch.leads)
        try:
            outcome = self.writer.process(
                batch.leads,
                batch.agency_id,
                batch.agency_code,
                created_by=batch.created_by,
                import_id=batch.import_id,
            )
        except Exception as exc:
            logger.exception(
                "lead_import_batch_crashed import_id=%s batch_offset=%s entry_id=%s",
                batch.import_id,
                batch.batch_offset,
                message.id,
            )
            outcome = BatchOutcome.all_failed(size, f"Batch processing failed: {exc}")

        try:
            self.tracker.report(batch.import_id, batch.batch_offset, size, outcome)
        except RedisError as exc:
            logger.error(
                "lead_import_progress_report_failed import_id=%s batch_offset=%s error=%s",
                batch.import_id,
                batch.batch_offset,
                exc,
            )

        self._ack(message.id)
        self.handled += 1
        logger.info(
            "lead_import_batch_done consumer=%s import_id=%s batch_offset=%s size=%s succeeded=%s failed=%s",
            self.consumer_name,
            batch.import_id,
            batch.batch_offset,
            size,
            len(outcome.succeeded),
            outcome.failed_count,
        )
        return outcome

    def _ack(self, entry_id: str) -> None:
        try:
            self.transport.ack(entry_id)
        except RedisError as exc:
            # stays pending; the idle-entry sweep will hand it out again
            logger.error("lead_import_ack_failed consumer=%s entry_id=%s error=%s", self.consumer_name, entry_id, exc)

    def reclaim_once(self) -> int:
        """Sweep the whole pending list once, reclaim_count entries per claim."""
        if self.reclaim_idle_ms <= 0:
            return 0
        reclaimed = 0
        cursor = "0-0"
        while not self._stop_event.is_set():
            cursor, messages = self.transport.claim_idle(
                self.consumer_name,
                self.reclaim_idle_ms,
                count=self.reclaim_count,
                start_id=cursor,
            )
            for message in messages:
                logger.warning("lead_import_entry_reclaimed consumer=%s entry_id=%s", self.consumer_name, message.id)
                self.handle(message)
            reclaimed += len(messages)
            if cursor == "0-0":
                break
        return reclaimed

    def poll_once(self, block_ms: int | None = None) -> int:
        messages = self.transport.read(
            self.consumer_name,
            count=self.read_count,
            block_ms=self.block_ms if block_ms is None else block_ms,
        )
        for message in messages:
            self.handle(message)
        return len(messages)

    def run(self) -> None:
        logger.info("lead_import_processor_started consumer=%s group=%s", self.consumer_name, self.transport.group)
        try:
            self.transport.ensure_group()
        except RedisError as exc:
            logger.error("lead_import_group_init_failed consumer=%s error=%s", self.consumer_name, exc)

        iteration = 0
        while not self._stop_event.is_set():
            iteration += 1
            try:
                if iteration % self.reclaim_every == 0:
                    self.reclaim_once()
                self.poll_once()
                self.last_error = None
            except RedisError as exc:
                self.last_error = str(exc)
                logger.error("lead_import_transport_error consumer=%s error=%s", self.consumer_name, exc)
                self._stop_event.wait(self.error_backoff)
            except Exception as exc:
                # the loop outlives any single entry or read
                self.last_error = f"{type(exc).__name__}: {exc}"
                logger.exception("lead_import_loop_error consumer=%s", self.consumer_name)
                self._stop_event.wait(self.error_backoff)
        logger.info("lead_import_processor_stopped consumer=%s handled=%s", self.consumer_name, self.handled)

    def start(self) -> threading.Thread:
        if self.is_running:
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name=self.consumer_name, daemon=True)
        self._thread.start()
        return self._thread

    def request_stop(self) -> None:
        self._stop_event.set()

    def stop(self, timeout: float = 5.0) -> bool:
        """Signal the loop and wait up to timeout. Returns False if the loop was still busy."""
        self.request_stop()
        if self._thread is None:
            return True
        started = time.monotonic()
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning(
                "lead_import_processor_stop_timeout consumer=%s waited=%.1fs",
                self.consumer_name,
                time.monotonic() - started,
            )
            return False
        self._thread = None
        return True
