from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterator, Sequence

from redis.exceptions import RedisError

from travelcrm.schemas.lead_import import ImportBatchMessage, ProgressSnapshot
from travelcrm.services.lead_import.progress import ImportProgressTracker
from travelcrm.services.lead_import.streams import RedisStreamTransport
from travelcrm.services.lead_import.types import ImportRequest

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


def iter_batches(records: Sequence[Any], batch_size: int) -> Iterator[tuple[int, Sequence[Any]]]:
    """Yield (offset, slice) pairs of at most batch_size records, in order."""
    if batch_size < 1:
        raise ValueError("batch_size must be a positive integer")
    for offset in range(0, len(records), batch_size):
        yield offset, records[offset : offset + batch_size]


def encode_batch(message: ImportBatchMessage) -> dict[str, str]:
    return {
        "job": message.model_dump_json(),
        "timestamp": str(int(message.created_at.timestamp() * 1000)),
    }


class LeadImportProducer:
    def __init__(
        self,
        transport: RedisStreamTransport,
        tracker: ImportProgressTracker,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        self.transport = transport
        self.tracker = tracker
        self.batch_size = batch_size
        self._group_ready = False

    def batch_count(self, total: int) -> int:
        return -(-total // self.batch_size)

    def submit(self, request: ImportRequest) -> str:
        """Append one stream entry per batch and return the import id without waiting."""
        records = list(request.records)
        if not self._group_ready:
            # XREADGROUP fails with NOGROUP until the group exists
            self.transport.ensure_group()
            self._group_ready = True
        self.tracker.register(
            request.import_id,
            request.agency_id,
            total=len(records),
            batches=self.batch_count(len(records)),
        )

        entry_ids: list[str] = []
        try:
            for offset, batch in iter_batches(records, self.batch_size):
                message = ImportBatchMessage(
                    import_id=request.import_id,
                    agency_id=request.agency_id,
                    agency_code=request.agency_code,
                    batch_offset=offset,
                    created_by=request.created_by,
                    leads=list(batch),
                    progress=ProgressSnapshot(total=len(batch)),
                    created_at=datetime.now(timezone.utc),
                )
                entry_ids.append(self.transport.append(encode_batch(message)))
        except Exception:
            self._rollback(request.import_id, entry_ids)
            raise

        logger.info(
            "lead_import_queued import_id=%s agency_id=%s records=%s entries=%s",
            request.import_id,
            request.agency_id,
            len(records),
            len(entry_ids),
        )
        return request.import_id

    def _rollback(self, import_id: str, entry_ids: list[str]) -> None:
        """Undo a partly appended import: delete its entries and free its id."""
        logger.error(
            "lead_import_submit_aborted import_id=%s appended_entries=%s",
            import_id,
            len(entry_ids),
        )
        try:
            self.transport.delete(*entry_ids)
            self.tracker.discard(import_id)
        except RedisError as exc:
            # keys still expire with the status TTL
            logger.error("lead_import_rollback_failed import_id=%s error=%s", import_id, exc)
