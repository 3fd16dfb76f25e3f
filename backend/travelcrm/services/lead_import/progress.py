from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import redis

from travelcrm.schemas.lead_import import ImportErrorItem, ImportProgress
from travelcrm.services.lead_import.types import BatchOutcome

logger = logging.getLogger(__name__)

KEY_PREFIX = "import:job"


class ImportAlreadyExistsError(RuntimeError):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _derive_status(total: int, processed: int, succeeded: int) -> str:
    if processed <= 0 and total > 0:
        return "pending"
    if processed < total:
        return "processing"
    # finished without a single lead written
    if total > 0 and succeeded == 0:
        return "failed"
    return "completed"


class ImportProgressTracker:
    """
    Job-level progress per import id, kept in Redis with a TTL.

    Counters only ever grow through HINCRBY, so batch reports from competing
    consumers can land in any order. A batch offset is counted once even if the
    stream redelivers its entry.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 3600, key_prefix: str = KEY_PREFIX):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def _job_key(self, import_id: str) -> str:
        return f"{self.key_prefix}:{import_id}"

    def _errors_key(self, import_id: str) -> str:
        return f"{self._job_key(import_id)}:errors"

    def _batches_key(self, import_id: str) -> str:
        return f"{self._job_key(import_id)}:batches"

    def register(self, import_id: str, agency_id: str, total: int, batches: int) -> None:
        job_key = self._job_key(import_id)
        if not self.client.hsetnx(job_key, "import_id", import_id):
            raise ImportAlreadyExistsError(f"Import {import_id} already exists")

        now = _now_iso()
        pipe = self.client.pipeline(transaction=True)
        pipe.hset(
            job_key,
            mapping={
                "agency_id": agency_id,
                "total": total,
                "batches": batches,
                "processed": 0,
                "succeeded": 0,
                "failed": 0,
                "created_at": now,
                "updated_at": now,
            },
        )
        pipe.expire(job_key, self.ttl_seconds)
        pipe.execute()

    def discard(self, import_id: str) -> None:
        """Drop every key of an import so its id can be submitted again."""
        self.client.delete(self._job_key(import_id), self._errors_key(import_id), self._batches_key(import_id))

    def report(self, import_id: str, batch_offset: int, batch_size: int, outcome: BatchOutcome) -> bool:
        """Merge one batch outcome. Returns False when the batch was already counted or the job expired."""
        job_key = self._job_key(import_id)
        if not self.client.exists(job_key):
            logger.warning("import_progress_missing import_id=%s batch_offset=%s", import_id, batch_offset)
            return False

        batches_key = self._batches_key(import_id)
        if not self.client.sadd(batches_key, batch_offset):
            logger.info("import_batch_already_reported import_id=%s batch_offset=%s", import_id, batch_offset)
            return False

        errors_key = self._errors_key(import_id)
        pipe = self.client.pipeline(transaction=True)
        pipe.hincrby(job_key, "processed", batch_size)
        pipe.hincrby(job_key, "succeeded", len(outcome.succeeded))
        pipe.hincrby(job_key, "failed", outcome.failed_count)
        pipe.hset(job_key, "updated_at", _now_iso())
        if outcome.errors:
            pipe.rpush(
                errors_key,
                *[json.dumps({"index": batch_offset + e.index, "error": e.error}) for e in outcome.errors],
            )
        for key in (job_key, errors_key, batches_key):
            pipe.expire(key, self.ttl_seconds)
        pipe.execute()
        return True

    def get_status(self, import_id: str) -> ImportProgress | None:
        raw = self.client.hgetall(self._job_key(import_id))
        if not raw:
            return None
        data = {
            (k.decode() if isinstance(k, bytes) else k): (v.decode() if isinstance(v, bytes) else v)
            for k, v in raw.items()
        }
        errors = [
            ImportErrorItem.model_validate_json(item)
            for item in self.client.lrange(self._errors_key(import_id), 0, -1)
        ]
        total = int(data.get("total", 0))
        processed = int(data.get("processed", 0))
        succeeded = int(data.get("succeeded", 0))
        return ImportProgress(
            import_id=import_id,
            agency_id=data.get("agency_id"),
            status=_derive_status(total, processed, succeeded),
            total=total,
            processed=processed,
            succeeded=succeeded,
            failed=int(data.get("failed", 0)),
            batches=int(data.get("batches", 0)),
            errors=sorted(errors, key=lambda e: e.index),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
