from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from sqlalchemy.orm import sessionmaker

from travelcrm.models.lead import Lead, LeadSource, LeadStatus
from travelcrm.services.lead_import.repository import LeadRepository
from travelcrm.services.lead_import.scoring import format_lead_number, score_lead
from travelcrm.services.lead_import.sequence import SequenceAllocationError, SequenceAllocator
from travelcrm.services.lead_import.types import BatchOutcome, RecordError

logger = logging.getLogger(__name__)

# raw row key -> Lead attribute
_COPIED_FIELDS = {
    "fullName": "full_name",
    "email": "email",
    "phone": "phone",
    "alternatePhone": "alternate_phone",
    "priority": "priority",
    "travelDetails": "travel_details",
    "tags": "tags",
    "notes": "notes",
    "duplicateKey": "duplicate_key",
}
_INTERPRETED_FIELDS = set(_COPIED_FIELDS) | {"status", "source"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_value(enum_cls, raw, default):
    if raw in (None, ""):
        return default.value
    try:
        return enum_cls(str(raw).strip().lower()).value
    except ValueError:
        raise ValueError(f"Invalid {enum_cls.__name__} value: {raw!r}") from None


class LeadBatchWriter:
    """Turns one batch of raw import rows into leads with a single unordered bulk insert."""

    def __init__(
        self,
        allocator: SequenceAllocator,
        session_factory: sessionmaker,
        pad_length: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._allocator = allocator
        self._session_factory = session_factory
        self._pad_length = pad_length
        self._clock = clock

    def build_lead(
        self,
        record: dict[str, Any],
        *,
        agency_id: str,
        lead_number: str,
        created_by: str | None,
        import_id: str | None,
        now: datetime,
    ) -> Lead:
        if not isinstance(record, dict):
            raise ValueError("Import row must be an object")

        values = {attr: record.get(key) for key, attr in _COPIED_FIELDS.items()}
        extra = {k: v for k, v in record.items() if k not in _INTERPRETED_FIELDS}

        return Lead(
            id=str(uuid.uuid4()),
            agency_id=agency_id,
            lead_number=lead_number,
            status=_enum_value(LeadStatus, record.get("status"), LeadStatus.NEW),
            source=_enum_value(LeadSource, record.get("source"), LeadSource.OTHER),
            ai_score=score_lead(record),
            ai_score_calculated_at=now,
            payload=extra or None,
            import_id=import_id,
            created_by=created_by,
            updated_by=created_by,
            created_at=now,
            updated_at=now,
            version=1,
            is_deleted=False,
            **values,
        )

    def process(
        self,
        records: Sequence[dict[str, Any]],
        agency_id: str,
        agency_code: str,
        created_by: str | None = None,
        import_id: str | None = None,
    ) -> BatchOutcome:
        if not records:
            return BatchOutcome()

        now = self._clock()
        year = now.year
        try:
            start = self._allocator.allocate(agency_id, year, len(records))
        except SequenceAllocationError as exc:
            logger.error(
                "lead_batch_allocation_failed agency_id=%s size=%s error=%s",
                agency_id,
                len(records),
                exc,
            )
            return BatchOutcome.all_failed(len(records), str(exc))

        errors: list[RecordError] = []
        prepared: list[tuple[int, Lead]] = []
        for index, record in enumerate(records):
            lead_number = format_lead_number(agency_code, year, start + index, self._pad_length)
            try:
                lead = self.build_lead(
                    record,
                    agency_id=agency_id,
                    lead_number=lead_number,
                    created_by=created_by,
                    import_id=import_id,
                    now=now,
                )
            except ValueError as exc:
                errors.append(RecordError(index=index, error=str(exc)))
                continue
            prepared.append((index, lead))

        succeeded: list[dict[str, str]] = []
        if prepared:
            db = self._session_factory(expire_on_commit=False)
            try:
                result = LeadRepository(db).bulk_insert([lead for _, lead in prepared], ordered=False)
            finally:
                db.close()

            for lead in result.inserted:
                succeeded.append({"id": lead.id, "lead_number": lead.lead_number})
            for err in result.errors:
                errors.append(RecordError(index=prepared[err.index][0], error=err.error))

        errors.sort(key=lambda e: e.index)
        outcome = BatchOutcome(succeeded=succeeded, errors=errors)
        logger.info(
            "lead_batch_written agency_id=%s size=%s succeeded=%s failed=%s first_number=%s",
            agency_id,
            len(records),
            len(outcome.succeeded),
            outcome.failed_count,
            format_lead_number(agency_code, year, start, self._pad_length),
        )
        return outcome
