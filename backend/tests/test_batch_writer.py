from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from travelcrm.db.session import SessionLocal, build_engine
from travelcrm.models.lead import Lead
from travelcrm.models.lead_counter import LeadCounter
from travelcrm.services.lead_import.sequence import SequenceAllocationError, SqlSequenceAllocator
from travelcrm.services.lead_import.writer import LeadBatchWriter

FIXED_NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class FailingAllocator:
    def allocate(self, agency_id, year, count):
        raise SequenceAllocationError("counter store down")


def _writer(session_factory=SessionLocal, allocator=None) -> LeadBatchWriter:
    return LeadBatchWriter(
        allocator or SqlSequenceAllocator(SessionLocal),
        session_factory,
        pad_length=5,
        clock=lambda: FIXED_NOW,
    )


def _lead(i: int, **extra) -> dict:
    row = {"fullName": f"Lead {i}", "email": f"lead{i}@example.com", "phone": "555-0100"}
    row.update(extra)
    return row


def _stored_leads(agency_id: str) -> list[Lead]:
    db = SessionLocal()
    try:
        return list(db.scalars(select(Lead).where(Lead.agency_id == agency_id).order_by(Lead.lead_number)))
    finally:
        db.close()


def _counter(agency_id: str) -> int:
    db = SessionLocal()
    try:
        return db.get(LeadCounter, (agency_id, 2024)).value
    finally:
        db.close()


def test_empty_batch_is_a_no_op(agency):
    outcome = _writer().process([], agency.id, agency.code)
    assert outcome.succeeded == []
    assert outcome.errors == []


def test_batch_gets_contiguous_numbers_and_defaults(agency):
    records = [
        _lead(0, travelDetails={"destination": "Lisbon", "budget": {"value": 12000}}),
        _lead(1, status="Contacted", source="Website", tags=["vip"], referrer="spring-fair"),
        _lead(2),
    ]

    outcome = _writer().process(records, agency.id, agency.code, created_by="user-1", import_id="imp-1")

    assert outcome.errors == []
    assert [s["lead_number"] for s in outcome.succeeded] == [
        "ACME-2024-00001",
        "ACME-2024-00002",
        "ACME-2024-00003",
    ]

    stored = _stored_leads(agency.id)
    assert len(stored) == 3
    first, second, third = stored
    assert first.ai_score == 100
    assert first.travel_details["destination"] == "Lisbon"
    assert first.status == "new"
    assert first.source == "other"
    assert second.status == "contacted"
    assert second.source == "website"
    assert second.tags == ["vip"]
    assert second.payload == {"referrer": "spring-fair"}
    assert third.ai_score == 10
    assert all(lead.import_id == "imp-1" and lead.created_by == "user-1" for lead in stored)
    assert all(lead.version == 1 and not lead.is_deleted for lead in stored)


def test_next_batch_continues_the_sequence(agency):
    writer = _writer()
    writer.process([_lead(0), _lead(1)], agency.id, agency.code)
    outcome = writer.process([_lead(2)], agency.id, agency.code)

    assert outcome.succeeded[0]["lead_number"] == "ACME-2024-00003"


def test_bad_rows_fail_alone(agency):
    records = [
        _lead(0),
        _lead(1, status="not-a-status"),
        {"fullName": "No Contact"},
        "not an object",
        _lead(4),
    ]

    outcome = _writer().process(records, agency.id, agency.code)

    assert len(outcome.succeeded) + outcome.failed_count == len(records)
    assert len(outcome.succeeded) == 2
    assert [e.index for e in outcome.errors] == [1, 2, 3]
    assert "not-a-status" in outcome.errors[0].error
    # numbers are reserved per position even for rejected rows
    assert [s["lead_number"] for s in outcome.succeeded] == ["ACME-2024-00001", "ACME-2024-00005"]


def test_duplicate_key_rejects_later_row_and_burns_its_number(agency):
    records = [_lead(0, duplicateKey="jane@example.com"), _lead(1, duplicateKey="jane@example.com")]

    outcome = _writer().process(records, agency.id, agency.code)

    assert len(outcome.succeeded) == 1
    assert [e.index for e in outcome.errors] == [1]
    assert "UNIQUE" in outcome.errors[0].error
    assert _counter(agency.id) == 2
    assert len(_stored_leads(agency.id)) == 1


def test_allocation_failure_fails_every_record(agency):
    outcome = _writer(allocator=FailingAllocator()).process([_lead(0), _lead(1)], agency.id, agency.code)

    assert outcome.succeeded == []
    assert [e.index for e in outcome.errors] == [0, 1]
    assert all(e.error == "counter store down" for e in outcome.errors)
    assert _stored_leads(agency.id) == []


def test_store_failure_fails_every_prepared_record(agency, tmp_path):
    # the leads table only exists on the counter engine
    broken = build_engine(f"sqlite+pysqlite:///{tmp_path / 'no-leads.db'}")
    writer = _writer(session_factory=sessionmaker(bind=broken))

    outcome = writer.process([_lead(0), _lead(1, status="bogus"), _lead(2)], agency.id, agency.code)

    assert outcome.succeeded == []
    assert [e.index for e in outcome.errors] == [0, 1, 2]
    assert outcome.errors[0].error == outcome.errors[2].error
    assert "bogus" in outcome.errors[1].error
    broken.dispose()
