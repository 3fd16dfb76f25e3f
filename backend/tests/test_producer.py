import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from travelcrm.services.lead_import.processor import decode_batch
from travelcrm.services.lead_import.producer import LeadImportProducer, iter_batches
from travelcrm.services.lead_import.progress import ImportAlreadyExistsError, ImportProgressTracker
from travelcrm.services.lead_import.streams import RedisStreamTransport
from travelcrm.services.lead_import.types import ImportRequest


def _records(n: int) -> tuple[dict, ...]:
    return tuple({"fullName": f"Lead {i}", "email": f"lead{i}@example.com", "phone": "555-0100"} for i in range(n))


def _producer(redis_client, batch_size=50):
    transport = RedisStreamTransport(redis_client, "test:imports", "test-group")
    tracker = ImportProgressTracker(redis_client, ttl_seconds=600)
    return LeadImportProducer(transport, tracker, batch_size=batch_size), transport, tracker


def test_iter_batches_splits_in_order():
    batches = list(iter_batches(list(range(7)), 3))
    assert batches == [(0, [0, 1, 2]), (3, [3, 4, 5]), (6, [6])]


def test_iter_batches_rejects_zero_size():
    with pytest.raises(ValueError):
        list(iter_batches([1], 0))


def test_batch_count_rounds_up(redis_client):
    producer, _, _ = _producer(redis_client, batch_size=50)
    assert producer.batch_count(120) == 3
    assert producer.batch_count(100) == 2
    assert producer.batch_count(1) == 1


def test_submit_appends_one_entry_per_batch(redis_client):
    producer, transport, tracker = _producer(redis_client)
    request = ImportRequest(agency_id="agency-1", agency_code="ACME", import_id="imp-1", records=_records(120))

    assert producer.submit(request) == "imp-1"

    assert transport.length() == 3
    messages = transport.read("reader", count=10)
    batches = [decode_batch(m) for m in messages]
    assert [b.batch_offset for b in batches] == [0, 50, 100]
    assert [len(b.leads) for b in batches] == [50, 50, 20]
    assert [b.progress.total for b in batches] == [50, 50, 20]
    assert all(b.agency_id == "agency-1" and b.agency_code == "ACME" for b in batches)
    assert batches[2].leads[-1]["fullName"] == "Lead 119"
    assert all(m.fields["timestamp"].isdigit() for m in messages)

    progress = tracker.get_status("imp-1")
    assert progress.status == "pending"
    assert progress.total == 120
    assert progress.batches == 3
    assert progress.processed == 0


def test_submit_rejects_reused_import_id(redis_client):
    producer, transport, _ = _producer(redis_client)
    request = ImportRequest(agency_id="agency-1", agency_code="ACME", import_id="imp-1", records=_records(3))
    producer.submit(request)

    with pytest.raises(ImportAlreadyExistsError):
        producer.submit(request)
    assert transport.length() == 1


def test_producer_rejects_zero_batch_size(redis_client):
    with pytest.raises(ValueError):
        _producer(redis_client, batch_size=0)


def test_failed_append_rolls_back_the_import(redis_client, monkeypatch):
    producer, transport, tracker = _producer(redis_client)
    request = ImportRequest(agency_id="agency-1", agency_code="ACME", import_id="imp-1", records=_records(120))
    real_append = transport.append
    calls = []

    def _flaky_append(fields):
        calls.append(fields)
        if len(calls) == 2:
            raise RedisConnectionError("connection reset")
        return real_append(fields)

    monkeypatch.setattr(transport, "append", _flaky_append)

    with pytest.raises(RedisConnectionError):
        producer.submit(request)

    assert transport.length() == 0
    assert tracker.get_status("imp-1") is None

    # the same id can be submitted again
    monkeypatch.setattr(transport, "append", real_append)
    assert producer.submit(request) == "imp-1"
    assert transport.length() == 3
    assert tracker.get_status("imp-1").total == 120
