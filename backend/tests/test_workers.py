import time
from unittest.mock import MagicMock

import pytest

from travelcrm.services.lead_import.processor import LeadImportProcessor
from travelcrm.services.lead_import.progress import ImportProgressTracker
from travelcrm.services.lead_import.streams import RedisStreamTransport
from travelcrm.services.lead_import.workers import LeadImportWorkerPool, consumer_name


def _factory(redis_client):
    def _build(name: str) -> LeadImportProcessor:
        return LeadImportProcessor(
            RedisStreamTransport(redis_client, "test:imports", "test-group"),
            MagicMock(),
            ImportProgressTracker(redis_client),
            consumer_name=name,
            block_ms=20,
        )

    return _build


def test_consumer_name():
    assert consumer_name("lead-import-consumer", 3) == "lead-import-consumer-3"


def test_pool_requires_a_worker(redis_client):
    with pytest.raises(ValueError):
        LeadImportWorkerPool(_factory(redis_client), workers=0)


def test_pool_runs_named_consumers(redis_client):
    pool = LeadImportWorkerPool(_factory(redis_client), workers=3, consumer_prefix="w", shutdown_timeout=2.0)
    pool.start()
    pool.start()
    try:
        health = pool.health()
        assert [h["consumer"] for h in health] == ["w-1", "w-2", "w-3"]
        assert all(h["running"] for h in health)
        assert all(h["handled"] == 0 for h in health)
    finally:
        assert pool.stop() is True
    assert pool.health() == []


def test_pool_stop_reports_abandoned_processors():
    stuck = MagicMock(spec=LeadImportProcessor)
    stuck.stop.return_value = False
    pool = LeadImportWorkerPool(lambda name: stuck, workers=2, shutdown_timeout=0.1)
    pool.start()

    started = time.monotonic()
    assert pool.stop() is False
    assert time.monotonic() - started < 1.0
    assert stuck.request_stop.call_count == 2
