from __future__ import annotations

import uuid
from typing import Callable

import redis
from sqlalchemy.orm import sessionmaker

from travelcrm.core.audit import AuditEvent, record_audit_event
from travelcrm.core.config import Settings, settings as default_settings
from travelcrm.schemas.lead_import import ImportProgress, LeadImportAccepted, LeadImportPayload
from travelcrm.services.lead_import.processor import LeadImportProcessor
from travelcrm.services.lead_import.producer import LeadImportProducer
from travelcrm.services.lead_import.progress import ImportProgressTracker
from travelcrm.services.lead_import.sequence import SqlSequenceAllocator
from travelcrm.services.lead_import.streams import RedisStreamTransport
from travelcrm.services.lead_import.types import ImportRequest
from travelcrm.services.lead_import.workers import LeadImportWorkerPool
from travelcrm.services.lead_import.writer import LeadBatchWriter


class LeadImportService:
    """Entry points the API layer calls: queue an import, look up its progress."""

    def __init__(self, producer: LeadImportProducer, tracker: ImportProgressTracker):
        self.producer = producer
        self.tracker = tracker

    def enqueue_import(self, agency_id: str, agency_code: str, payload: LeadImportPayload) -> LeadImportAccepted:
        import_id = payload.import_id or uuid.uuid4().hex
        request = ImportRequest(
            agency_id=agency_id,
            agency_code=agency_code,
            import_id=import_id,
            records=tuple(payload.leads),
            created_by=payload.created_by,
        )
        self.producer.submit(request)
        record_audit_event(
            AuditEvent(
                action="lead_import.enqueued",
                entity="lead_import",
                entity_id=import_id,
                actor_id=payload.created_by,
            )
        )
        return LeadImportAccepted(
            import_id=import_id,
            total=len(request.records),
            batches=self.producer.batch_count(len(request.records)),
        )

    def get_import_status(self, import_id: str) -> ImportProgress | None:
        return self.tracker.get_status(import_id)


def build_transport(client: redis.Redis, cfg: Settings = default_settings) -> RedisStreamTransport:
    return RedisStreamTransport(client, cfg.LEAD_IMPORT_STREAM_KEY, cfg.LEAD_IMPORT_GROUP)


def build_tracker(client: redis.Redis, cfg: Settings = default_settings) -> ImportProgressTracker:
    return ImportProgressTracker(client, ttl_seconds=cfg.LEAD_IMPORT_STATUS_TTL)


def build_lead_import_service(client: redis.Redis, cfg: Settings = default_settings) -> LeadImportService:
    tracker = build_tracker(client, cfg)
    producer = LeadImportProducer(build_transport(client, cfg), tracker, batch_size=cfg.LEAD_IMPORT_BATCH_SIZE)
    return LeadImportService(producer, tracker)


def build_processor_factory(
    client: redis.Redis,
    session_factory: sessionmaker,
    cfg: Settings = default_settings,
) -> Callable[[str], LeadImportProcessor]:
    writer = LeadBatchWriter(
        SqlSequenceAllocator(session_factory),
        session_factory,
        pad_length=cfg.LEAD_NUMBER_PAD_LENGTH,
    )

    def _factory(consumer: str) -> LeadImportProcessor:
        return LeadImportProcessor(
            build_transport(client, cfg),
            writer,
            build_tracker(client, cfg),
            consumer_name=consumer,
            block_ms=cfg.LEAD_IMPORT_BLOCK_MS,
            reclaim_idle_ms=cfg.LEAD_IMPORT_RECLAIM_IDLE_MS,
            reclaim_every=cfg.LEAD_IMPORT_RECLAIM_EVERY,
            reclaim_count=cfg.LEAD_IMPORT_RECLAIM_COUNT,
        )

    return _factory


def build_worker_pool(
    client: redis.Redis,
    session_factory: sessionmaker,
    cfg: Settings = default_settings,
    workers: int | None = None,
) -> LeadImportWorkerPool:
    return LeadImportWorkerPool(
        build_processor_factory(client, session_factory, cfg),
        workers=workers or cfg.LEAD_IMPORT_WORKERS,
        consumer_prefix=cfg.LEAD_IMPORT_CONSUMER_PREFIX,
        shutdown_timeout=cfg.LEAD_IMPORT_SHUTDOWN_TIMEOUT,
    )
