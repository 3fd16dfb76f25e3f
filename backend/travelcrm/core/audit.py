import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    action: str
    entity: str
    entity_id: str
    actor_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def record_audit_event(event: AuditEvent) -> None:
    """
    Audit trail goes to the log stream only; no persistence.
    """
    logger.info(
        "audit_event action=%s entity=%s entity_id=%s actor_id=%s at=%s",
        event.action,
        event.entity,
        event.entity_id,
        event.actor_id,
        event.created_at.isoformat(),
    )
