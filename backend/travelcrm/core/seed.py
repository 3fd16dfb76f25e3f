from __future__ import annotations

import logging

from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from travelcrm.core.config import settings
from travelcrm.models.agency import Agency

logger = logging.getLogger(__name__)


def ensure_seed_data(db: Session) -> Agency | None:
    """
    Idempotent dev seed: one active agency to import leads into.
    Returns the seeded agency, or None when seeding is disabled or tables are missing.
    """
    if not settings.SEED_ENABLED:
        return None

    # SQLite in-memory tests create the schema per test; nothing to seed before that.
    try:
        db.query(Agency).limit(1).all()
    except (OperationalError, ProgrammingError):
        db.rollback()
        return None

    code = settings.SEED_AGENCY_CODE.strip().upper()
    agency = db.query(Agency).filter(Agency.code == code).first()
    if not agency:
        agency = Agency(name=settings.SEED_AGENCY_NAME, code=code, is_active=True)
        db.add(agency)
        db.commit()
        db.refresh(agency)
        logger.info("seed_agency_created id=%s code=%s", agency.id, agency.code)
    return agency
