from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from travelcrm.models.lead_counter import LeadCounter

logger = logging.getLogger(__name__)


class SequenceAllocationError(RuntimeError):
    """The counter store could not hand out a range. Nothing was allocated."""


class SequenceAllocator(Protocol):
    def allocate(self, agency_id: str, year: int, count: int) -> int: ...


def _insert_for(session: Session):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise SequenceAllocationError(f"Unsupported counter store dialect: {dialect}")


class SqlSequenceAllocator:
    """
    Hands out contiguous, never reused integer ranges per (agency_id, year).

    The increment is one INSERT .. ON CONFLICT DO UPDATE .. RETURNING statement, so
    the database serializes concurrent callers on the counter row. A missing counter
    starts at zero.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def allocate(self, agency_id: str, year: int, count: int) -> int:
        if count < 1:
            raise ValueError("count must be a positive integer")

        db = self._session_factory()
        try:
            insert = _insert_for(db)
            stmt = insert(LeadCounter).values(agency_id=agency_id, year=year, value=count)
            stmt = stmt.on_conflict_do_update(
                index_elements=["agency_id", "year"],
                set_={"value": LeadCounter.value + stmt.excluded.value},
            ).returning(LeadCounter.value)
            new_value = db.execute(stmt).scalar_one()
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "sequence_allocation_failed agency_id=%s year=%s count=%s error=%s",
                agency_id,
                year,
                count,
                exc,
            )
            raise SequenceAllocationError(f"Lead number allocation failed: {exc}") from exc
        finally:
            db.close()

        start = new_value - count + 1
        logger.debug(
            "sequence_allocated agency_id=%s year=%s start=%s end=%s",
            agency_id,
            year,
            start,
            new_value,
        )
        return start
