from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from travelcrm.models.lead import Lead
from travelcrm.services.lead_import.types import BatchInsertResult, RecordError

logger = logging.getLogger(__name__)


def _error_message(exc: SQLAlchemyError) -> str:
    # DBAPIError carries the driver message in .orig; skip the SQL echo
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class LeadRepository:
    def __init__(self, db: Session):
        self.db = db

    def bulk_insert(self, documents: Sequence[Lead], ordered: bool = False) -> BatchInsertResult:
        """
        Insert every document in its own savepoint and commit once.

        ordered=False attempts all documents and reports the rejected ones;
        ordered=True stops at the first rejection. Connection-level failures and a
        failed commit reject the whole set with the same message.
        """
        result = BatchInsertResult()
        try:
            for index, document in enumerate(documents):
                try:
                    with self.db.begin_nested():
                        self.db.add(document)
                        self.db.flush()
                except (OperationalError, InterfaceError):
                    raise
                except SQLAlchemyError as exc:
                    # pending objects from a rolled back savepoint are already expunged
                    result.errors.append(RecordError(index=index, error=_error_message(exc)))
                    if ordered:
                        break
                    continue
                result.inserted.append(document)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            message = _error_message(exc)
            logger.error("lead_bulk_insert_failed documents=%s error=%s", len(documents), message)
            return BatchInsertResult(
                errors=[RecordError(index=i, error=message) for i in range(len(documents))],
            )
        return result
