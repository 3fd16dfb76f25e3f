from __future__ import annotations

import logging

import redis
from fastapi import APIRouter, Depends, HTTPException, status
from redis.exceptions import RedisError

from travelcrm.core.agency_context import get_current_agency
from travelcrm.core.redis import get_redis
from travelcrm.schemas.lead_import import ImportProgress, LeadImportAccepted, LeadImportPayload
from travelcrm.services.lead_import.progress import ImportAlreadyExistsError
from travelcrm.services.lead_import.service import LeadImportService, build_lead_import_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_lead_import_service(client: redis.Redis = Depends(get_redis)) -> LeadImportService:
    return build_lead_import_service(client)


@router.post("/import", response_model=LeadImportAccepted, status_code=status.HTTP_202_ACCEPTED)
def enqueue_lead_import(
    payload: LeadImportPayload,
    agency=Depends(get_current_agency),
    service: LeadImportService = Depends(get_lead_import_service),
) -> LeadImportAccepted:
    if not payload.leads:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Import has no leads",
        )
    try:
        return service.enqueue_import(agency.id, agency.code, payload)
    except ImportAlreadyExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except RedisError as exc:
        logger.error("lead_import_enqueue_failed agency_id=%s error=%s", agency.id, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Lead import queue unavailable",
        )


@router.get("/import/{import_id}", response_model=ImportProgress)
def get_lead_import_status(
    import_id: str,
    agency=Depends(get_current_agency),
    service: LeadImportService = Depends(get_lead_import_service),
) -> ImportProgress:
    progress = service.get_import_status(import_id)
    # imports of other agencies are reported as missing
    if progress is None or progress.agency_id != agency.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Import not found or expired",
        )
    return progress
