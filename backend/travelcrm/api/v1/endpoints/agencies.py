from fastapi import APIRouter, Depends

from travelcrm.core.agency_context import get_current_agency
from travelcrm.models.agency import Agency
from travelcrm.schemas.agency import AgencyOut

router = APIRouter()


@router.get("/current", response_model=AgencyOut)
def get_agency_current(agency: Agency = Depends(get_current_agency)) -> AgencyOut:
    return AgencyOut.model_validate(agency)
