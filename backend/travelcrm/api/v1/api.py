from fastapi import APIRouter

from travelcrm.api.v1.endpoints import agencies, lead_imports

api_router = APIRouter()

api_router.include_router(agencies.router, prefix="/agencies", tags=["agencies"])
api_router.include_router(lead_imports.router, prefix="/leads", tags=["leads"])
