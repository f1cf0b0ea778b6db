from fastapi import APIRouter

from kirokun.api.v1.endpoints import (
    auths,
    records,
    incidents,
    maintenance,
)

api_router = APIRouter()

# Include routers from endpoints
api_router.include_router(auths.router, prefix="/auth", tags=["auth"])
api_router.include_router(records.router, prefix="/records", tags=["records"])
api_router.include_router(incidents.router, prefix="/incidents", tags=["incidents"])
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])
