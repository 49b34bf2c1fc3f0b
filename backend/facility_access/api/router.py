"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from facility_access.api.routes import scan, facilities, waitlist

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(scan.router)
api_router.include_router(facilities.router)
api_router.include_router(waitlist.router)
