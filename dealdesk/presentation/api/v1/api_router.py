"""
Main API router for version 1 of the DealDesk API.

Aggregates all endpoint routers for this version.
"""

from fastapi import APIRouter

from dealdesk.presentation.api.v1.endpoints.rate_limits import router as rate_limits_router

# Create the main router for API v1
api_v1_router = APIRouter()

api_v1_router.include_router(
    rate_limits_router,
    prefix="/admin/rate-limits",
    tags=["Rate Limit Administration"],
)
