"""
Rate limit administration API endpoints.

Operator tooling for the admission-control layer: whitelist and blacklist
management, per-identifier reset and status inspection. Every endpoint
requires an admin caller. Store failures are not absorbed here; they surface
as 503 responses through the application's exception handlers.
"""

import logging

from fastapi import APIRouter, Path, status

from dealdesk.presentation.api.dependencies.rate_limiting import (
    AdminCallerDep,
    AdmissionPipelineDep,
)
from dealdesk.presentation.schemas.rate_limit import (
    BlacklistAddRequest,
    ListChangeResponse,
    RateLimitStatusResponse,
    ResetResponse,
    WhitelistAddRequest,
    WhitelistEntryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Rate Limit Administration"],
)

IDENTIFIER_DESCRIPTION = "Caller identifier, e.g. user:42, apikey:k_1 or ip:10.0.0.1"


@router.post(
    "/whitelist",
    response_model=WhitelistEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_to_whitelist(
    payload: WhitelistAddRequest,
    pipeline: AdmissionPipelineDep,
    admin: AdminCallerDep,
) -> WhitelistEntryResponse:
    """
    Exempt an identifier from every admission check.

    Args:
        payload: Identifier and optional lifetime of the entry
        pipeline: Admission pipeline
        admin: Authenticated admin caller

    Returns:
        The stored whitelist entry
    """
    logger.info(f"Admin {admin.user_id} whitelisting {payload.identifier}")
    entry = await pipeline.whitelist_add(payload.identifier, payload.duration_seconds)
    return WhitelistEntryResponse(**entry.model_dump())


@router.delete("/whitelist/{identifier:path}", response_model=ListChangeResponse)
async def remove_from_whitelist(
    pipeline: AdmissionPipelineDep,
    admin: AdminCallerDep,
    identifier: str = Path(..., description=IDENTIFIER_DESCRIPTION),
) -> ListChangeResponse:
    """Remove a whitelist entry."""
    logger.info(f"Admin {admin.user_id} removing {identifier} from whitelist")
    removed = await pipeline.whitelist_remove(identifier)
    return ListChangeResponse(identifier=identifier, changed=removed)


@router.post(
    "/blacklist",
    response_model=ListChangeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_to_blacklist(
    payload: BlacklistAddRequest,
    pipeline: AdmissionPipelineDep,
    admin: AdminCallerDep,
) -> ListChangeResponse:
    """Permanently deny an identifier until it is removed from the blacklist."""
    logger.info(f"Admin {admin.user_id} blacklisting {payload.identifier}")
    added = await pipeline.blacklist_add(payload.identifier)
    return ListChangeResponse(identifier=payload.identifier, changed=added)


@router.delete("/blacklist/{identifier:path}", response_model=ListChangeResponse)
async def remove_from_blacklist(
    pipeline: AdmissionPipelineDep,
    admin: AdminCallerDep,
    identifier: str = Path(..., description=IDENTIFIER_DESCRIPTION),
) -> ListChangeResponse:
    logger.info(f"Admin {admin.user_id} removing {identifier} from blacklist")
    removed = await pipeline.blacklist_remove(identifier)
    return ListChangeResponse(identifier=identifier, changed=removed)


@router.post("/{identifier:path}/reset", response_model=ResetResponse)
async def reset_rate_limits(
    pipeline: AdmissionPipelineDep,
    admin: AdminCallerDep,
    identifier: str = Path(..., description=IDENTIFIER_DESCRIPTION),
) -> ResetResponse:
    """
    Clear violations, block and every counter of an identifier.

    The administrative blacklist is not affected.
    """
    logger.info(f"Admin {admin.user_id} resetting rate limits of {identifier}")
    cleared = await pipeline.reset(identifier)
    return ResetResponse(identifier=identifier, keys_cleared=cleared)


@router.get("/{identifier:path}", response_model=RateLimitStatusResponse)
async def get_rate_limit_status(
    pipeline: AdmissionPipelineDep,
    admin: AdminCallerDep,
    identifier: str = Path(..., description=IDENTIFIER_DESCRIPTION),
) -> RateLimitStatusResponse:
    """Report blocks, whitelist entry, violations and live counters of an identifier."""
    current = await pipeline.get_status(identifier)
    return RateLimitStatusResponse(**current.model_dump())
