"""
Admission Control FastAPI Dependencies.

This module provides the dependencies shared by the admission middleware and
the rate limit administration endpoints: resolving the caller context of a
request, reaching the process-wide pipeline, and gating admin operations.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from dealdesk.core.config.settings import Settings, get_settings
from dealdesk.core.interfaces.services.admission_pipeline_interface import IAdmissionPipeline
from dealdesk.domain.entities.caller import (
    Anonymous,
    ApiCredential,
    AuthenticatedUser,
    CallerContext,
)
from dealdesk.domain.enums import RateLimitTier

logger = logging.getLogger(__name__)


def client_address(request: Request, trust_forwarded_for: bool = False) -> str | None:
    """
    Network address of the caller.

    ``X-Forwarded-For`` is only honoured when the service runs behind a proxy
    that sets it; otherwise any client could pick its own identity.
    """
    if trust_forwarded_for:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # First address is the client, the rest are proxies
            return forwarded_for.split(",")[0].strip()

    if request.client:
        return request.client.host
    return None


def extract_caller_context(
    request: Request,
    trust_forwarded_for: bool = False,
) -> CallerContext:
    """
    Build the caller context the authentication layer left on the request.

    The authentication layer may store a complete ``CallerContext`` on
    ``request.state.caller_context``, or just a caller identity on
    ``request.state.caller`` and an explicit key on
    ``request.state.rate_limit_key``. Without either the caller is anonymous
    and is identified by its network address; credentials in request headers
    are not trusted until the authentication layer has validated them.

    Args:
        request: Incoming request
        trust_forwarded_for: Whether to read the address from X-Forwarded-For

    Returns:
        CallerContext for the admission pipeline
    """
    context = getattr(request.state, "caller_context", None)
    if isinstance(context, CallerContext):
        return context

    identity = getattr(request.state, "caller", None)
    if not isinstance(identity, Anonymous | AuthenticatedUser | ApiCredential):
        identity = Anonymous()

    return CallerContext(
        identity=identity,
        network_address=client_address(request, trust_forwarded_for),
        override_key=getattr(request.state, "rate_limit_key", None),
    )


def get_admission_pipeline(request: Request) -> IAdmissionPipeline:
    """Return the pipeline created at startup."""
    pipeline = getattr(request.app.state, "admission_pipeline", None)
    if pipeline is None:
        logger.error("Admission pipeline requested before application startup")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service is not available.",
        )
    return pipeline


AdmissionPipelineDep = Annotated[IAdmissionPipeline, Depends(get_admission_pipeline)]


def get_caller_context(request: Request) -> CallerContext:
    settings: Settings = getattr(request.app.state, "settings", None) or get_settings()
    return extract_caller_context(
        request,
        trust_forwarded_for=settings.RATE_LIMIT_TRUST_FORWARDED_FOR,
    )


CallerContextDep = Annotated[CallerContext, Depends(get_caller_context)]


async def require_admin_caller(caller: CallerContextDep, pipeline: AdmissionPipelineDep) -> AuthenticatedUser:
    """Dependency that requires the caller to be classified into the admin tier."""
    identity = caller.identity
    if not isinstance(identity, AuthenticatedUser) or pipeline.classify(caller) is not RateLimitTier.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The user does not have permission to perform this action.",
        )
    return identity


AdminCallerDep = Annotated[AuthenticatedUser, Depends(require_admin_caller)]
