"""
Admission Control Middleware.

This module runs every request of the FastAPI application through the
admission pipeline, turns rejections into JSON error responses and exposes
the caller's quota state as response headers.
"""

import logging
from collections.abc import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from dealdesk.core.constants import RateLimitHeader
from dealdesk.core.interfaces.services.admission_pipeline_interface import IAdmissionPipeline
from dealdesk.domain.entities.admission import AdmissionDecision, Rejection, RejectionKind
from dealdesk.presentation.api.dependencies.rate_limiting import extract_caller_context

logger = logging.getLogger(__name__)

DEFAULT_EXEMPT_PATHS = ["/health", "/docs", "/redoc", "/openapi.json"]


def rejection_response(decision: AdmissionDecision) -> JSONResponse:
    """
    Render a rejected decision.

    Quota rejections carry ``Retry-After``; blocks deliberately do not.
    """
    rejection: Rejection = decision.rejection
    details: dict[str, object] = {"stage": rejection.stage.value, "tier": decision.tier.value}
    headers: dict[str, str] = {}
    if rejection.kind is RejectionKind.QUOTA_EXCEEDED and rejection.retry_after_seconds is not None:
        details["retry_after"] = rejection.retry_after_seconds
        headers[RateLimitHeader.RETRY_AFTER.value] = str(rejection.retry_after_seconds)
    headers.update(quota_headers(decision))

    return JSONResponse(
        status_code=rejection.http_status,
        content={
            "success": False,
            "message": rejection.message,
            "error": {"code": int(rejection.error_code), "details": details},
        },
        headers=headers,
    )


def quota_headers(decision: AdmissionDecision) -> dict[str, str]:
    headers: dict[str, str] = {}
    if decision.quota is not None:
        headers[RateLimitHeader.LIMIT.value] = str(decision.quota.limit)
        headers[RateLimitHeader.REMAINING.value] = str(decision.quota.remaining)
        headers[RateLimitHeader.RESET.value] = str(decision.quota.reset_at)
    if decision.burst_tokens_remaining is not None:
        headers[RateLimitHeader.BURST_REMAINING.value] = str(decision.burst_tokens_remaining)
    return headers


class AdmissionControlMiddleware(BaseHTTPMiddleware):
    """
    Middleware applying the admission pipeline to every non-exempt request.

    The pipeline is read from ``app.state.admission_pipeline`` (set by the
    lifespan) unless one is passed explicitly. Any unexpected failure of the
    admission layer lets the request through.
    """

    def __init__(
        self,
        app: FastAPI,
        *,
        pipeline: IAdmissionPipeline | None = None,
        exclude_paths: list[str] | None = None,
        trust_forwarded_for: bool = False,
    ):
        """
        Initialize admission control middleware.

        Args:
            app: FastAPI application
            pipeline: Admission pipeline; defaults to the one on app.state
            exclude_paths: Paths (and their sub-paths) that bypass admission
            trust_forwarded_for: Whether to read the client address from X-Forwarded-For
        """
        super().__init__(app)
        self.pipeline = pipeline
        self.exclude_paths = exclude_paths if exclude_paths is not None else DEFAULT_EXEMPT_PATHS
        self.trust_forwarded_for = trust_forwarded_for
        logger.info(f"Admission control middleware initialized with exclude paths: {self.exclude_paths}")

    def _is_exempt(self, path: str) -> bool:
        return any(path == excluded or path.startswith(excluded.rstrip("/") + "/") for excluded in self.exclude_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request with admission control.

        Args:
            request: Incoming request
            call_next: Function to call next middleware

        Returns:
            HTTP response
        """
        path = request.url.path
        if self._is_exempt(path):
            logger.debug(f"Skipping admission control for excluded path: {path}")
            return await call_next(request)

        pipeline = self.pipeline or getattr(request.app.state, "admission_pipeline", None)
        if pipeline is None:
            logger.warning(f"No admission pipeline available, allowing {request.method} {path}")
            return await call_next(request)

        try:
            context = extract_caller_context(request, self.trust_forwarded_for)
            decision = await pipeline.evaluate(context, path, request.method)
        except Exception:
            # Log error but allow request to proceed in case of admission failure
            logger.exception(f"Admission control error on {request.method} {path}, allowing request")
            return await call_next(request)

        if not decision.admitted:
            return rejection_response(decision)

        request.state.admission = decision
        response = await call_next(request)
        for header, value in quota_headers(decision).items():
            response.headers[header] = value

        await pipeline.record_outcome(decision, response.status_code)
        return response
