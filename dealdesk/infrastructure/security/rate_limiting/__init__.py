"""
Request admission control.

Layered window limits, burst protection, violation escalation and
allow/deny overrides over a shared counter store.
"""

from dealdesk.infrastructure.security.rate_limiting.config import (
    AdmissionConfig,
    BurstConfig,
    EndpointRule,
    EscalationPolicy,
    WindowRule,
)
from dealdesk.infrastructure.security.rate_limiting.pipeline import AdmissionPipeline
from dealdesk.infrastructure.security.rate_limiting.providers import (
    create_admission_pipeline,
    create_counter_store,
)

__all__ = [
    "AdmissionConfig",
    "AdmissionPipeline",
    "BurstConfig",
    "EndpointRule",
    "EscalationPolicy",
    "WindowRule",
    "create_admission_pipeline",
    "create_counter_store",
]
