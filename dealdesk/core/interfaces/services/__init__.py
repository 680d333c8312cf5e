"""
Service interfaces package.

Abstractions the application and presentation layers depend on.
"""

from dealdesk.core.interfaces.services.admission_pipeline_interface import IAdmissionPipeline
from dealdesk.core.interfaces.services.counter_store_interface import (
    CounterState,
    ICounterStore,
    TokenBucketState,
)

__all__ = ["CounterState", "IAdmissionPipeline", "ICounterStore", "TokenBucketState"]
