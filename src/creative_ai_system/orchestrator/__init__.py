"""Generation orchestration: routing, retries, polling and fallback."""

from .job_poller import AsyncJobPoller, JobStatus, PollableJob
from .model_router import DEFAULT_MODELS, DEFAULT_ROUTES, CallShape, ModelRoute, ModelRouter
from .orchestrator import ProviderFallbackOrchestrator
from .retry_handler import RetryPolicy, is_transient_error

__all__ = [
    "AsyncJobPoller",
    "CallShape",
    "DEFAULT_MODELS",
    "DEFAULT_ROUTES",
    "JobStatus",
    "ModelRoute",
    "ModelRouter",
    "PollableJob",
    "ProviderFallbackOrchestrator",
    "RetryPolicy",
    "is_transient_error",
]
