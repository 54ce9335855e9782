"""
Upstream calls to hosted AI services.

- UpstreamClient: one call, classified as success / transient / permanent
- RetryingCaller: exponential backoff with jitter for transient failures
- OpenAIOperations: descriptors for the OpenAI endpoints
"""

from admissions_voice.upstream.client import (
    OutcomeKind,
    UpstreamClient,
    UpstreamOperation,
    UpstreamResult,
    classify_status,
    extract_error_message,
)
from admissions_voice.upstream.retry import (
    RetryPolicy,
    RetryingCaller,
    compute_backoff_delay,
)

__all__ = [
    "OutcomeKind",
    "UpstreamClient",
    "UpstreamOperation",
    "UpstreamResult",
    "classify_status",
    "extract_error_message",
    "RetryPolicy",
    "RetryingCaller",
    "compute_backoff_delay",
]
