"""
Admissions Voice - Exceptions

This module contains every error the turn pipeline, the session broker and
the archive can raise. Each error knows the HTTP status it maps to.
"""

from typing import Any, Dict, Optional


class VoiceAssistantError(Exception):
    """
    Base exception for all Admissions Voice errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        status_code: HTTP status the error is surfaced with
        details: Additional error details
    """

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(message='{self.message}', "
            f"status_code={self.status_code})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Error envelope returned to HTTP callers."""
        return {"error": {"message": self.message, "code": self.code}}


class InvalidInputError(VoiceAssistantError):
    """Raised when the request payload is missing or malformed."""

    code = "INVALID_INPUT"
    status_code = 400


class PayloadTooLargeError(VoiceAssistantError):
    """
    Raised when an uploaded audio payload exceeds the configured ceiling.

    Attributes:
        size: Size of the rejected payload in bytes
        limit: Maximum accepted size in bytes
    """

    code = "PAYLOAD_TOO_LARGE"
    status_code = 413

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Audio payload too large: {size} bytes (limit {limit} bytes)",
            details={"size": size, "limit": limit},
        )
        self.size = size
        self.limit = limit


class EmptyTranscriptError(VoiceAssistantError):
    """Raised when transcription yields no usable text. The caller should speak again."""

    code = "EMPTY_TRANSCRIPT"
    status_code = 400

    def __init__(self, message: str = "Could not transcribe speech") -> None:
        super().__init__(message)


class ConfigurationError(VoiceAssistantError):
    """Raised when a required setting (such as an API key) is missing."""

    code = "CONFIGURATION_ERROR"
    status_code = 500


class RequestAbortedError(VoiceAssistantError):
    """Raised when the caller disconnected before the pipeline finished."""

    code = "REQUEST_ABORTED"
    status_code = 499

    def __init__(self, stage: str) -> None:
        super().__init__(f"Client disconnected before {stage}", details={"stage": stage})
        self.stage = stage


class ArchiveError(VoiceAssistantError):
    """Raised when the archive backend fails to store an object."""

    code = "ARCHIVE_ERROR"
    status_code = 500


class UpstreamError(VoiceAssistantError):
    """
    Base class for failures of a hosted upstream operation.

    Attributes:
        operation: Name of the upstream operation (e.g. "transcription")
        upstream_status: HTTP status returned by the upstream, if one was received
    """

    code = "UPSTREAM_ERROR"
    status_code = 502

    def __init__(
        self,
        message: str,
        operation: str,
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            status_code=upstream_status,
            details={"operation": operation, **(details or {})},
        )
        self.operation = operation
        self.upstream_status = upstream_status


class TransientUpstreamError(UpstreamError):
    """Upstream returned 429 or 5xx. Expected to resolve on retry."""

    code = "TRANSIENT_UPSTREAM"


class TransientExhaustedError(TransientUpstreamError):
    """
    Raised when a transient failure persisted through every retry attempt.

    The status is the last one observed, or 429 when no response was ever
    received (only transport faults).

    Attributes:
        attempts: Number of attempts made
    """

    code = "TRANSIENT_EXHAUSTED"

    def __init__(
        self,
        operation: str,
        attempts: int,
        last_message: str,
        upstream_status: Optional[int] = None,
    ) -> None:
        super().__init__(
            f"{operation} is temporarily unavailable after {attempts} attempts, "
            f"please try again shortly ({last_message})",
            operation=operation,
            upstream_status=upstream_status or 429,
            details={"attempts": attempts},
        )
        self.attempts = attempts


class PermanentUpstreamError(UpstreamError):
    """Upstream rejected the request (bad request, auth failure). Never retried."""

    code = "PERMANENT_UPSTREAM"


class TransportFaultError(UpstreamError):
    """
    Raised when no response was received at all (connection failure, timeout).

    Treated as transient by the retrying caller.
    """

    code = "TRANSPORT_FAULT"

    def __init__(self, message: str, operation: str) -> None:
        super().__init__(message, operation=operation)
