"""Single-shot calls to hosted upstream operations."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

import httpx

from admissions_voice.exceptions import TransportFaultError


class OutcomeKind(str, Enum):
    """Outcome of one upstream call."""

    SUCCESS = "success"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


def classify_status(status_code: int) -> OutcomeKind:
    """Map a failed HTTP status to transient (429, 5xx) or permanent."""
    if status_code == 429 or 500 <= status_code <= 599:
        return OutcomeKind.TRANSIENT
    return OutcomeKind.PERMANENT


@dataclass
class UpstreamOperation:
    """Description of one outbound call to a hosted service."""

    name: str
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    json: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    files: Optional[Dict[str, Any]] = None
    timeout: Optional[float] = None
    classify: Callable[[int], OutcomeKind] = classify_status


@dataclass
class UpstreamResult:
    """Tri-state result of an upstream call."""

    kind: OutcomeKind
    status_code: int
    content: bytes = b""
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    def json(self) -> Any:
        """Decode the response body as JSON."""
        return json.loads(self.content)


def extract_error_message(response: httpx.Response) -> str:
    """Pull a readable message out of an error response.

    JSON bodies in the OpenAI shape yield ``error.message``; anything that is
    not JSON is kept as raw text.
    """
    try:
        error_data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(error_data, dict):
        error = error_data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        message = error_data.get("message") or error_data.get("detail")
        if message:
            return str(message)
    return response.text or f"HTTP {response.status_code}"


class UpstreamClient:
    """
    Performs exactly one HTTP call per operation and classifies the outcome.

    HTTP error responses never raise; only transport faults do.

    Usage:
        client = UpstreamClient(httpx.AsyncClient())
        result = await client.execute(operation)
        if result.ok:
            body = result.json()
    """

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http_client = http_client

    async def execute(self, operation: UpstreamOperation) -> UpstreamResult:
        """Execute the operation once."""
        request_kwargs: Dict[str, Any] = {
            "headers": operation.headers,
            "json": operation.json,
            "data": operation.data,
            "files": operation.files,
        }
        if operation.timeout is not None:
            request_kwargs["timeout"] = operation.timeout

        try:
            response = await self._http_client.request(
                operation.method,
                operation.url,
                **request_kwargs,
            )
        except httpx.TimeoutException as e:
            raise TransportFaultError(
                f"{operation.name} timed out: {e}", operation=operation.name
            ) from e
        except httpx.RequestError as e:
            raise TransportFaultError(
                f"{operation.name} request failed: {e}", operation=operation.name
            ) from e

        if response.is_success:
            return UpstreamResult(
                kind=OutcomeKind.SUCCESS,
                status_code=response.status_code,
                content=response.content,
            )

        return UpstreamResult(
            kind=operation.classify(response.status_code),
            status_code=response.status_code,
            content=response.content,
            message=extract_error_message(response),
        )
