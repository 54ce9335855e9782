"""Realtime session broker: ephemeral credential plus ICE server list."""

import asyncio
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from admissions_voice.exceptions import PermanentUpstreamError
from admissions_voice.pipeline.prompts import REALTIME_INSTRUCTIONS
from admissions_voice.session.ice import IceServer, TraversalProvider, TraversalUnavailable
from admissions_voice.upstream.client import UpstreamOperation
from admissions_voice.upstream.openai import OpenAIOperations
from admissions_voice.upstream.retry import RetryingCaller

logger = structlog.get_logger()


@dataclass
class SessionGrant:
    """Everything a browser needs to open a realtime voice session."""

    client_secret: Any
    model: str
    voice: str
    ice_servers: List[IceServer] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "client_secret": self.client_secret,
            "model": self.model,
            "voice": self.voice,
            "ice_servers": [s.model_dump(exclude_none=True) for s in self.ice_servers],
        }


def merge_ice_servers(
    default: IceServer,
    provisioned: Optional[List[IceServer]],
) -> List[IceServer]:
    """Default entry first, followed by provisioned entries not equal to it."""
    servers = [default]
    for server in provisioned or []:
        if not server.same_as(default):
            servers.append(server)
    return servers


class SessionBroker:
    """
    Issues one ephemeral realtime credential per request.

    The credential call and the traversal fallback run concurrently. A
    credential failure propagates verbatim; a traversal failure degrades to
    the default STUN entry only. Nothing is retained after ``issue`` returns.
    """

    def __init__(
        self,
        caller: RetryingCaller,
        operations: OpenAIOperations,
        default_server: IceServer,
        traversal_provider: Optional[TraversalProvider] = None,
        traversal_timeout: float = 5.0,
        instructions: str = REALTIME_INSTRUCTIONS,
    ) -> None:
        self.caller = caller
        self.operations = operations
        self.default_server = default_server
        self.traversal_provider = traversal_provider
        self.traversal_timeout = traversal_timeout
        self.instructions = instructions
        self.logger = logger.bind(component="session_broker")

    async def issue(self) -> SessionGrant:
        """Issue a credential and the merged ICE server list."""
        # Built up front so configuration errors surface before any task starts
        operation = self.operations.realtime_session(self.instructions)

        fallback_task = asyncio.create_task(self.provision_fallback())
        try:
            credential = await self.issue_credential(operation)
        except BaseException:
            fallback_task.cancel()
            with suppress(asyncio.CancelledError):
                await fallback_task
            raise

        provisioned = await fallback_task
        ice_servers = merge_ice_servers(self.default_server, provisioned)

        settings = self.operations.settings
        self.logger.info(
            "Issued realtime session",
            model=settings.realtime_model,
            ice_servers=len(ice_servers),
            fallback=provisioned is not None,
        )

        return SessionGrant(
            client_secret=credential.get("client_secret"),
            model=settings.realtime_model,
            voice=settings.realtime_voice,
            ice_servers=ice_servers,
        )

    async def issue_credential(self, operation: UpstreamOperation) -> Dict[str, Any]:
        """Ephemeral session issuance through the retrying caller."""
        result = await self.caller.call(operation)
        try:
            body = result.json()
        except ValueError as e:
            raise PermanentUpstreamError(
                "realtime_session returned a non-JSON body",
                operation=operation.name,
                upstream_status=502,
            ) from e
        if not isinstance(body, dict) or "client_secret" not in body:
            raise PermanentUpstreamError(
                "realtime_session response has no client_secret",
                operation=operation.name,
                upstream_status=502,
            )
        return body

    async def provision_fallback(self) -> Optional[List[IceServer]]:
        """
        Provisioned TURN servers, or None.

        Provider outages, timeouts and malformed responses are logged and
        turned into None so they never block session issuance.
        """
        if self.traversal_provider is None:
            return None

        provider = self.traversal_provider.name
        try:
            return await asyncio.wait_for(
                self.traversal_provider.fetch(),
                timeout=self.traversal_timeout,
            )
        except TraversalUnavailable as e:
            self.logger.warning("ICE fallback unavailable", provider=provider, error=str(e))
        except asyncio.TimeoutError:
            self.logger.warning(
                "ICE fallback timed out",
                provider=provider,
                timeout=self.traversal_timeout,
            )
        return None
