"""ICE server models and traversal (TURN) providers."""

import base64
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ValidationError

from admissions_voice.config import Settings
from admissions_voice.exceptions import UpstreamError
from admissions_voice.upstream.client import UpstreamClient, UpstreamOperation


class IceServer(BaseModel):
    """One STUN/TURN entry as understood by RTCPeerConnection."""

    urls: Union[str, List[str]]
    username: Optional[str] = None
    credential: Optional[str] = None

    def url_list(self) -> List[str]:
        return [self.urls] if isinstance(self.urls, str) else list(self.urls)

    def same_as(self, other: "IceServer") -> bool:
        return (
            self.url_list() == other.url_list()
            and self.username == other.username
            and self.credential == other.credential
        )


class TraversalUnavailable(Exception):
    """The provisioned traversal fallback could not be obtained or was malformed."""


def default_ice_server(settings: Settings) -> IceServer:
    """The fixed STUN entry that every session receives."""
    return IceServer(urls=[settings.default_stun_url])


def parse_ice_servers(entries: Any) -> List[IceServer]:
    """
    Normalize a provider's ``ice_servers`` list.

    Entries may carry ``urls`` (string or list) or a legacy ``url``. Entries
    without any URL, or with non-string credentials, are dropped.

    Raises:
        TraversalUnavailable: ``entries`` is not a list or nothing usable remains
    """
    if not isinstance(entries, list):
        raise TraversalUnavailable("ice_servers is not a list")

    servers: List[IceServer] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        urls = entry.get("urls")
        if urls is None and entry.get("url"):
            urls = [entry["url"]]
        if isinstance(urls, str):
            urls = [urls]
        if not isinstance(urls, list):
            continue
        urls = [u for u in urls if isinstance(u, str) and u]
        if not urls:
            continue
        username = entry.get("username") or None
        credential = entry.get("credential") or None
        if not all(v is None or isinstance(v, str) for v in (username, credential)):
            continue
        try:
            servers.append(IceServer(urls=urls, username=username, credential=credential))
        except ValidationError:
            continue

    if not servers:
        raise TraversalUnavailable("ice_servers contained no usable entries")
    return servers


class TraversalProvider(ABC):
    """Abstract source of provisioned TURN servers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the provider name."""
        pass

    @abstractmethod
    async def fetch(self) -> List[IceServer]:
        """
        Fetch the provisioned ICE servers.

        Raises:
            TraversalUnavailable: on any failure or malformed response
        """
        pass


class TwilioTraversalProvider(TraversalProvider):
    """
    Network Traversal Service tokens from Twilio.

    Each call mints short-lived TURN credentials via the account's
    Tokens endpoint.
    """

    def __init__(self, client: UpstreamClient, settings: Settings) -> None:
        self.client = client
        self.account_sid = settings.twilio_account_sid
        self.auth_token = settings.twilio_auth_token
        self.base_url = settings.twilio_base_url.rstrip("/")
        self.timeout = settings.traversal_timeout_seconds

    @property
    def name(self) -> str:
        return "twilio"

    def operation(self) -> UpstreamOperation:
        basic = base64.b64encode(f"{self.account_sid}:{self.auth_token}".encode()).decode()
        return UpstreamOperation(
            name="twilio_tokens",
            method="POST",
            url=f"{self.base_url}/Accounts/{self.account_sid}/Tokens.json",
            headers={"Authorization": f"Basic {basic}"},
            timeout=self.timeout,
        )

    async def fetch(self) -> List[IceServer]:
        try:
            result = await self.client.execute(self.operation())
        except UpstreamError as e:
            raise TraversalUnavailable(e.message) from e

        if not result.ok:
            raise TraversalUnavailable(
                f"Twilio token request failed ({result.status_code}): {result.message}"
            )

        try:
            body = result.json()
        except ValueError as e:
            raise TraversalUnavailable("Twilio returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise TraversalUnavailable("Twilio returned an unexpected body")
        return parse_ice_servers(body.get("ice_servers"))


class StaticTurnProvider(TraversalProvider):
    """TURN servers configured through TURN_URLS / TURN_USERNAME / TURN_CREDENTIAL."""

    def __init__(self, urls: List[str], username: str = "", credential: str = "") -> None:
        self.urls = urls
        self.username = username
        self.credential = credential

    @property
    def name(self) -> str:
        return "static"

    async def fetch(self) -> List[IceServer]:
        if not self.urls:
            raise TraversalUnavailable("No TURN URLs configured")
        return [
            IceServer(
                urls=list(self.urls),
                username=self.username,
                credential=self.credential,
            )
        ]


def create_traversal_provider(
    client: UpstreamClient,
    settings: Settings,
) -> Optional[TraversalProvider]:
    """Twilio when credentials are set, else static TURN URLs, else none."""
    if settings.twilio_enabled:
        return TwilioTraversalProvider(client, settings)
    if settings.turn_url_list:
        return StaticTurnProvider(
            settings.turn_url_list,
            username=settings.turn_username,
            credential=settings.turn_credential,
        )
    return None
