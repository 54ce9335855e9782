"""Realtime session issuance and ICE server selection."""

from admissions_voice.session.broker import SessionBroker, SessionGrant, merge_ice_servers
from admissions_voice.session.ice import (
    IceServer,
    StaticTurnProvider,
    TraversalProvider,
    TraversalUnavailable,
    TwilioTraversalProvider,
    create_traversal_provider,
    default_ice_server,
    parse_ice_servers,
)

__all__ = [
    "SessionBroker",
    "SessionGrant",
    "merge_ice_servers",
    "IceServer",
    "StaticTurnProvider",
    "TraversalProvider",
    "TraversalUnavailable",
    "TwilioTraversalProvider",
    "create_traversal_provider",
    "default_ice_server",
    "parse_ice_servers",
]
