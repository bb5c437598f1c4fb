"""
Network layer for a Battleship peer.

Provides the two-channel transport, the frame dispatcher and the match
coordinator.
"""

from peer.network.transport import Transport
from peer.network.dispatcher import (
    CommandListener,
    SignalListener,
    DispatchResult,
    MessageDispatcher,
)
from peer.network.coordinator import MatchCoordinator, MatchObserver, MatchTransport


__all__ = [
    "Transport",
    "CommandListener",
    "SignalListener",
    "DispatchResult",
    "MessageDispatcher",
    "MatchCoordinator",
    "MatchObserver",
    "MatchTransport",
]
