"""
Peer session: one transport wired to one match coordinator.

The transport feeds received frames into the coordinator's dispatcher and
reports channel events to it; the session watches for the end of the match.
"""

import asyncio
import logging
from typing import Optional

from shared.enums import EndReason, MatchResult
from peer.game_engine import Board
from peer.network.coordinator import MatchCoordinator, MatchObserver
from peer.network.transport import Transport


logger = logging.getLogger(__name__)


class PeerSession(MatchObserver):
    """Owns the transport and coordinator for a single match."""

    def __init__(self, transport: Optional[Transport] = None, board: Optional[Board] = None):
        self.transport = transport if transport is not None else Transport()
        self.coordinator = MatchCoordinator(self.transport, board)

        self.transport.on_reliable_frame = self.coordinator.dispatcher.process_reliable
        self.transport.on_unreliable_frame = self.coordinator.dispatcher.process_unreliable
        self.transport.on_status = self.coordinator.report_status
        self.transport.on_connection_lost = self.coordinator.handle_connection_lost

        self._finished = asyncio.Event()
        self.coordinator.add_observer(self)

    async def host(
        self,
        bind_host: str | None = None,
        tcp_port: int | None = None,
        udp_port: int | None = None,
    ) -> bool:
        return await self.transport.start_host(bind_host, tcp_port, udp_port)

    async def join(
        self,
        host: str | None = None,
        tcp_port: int | None = None,
        bind_host: str = "0.0.0.0",
    ) -> bool:
        return await self.transport.connect_to_host(host, tcp_port, bind_host=bind_host)

    async def wait_finished(self, timeout: float | None = None) -> Optional[MatchResult]:
        """Wait for the match to end and return the local result."""
        try:
            await asyncio.wait_for(self._finished.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        return self.coordinator.result

    def request_shutdown(self) -> None:
        """Leave the match (can be called from a signal handler)."""
        logger.info("Shutdown requested")
        if not self.coordinator.is_over:
            self.coordinator.disconnect()
        self._finished.set()

    async def close(self) -> None:
        if not self.coordinator.is_over and self.transport.is_connected:
            self.coordinator.disconnect()
        await self.transport.close()

    def on_game_over(self, result: MatchResult, reason: EndReason) -> None:
        self._finished.set()
