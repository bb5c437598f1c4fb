"""
Tests for the two-channel transport over real loopback sockets.

Every test binds ephemeral ports on 127.0.0.1, so nothing outside the
machine is touched.

Run from project root: python -m pytest tests/test_network -v
Or run directly: python tests/test_network/test_transport.py
"""

import asyncio
import random
import socket
import sys
import unittest
from pathlib import Path

import websockets
from websockets.exceptions import ConnectionClosed

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from peer.local import Autopilot
from peer.network import Transport
from peer.network.transport import _DatagramEndpoint
from peer.session import PeerSession
from shared.enums import ChannelState, ConnectionRole, MatchResult


LOCALHOST = "127.0.0.1"


async def wait_until(predicate, timeout: float = 3.0) -> bool:
    """Poll ``predicate`` until it holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            return False
        await asyncio.sleep(0.01)
    return True


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((LOCALHOST, 0))
        return sock.getsockname()[1]


class TransportTestCase(unittest.IsolatedAsyncioTestCase):
    """Connected host/peer pair with recorded frames."""

    async def asyncSetUp(self):
        self.host_reliable: list[str] = []
        self.host_unreliable: list[str] = []
        self.peer_reliable: list[str] = []
        self.peer_unreliable: list[str] = []
        self.host_lost: list[bool] = []
        self.host_status: list[str] = []

        self.host = Transport(
            on_reliable_frame=self.host_reliable.append,
            on_unreliable_frame=self.host_unreliable.append,
            on_status=self.host_status.append,
            on_connection_lost=lambda: self.host_lost.append(True),
            ping_burst_count=3,
            ping_interval=0.01,
        )
        self.peer = Transport(
            on_reliable_frame=self.peer_reliable.append,
            on_unreliable_frame=self.peer_unreliable.append,
            ping_burst_count=3,
            ping_interval=0.01,
        )

        self.assertTrue(await self.host.start_host(LOCALHOST, 0, 0))
        self.assertTrue(
            await self.peer.connect_to_host(LOCALHOST, self.host.reliable_port, bind_host=LOCALHOST)
        )
        self.assertTrue(await wait_until(
            lambda: self.host.remote_udp_address is not None
            and self.peer.remote_udp_address is not None
        ))

    async def asyncTearDown(self):
        await self.peer.close()
        await self.host.close()


class TestConnection(TransportTestCase):

    async def test_roles(self):
        self.assertTrue(self.host.is_host)
        self.assertEqual(self.host.role, ConnectionRole.HOST)
        self.assertFalse(self.peer.is_host)
        self.assertEqual(self.peer.role, ConnectionRole.PEER)

    async def test_port_exchange(self):
        self.assertEqual(self.peer.remote_udp_address, (LOCALHOST, self.host.local_udp_port))
        self.assertEqual(self.host.remote_udp_address, (LOCALHOST, self.peer.local_udp_port))
        self.assertTrue(await wait_until(
            lambda: self.host.reliable_state == ChannelState.PORT_EXCHANGED
            and self.peer.reliable_state == ChannelState.PORT_EXCHANGED
        ))

    async def test_port_exchange_not_dispatched(self):
        self.peer.send_reliable("READY")
        self.assertTrue(await wait_until(lambda: self.host_reliable))
        self.assertEqual(self.host_reliable, ["READY"])
        self.assertFalse(any(f.startswith("UDP_PORT") for f in self.peer_reliable))

    async def test_ping_burst_reaches_host(self):
        self.assertTrue(await wait_until(lambda: "PING" in self.host_unreliable))
        self.assertTrue(all(f == "PING" for f in self.host_unreliable))

    async def test_reliable_order_preserved(self):
        frames = ["READY", "ATTACK:3,4", "TURN_END", "ATTACK:5,6", "SURRENDER"]
        for frame in frames:
            self.assertTrue(self.peer.send_reliable(frame))
        self.assertTrue(await wait_until(lambda: len(self.host_reliable) == len(frames)))
        self.assertEqual(self.host_reliable, frames)

        self.assertTrue(self.host.send_reliable("ATTACK_RESULT:HIT:3,4"))
        self.assertTrue(await wait_until(lambda: self.peer_reliable))
        self.assertEqual(self.peer_reliable, ["ATTACK_RESULT:HIT:3,4"])

    async def test_unreliable_both_directions(self):
        self.assertTrue(self.host.send_unreliable("HOVER:1,2"))
        self.assertTrue(await wait_until(lambda: "HOVER:1,2" in self.peer_unreliable))

        self.assertTrue(self.peer.send_unreliable("HOVER:null"))
        self.assertTrue(await wait_until(lambda: "HOVER:null" in self.host_unreliable))

    async def test_bad_datagrams_dropped(self):
        loop = asyncio.get_running_loop()
        sender, _ = await loop.create_datagram_endpoint(
            asyncio.DatagramProtocol,
            remote_addr=(LOCALHOST, self.host.local_udp_port),
        )
        try:
            sender.sendto(b"PI")
            sender.sendto(b"HOVER:\x013,4")
            sender.sendto(b"HOVER:\xff\xfe")
            sender.sendto(b"H" * 1001)
            sender.sendto(b"PONG")
            self.assertTrue(await wait_until(lambda: "PONG" in self.host_unreliable))
        finally:
            sender.close()

        self.assertTrue(set(self.host_unreliable) <= {"PING", "PONG"})

    async def test_first_udp_address_wins(self):
        before = self.host.remote_udp_address
        loop = asyncio.get_running_loop()
        sender, _ = await loop.create_datagram_endpoint(
            asyncio.DatagramProtocol,
            remote_addr=(LOCALHOST, self.host.local_udp_port),
        )
        try:
            sender.sendto(b"PONG")
            self.assertTrue(await wait_until(lambda: "PONG" in self.host_unreliable))
        finally:
            sender.close()
        self.assertEqual(self.host.remote_udp_address, before)

    async def test_second_connection_refused(self):
        uri = f"ws://{LOCALHOST}:{self.host.reliable_port}"
        async with websockets.connect(uri) as intruder:
            with self.assertRaises(ConnectionClosed):
                await asyncio.wait_for(intruder.recv(), timeout=3.0)

        self.assertTrue(self.peer.send_reliable("READY"))
        self.assertTrue(await wait_until(lambda: self.host_reliable == ["READY"]))

    async def test_remote_close_reported(self):
        await self.peer.close()
        self.assertTrue(await wait_until(lambda: self.host.reliable_state == ChannelState.CLOSED))
        self.assertEqual(self.host_lost, [True])
        self.assertFalse(self.host.send_reliable("READY"))
        self.assertIn("Connection closed by remote host", self.host_status)

    async def test_close_is_idempotent(self):
        await self.peer.close()
        await self.peer.close()
        self.assertEqual(self.peer.reliable_state, ChannelState.CLOSED)
        self.assertEqual(self.peer.unreliable_state, ChannelState.CLOSED)
        self.assertFalse(self.peer.send_reliable("READY"))
        self.assertFalse(self.peer.send_unreliable("PING"))


class TestSetupFailures(unittest.IsolatedAsyncioTestCase):

    async def test_send_before_connect(self):
        transport = Transport()
        self.assertFalse(transport.send_reliable("READY"))
        self.assertFalse(transport.send_unreliable("PING"))
        self.assertEqual(transport.reliable_state, ChannelState.IDLE)
        await transport.close()

    async def test_connect_refused(self):
        statuses: list[str] = []
        transport = Transport(on_status=statuses.append)
        connected = await transport.connect_to_host(LOCALHOST, free_port(), bind_host=LOCALHOST, timeout=3.0)
        self.assertFalse(connected)
        self.assertEqual(transport.reliable_state, ChannelState.CLOSED)
        self.assertTrue(any("Connection failed" in s or "timeout" in s for s in statuses))
        await transport.close()

    async def test_port_in_use(self):
        first = Transport()
        self.assertTrue(await first.start_host(LOCALHOST, 0, 0))
        try:
            statuses: list[str] = []
            second = Transport(on_status=statuses.append)
            self.assertFalse(await second.start_host(LOCALHOST, first.reliable_port, 0))
            self.assertTrue(any("Failed to start host" in s for s in statuses))
            await second.close()
        finally:
            await first.close()


class TestStrayDatagrams(unittest.IsolatedAsyncioTestCase):
    """Datagrams from a stranger before the peer connects."""

    async def test_rejected_datagram_does_not_claim_remote_address(self):
        host = Transport(ping_burst_count=1, ping_interval=0.01)
        peer = Transport(ping_burst_count=1, ping_interval=0.01)
        loop = asyncio.get_running_loop()
        try:
            self.assertTrue(await host.start_host(LOCALHOST, 0, 0))

            stray, _ = await loop.create_datagram_endpoint(
                asyncio.DatagramProtocol,
                remote_addr=(LOCALHOST, host.local_udp_port),
            )
            try:
                stray.sendto(b"PI")
                stray.sendto(b"NOT_A_COMMAND")
                await asyncio.sleep(0.1)
            finally:
                stray.close()

            self.assertIsNone(host.remote_udp_address)
            self.assertEqual(host.unreliable_state, ChannelState.LISTENING)

            self.assertTrue(await peer.connect_to_host(LOCALHOST, host.reliable_port, bind_host=LOCALHOST))
            self.assertTrue(await wait_until(lambda: host.remote_udp_address is not None))
            self.assertEqual(host.remote_udp_address, (LOCALHOST, peer.local_udp_port))
            self.assertEqual(host.remote_udp_source, "port-exchange")
        finally:
            await peer.close()
            await host.close()


class TestDatagramQueue(unittest.TestCase):

    def test_full_queue_drops_datagrams(self):
        queue = asyncio.Queue(maxsize=2)
        endpoint = _DatagramEndpoint(queue)
        for _ in range(5):
            endpoint.datagram_received(b"PING", (LOCALHOST, 9))
        self.assertEqual(queue.qsize(), 2)
        self.assertEqual(endpoint.dropped, 3)

    def test_end_marker_fits_in_full_queue(self):
        queue = asyncio.Queue(maxsize=1)
        endpoint = _DatagramEndpoint(queue)
        endpoint.datagram_received(b"PING", (LOCALHOST, 9))
        endpoint.connection_lost(None)
        self.assertIsNone(queue.get_nowait())


class TestHeadlessMatch(unittest.IsolatedAsyncioTestCase):
    """Two autopilot sessions play a full match over loopback."""

    async def test_full_match(self):
        host = PeerSession()
        peer = PeerSession()
        host_pilot = Autopilot(host.coordinator, rng=random.Random(1), delay=0)
        peer_pilot = Autopilot(peer.coordinator, rng=random.Random(2), delay=0)

        try:
            self.assertTrue(await host.host(LOCALHOST, 0, 0))
            self.assertTrue(await peer.join(LOCALHOST, host.transport.reliable_port, bind_host=LOCALHOST))
            self.assertTrue(await host.transport.wait_connected(timeout=3.0))

            host_pilot.start()
            peer_pilot.start()

            host_result = await host.wait_finished(timeout=30.0)
            peer_result = await peer.wait_finished(timeout=5.0)
        finally:
            host_pilot.stop()
            peer_pilot.stop()
            await peer.close()
            await host.close()

        self.assertEqual({host_result, peer_result}, {MatchResult.WON, MatchResult.LOST})
        winner = host if host_result == MatchResult.WON else peer
        self.assertEqual(winner.coordinator.ledger.sunk_count, 5)
        self.assertEqual(winner.coordinator.get_statistics()["ships_remaining"]["opponent"], 0)


if __name__ == "__main__":
    unittest.main()
