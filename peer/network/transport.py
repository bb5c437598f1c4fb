"""
Transport for a single peer-to-peer match.

Owns exactly one reliable channel (a WebSocket connection, one text message
per frame) and one unreliable channel (a UDP datagram endpoint, one datagram
per frame). Each channel has one receive task; reliable sends go through a
writer task fed by a queue, so callers never block on the network.

All channel state (connection flags, the remote UDP address) is owned by the
event loop thread. Public methods must be called from that loop.
"""

import asyncio
import logging
from typing import Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from peer.config import settings
from shared.enums import ChannelState, Command, ConnectionRole
from shared.errors import TransportError
from shared.protocol import (
    check_datagram,
    create_port_exchange_message,
    encode,
    is_port_exchange,
    parse_port_exchange,
    validate,
)
from shared.constants import UDP_QUEUE_SIZE, UDP_RECV_BUFFER


logger = logging.getLogger(__name__)


FrameHandler = Callable[[str], None]
StatusHandler = Callable[[str], None]

# Close code sent to a second inbound connection
_MATCH_FULL_CODE = 1013

_SENDABLE = (ChannelState.CONNECTED, ChannelState.PORT_EXCHANGED)


def _wake_receiver(queue: asyncio.Queue) -> None:
    """Put the end-of-stream marker on a receive queue, making room if it is full."""
    while True:
        try:
            queue.put_nowait(None)
            return
        except asyncio.QueueFull:
            queue.get_nowait()


class _DatagramEndpoint(asyncio.DatagramProtocol):
    """Feeds received datagrams into the unreliable receive loop."""

    def __init__(self, queue: asyncio.Queue):
        self._queue = queue
        self.dropped = 0

    def datagram_received(self, data: bytes, addr) -> None:
        try:
            self._queue.put_nowait((data, addr))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug(f"UDP receive queue full, dropping datagram from {addr}")

    def error_received(self, exc: Exception) -> None:
        # ICMP port unreachable and friends; UDP is best-effort
        logger.debug(f"UDP error received: {exc}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        _wake_receiver(self._queue)


class Transport:
    """
    Reliable + unreliable channel pair for one match.

    Frames received on either channel are handed to ``on_reliable_frame`` /
    ``on_unreliable_frame`` (normally the dispatcher). Transport events are
    reported as human-readable text through ``on_status``.
    """

    def __init__(
        self,
        on_reliable_frame: Optional[FrameHandler] = None,
        on_unreliable_frame: Optional[FrameHandler] = None,
        on_status: Optional[StatusHandler] = None,
        on_connection_lost: Optional[Callable[[], None]] = None,
        ping_burst_count: Optional[int] = None,
        ping_interval: Optional[float] = None,
    ):
        self.on_reliable_frame = on_reliable_frame
        self.on_unreliable_frame = on_unreliable_frame
        self.on_status = on_status
        self.on_connection_lost = on_connection_lost

        self._ping_burst_count = (
            settings.PING_BURST_COUNT if ping_burst_count is None else ping_burst_count
        )
        self._ping_interval = settings.PING_INTERVAL if ping_interval is None else ping_interval

        self._role: Optional[ConnectionRole] = None
        self._reliable_state = ChannelState.IDLE
        self._unreliable_state = ChannelState.IDLE

        # Reliable channel
        self._server = None
        self._websocket = None
        self._accepted = False
        self._remote_host: Optional[str] = None
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._connected_event = asyncio.Event()

        # Unreliable channel
        self._udp_transport: Optional[asyncio.DatagramTransport] = None
        self._udp_queue: asyncio.Queue = asyncio.Queue(maxsize=UDP_QUEUE_SIZE)
        self._remote_udp: Optional[tuple] = None
        self._remote_udp_source: Optional[str] = None
        self._remote_udp_known = asyncio.Event()

        self._writer_task: Optional[asyncio.Task] = None
        self._tasks: list[asyncio.Task] = []
        self._closing = False

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def role(self) -> Optional[ConnectionRole]:
        return self._role

    @property
    def is_host(self) -> bool:
        return self._role == ConnectionRole.HOST

    @property
    def reliable_state(self) -> ChannelState:
        return self._reliable_state

    @property
    def unreliable_state(self) -> ChannelState:
        return self._unreliable_state

    @property
    def is_connected(self) -> bool:
        return self._reliable_state in _SENDABLE

    @property
    def remote_udp_address(self) -> Optional[tuple]:
        return self._remote_udp

    @property
    def remote_udp_source(self) -> Optional[str]:
        """How the remote UDP address was learned: 'port-exchange' or 'datagram'."""
        return self._remote_udp_source

    @property
    def local_udp_port(self) -> Optional[int]:
        if self._udp_transport is None:
            return None
        return self._udp_transport.get_extra_info("sockname")[1]

    @property
    def reliable_port(self) -> Optional[int]:
        """Port the host is listening on (useful when bound to port 0)."""
        if self._server is None:
            return None
        sockets = list(self._server.sockets or [])
        return sockets[0].getsockname()[1] if sockets else None

    # =========================================================================
    # Setup
    # =========================================================================

    async def start_host(
        self,
        bind_host: str | None = None,
        tcp_port: int | None = None,
        udp_port: int | None = None,
    ) -> bool:
        """
        Open the reliable listener and the UDP endpoint on known ports.

        Returns:
            True if both endpoints are open. The peer connects later;
            use ``wait_connected`` to wait for it.
        """
        bind_host = bind_host or settings.BIND_HOST
        tcp_port = settings.TCP_PORT if tcp_port is None else tcp_port
        udp_port = settings.UDP_PORT if udp_port is None else udp_port

        self._role = ConnectionRole.HOST
        try:
            await self._open_udp(bind_host, udp_port)
            self._server = await websockets.serve(
                self._handle_inbound,
                bind_host,
                tcp_port,
                ping_interval=30,
                ping_timeout=10,
            )
        except (OSError, TransportError) as e:
            logger.error(f"Failed to start host on {bind_host}:{tcp_port}/{udp_port}: {e}")
            self._status(f"Failed to start host: {e}")
            await self.close()
            return False

        self._reliable_state = ChannelState.LISTENING
        self._status(f"Waiting for opponent on TCP port {self.reliable_port}, UDP port {self.local_udp_port}")
        logger.info(f"Host listening on {bind_host}:{self.reliable_port} (UDP {self.local_udp_port})")
        return True

    async def connect_to_host(
        self,
        host: str | None = None,
        tcp_port: int | None = None,
        bind_host: str = "0.0.0.0",
        timeout: float = 10.0,
    ) -> bool:
        """
        Connect to a host's reliable endpoint and bind an ephemeral UDP port.

        Returns:
            True if the reliable channel is connected.
        """
        host = host or settings.REMOTE_HOST
        tcp_port = settings.TCP_PORT if tcp_port is None else tcp_port

        self._role = ConnectionRole.PEER
        self._reliable_state = ChannelState.CONNECTING
        self._status(f"Connecting to {host}:{tcp_port}...")

        try:
            await self._open_udp(bind_host, 0)
            websocket = await asyncio.wait_for(
                websockets.connect(f"ws://{host}:{tcp_port}", ping_interval=30, ping_timeout=10),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Connection to {host}:{tcp_port} timed out")
            self._status("Connection timeout")
            await self.close()
            return False
        except (OSError, WebSocketException, TransportError) as e:
            logger.error(f"Failed to connect to {host}:{tcp_port}: {e}")
            self._status(f"Connection failed: {e}")
            await self.close()
            return False

        self._accept_connection(websocket, remote_host=websocket.remote_address[0])
        self._tasks.append(asyncio.create_task(self._receive_reliable(websocket)))
        self._tasks.append(asyncio.create_task(self._ping_burst()))
        return True

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """Wait until the reliable channel is connected."""
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return self.is_connected

    async def _open_udp(self, bind_host: str, port: int) -> None:
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _DatagramEndpoint(self._udp_queue),
                local_addr=(bind_host, port),
            )
        except OSError as e:
            raise TransportError(f"UDP bind on {bind_host}:{port} failed: {e}") from e

        self._udp_transport = transport
        self._unreliable_state = ChannelState.LISTENING
        self._tasks.append(asyncio.create_task(self._receive_unreliable()))
        logger.info(f"UDP endpoint bound on port {self.local_udp_port}")

    async def _handle_inbound(self, websocket) -> None:
        """Server handler: accept exactly one opponent, refuse the rest."""
        if self._accepted or self._closing:
            logger.warning(f"Refusing extra connection from {websocket.remote_address}")
            await websocket.close(code=_MATCH_FULL_CODE, reason="match already in progress")
            return

        self._accepted = True
        remote_host = websocket.remote_address[0]
        self._status(f"Opponent connected from {remote_host}")
        self._accept_connection(websocket, remote_host=remote_host)

        # The handler task doubles as the reliable receive loop
        await self._receive_reliable(websocket)

    def _accept_connection(self, websocket, remote_host: str) -> None:
        self._websocket = websocket
        self._remote_host = remote_host
        self._reliable_state = ChannelState.CONNECTED
        self._writer_task = asyncio.create_task(self._write_reliable(websocket))
        self._tasks.append(self._writer_task)

        # Tell the other side where our UDP endpoint lives
        self.send_reliable(create_port_exchange_message(self.local_udp_port))
        self._connected_event.set()
        logger.info(f"Reliable channel connected ({self._role.value}) to {remote_host}")

    # =========================================================================
    # Sending
    # =========================================================================

    def send_reliable(self, text: str) -> bool:
        """
        Queue a frame on the reliable channel.

        Returns:
            False if the channel is not connected. No retry is attempted.
        """
        if self._reliable_state not in _SENDABLE:
            return False
        self._outbox.put_nowait(text)
        return True

    def send_unreliable(self, text: str) -> bool:
        """
        Send a datagram on the unreliable channel.

        Returns:
            False if the endpoint is closed, the remote address is unknown,
            or the socket reported an error.
        """
        if (
            self._udp_transport is None
            or self._remote_udp is None
            or self._unreliable_state == ChannelState.CLOSED
            or self._udp_transport.is_closing()
        ):
            return False

        try:
            self._udp_transport.sendto(text.encode("utf-8"), self._remote_udp)
        except OSError as e:
            logger.debug(f"UDP send failed: {e}")
            return False
        return True

    async def _write_reliable(self, websocket) -> None:
        """Writer task: the only code that writes to the WebSocket."""
        while True:
            text = await self._outbox.get()
            if text is None:
                break
            try:
                await websocket.send(text)
            except ConnectionClosed:
                logger.info("Reliable channel closed while sending")
                break
            except Exception as e:
                logger.exception(f"Failed to send frame: {e}")
                break
        self._mark_reliable_closed()

    async def _ping_burst(self) -> None:
        """Peer only: announce our UDP address to the host's socket."""
        ping = encode(Command.PING)
        try:
            await asyncio.wait_for(self._remote_udp_known.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Host UDP address unknown; skipping PING burst")
            return

        for _ in range(self._ping_burst_count):
            if not self.send_unreliable(ping):
                break
            await asyncio.sleep(self._ping_interval)
        logger.debug(f"PING burst of {self._ping_burst_count} sent to {self._remote_udp}")

    # =========================================================================
    # Receiving
    # =========================================================================

    async def _receive_reliable(self, websocket) -> None:
        """Reliable receive loop: one frame per message."""
        try:
            async for raw in websocket:
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8", errors="replace")
                text = raw.rstrip("\r\n")

                if is_port_exchange(text):
                    self._handle_port_exchange(text)
                    continue

                if self.on_reliable_frame is None:
                    continue
                try:
                    self.on_reliable_frame(text)
                except Exception as e:
                    logger.exception(f"Error handling reliable frame {text!r}: {e}")

        except ConnectionClosed:
            logger.info("Reliable channel closed by remote host")
        except Exception as e:
            logger.exception(f"Reliable receive loop error: {e}")
        finally:
            self._mark_reliable_closed()

    async def _receive_unreliable(self) -> None:
        """Unreliable receive loop: one frame per datagram."""
        while True:
            item = await self._udp_queue.get()
            if item is None or self._unreliable_state == ChannelState.CLOSED:
                break

            data, addr = item
            text = data[:UDP_RECV_BUFFER].decode("utf-8", errors="replace")
            reason = check_datagram(text)
            if reason is None and not validate(text):
                reason = "not a valid frame"
            if reason:
                logger.warning(f"Dropping UDP datagram from {addr}: {reason}")
                continue

            # Only a well-formed frame may name the remote endpoint
            self._adopt_remote_udp(addr, source="datagram")
            if self._remote_udp == (addr[0], addr[1]) and self._unreliable_state in (
                ChannelState.LISTENING, ChannelState.PORT_EXCHANGED
            ):
                self._unreliable_state = ChannelState.CONNECTED

            if self.on_unreliable_frame is None:
                continue
            try:
                self.on_unreliable_frame(text)
            except Exception as e:
                logger.exception(f"Error handling unreliable frame {text!r}: {e}")

        self._unreliable_state = ChannelState.CLOSED

    def _handle_port_exchange(self, text: str) -> None:
        port = parse_port_exchange(text)
        if port is None:
            logger.warning(f"Invalid port exchange frame: {text!r}")
            self._status(f"Invalid UDP port received: {text}")
            return

        if self._reliable_state == ChannelState.CONNECTED:
            self._reliable_state = ChannelState.PORT_EXCHANGED
        if self._adopt_remote_udp((self._remote_host, port), source="port-exchange"):
            if self._unreliable_state == ChannelState.LISTENING:
                self._unreliable_state = ChannelState.PORT_EXCHANGED
            self._status(f"Remote UDP port is {port}")

    def _adopt_remote_udp(self, address: tuple, source: str) -> bool:
        """Set the remote UDP target. The first discovery path wins; later ones never overwrite."""
        address = (address[0], address[1])
        if self._remote_udp is not None:
            if address != self._remote_udp:
                logger.debug(
                    f"Ignoring UDP address {address} from {source}; "
                    f"already using {self._remote_udp} from {self._remote_udp_source}"
                )
            return False

        self._remote_udp = address
        self._remote_udp_source = source
        self._remote_udp_known.set()
        logger.info(f"Remote UDP address {address} learned from {source}")
        return True

    # =========================================================================
    # Teardown
    # =========================================================================

    def _mark_reliable_closed(self) -> None:
        if self._reliable_state == ChannelState.CLOSED:
            return
        was_connected = self._reliable_state in _SENDABLE
        self._reliable_state = ChannelState.CLOSED
        self._outbox.put_nowait(None)
        self._connected_event.set()

        if was_connected and not self._closing:
            self._status("Connection closed by remote host")
            if self.on_connection_lost:
                try:
                    self.on_connection_lost()
                except Exception as e:
                    logger.exception(f"Error in connection-lost handler: {e}")

    async def close(self) -> None:
        """Stop both receive loops and close both endpoints. Safe to call repeatedly."""
        if self._closing:
            return
        self._closing = True

        self._mark_reliable_closed()

        # Let queued frames (a final DISCONNECT, say) reach the socket first
        current = asyncio.current_task()
        if self._writer_task is not None and self._writer_task is not current and not self._writer_task.done():
            try:
                await asyncio.wait_for(self._writer_task, timeout=1.0)
            except asyncio.TimeoutError:
                logger.debug("Reliable writer did not drain before close")

        self._unreliable_state = ChannelState.CLOSED

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")

        if self._server is not None:
            self._server.close()
            try:
                await self._server.wait_closed()
            except Exception as e:
                logger.debug(f"Error closing listener: {e}")

        if self._udp_transport is not None:
            self._udp_transport.close()
        _wake_receiver(self._udp_queue)

        pending = [t for t in self._tasks if t is not current and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()

        logger.info("Transport closed")

    def _status(self, text: str) -> None:
        if self.on_status:
            try:
                self.on_status(text)
            except Exception as e:
                logger.exception(f"Error in status handler: {e}")
