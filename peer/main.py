"""
Battleship peer entry point.

Usage:
    battleship-peer host [--bind 0.0.0.0] [--tcp-port 5000] [--udp-port 5001]
    battleship-peer join [--host 127.0.0.1] [--tcp-port 5000]

Or:
    python -m peer.main host

Plays one headless match with the autopilot and exits when it is over.
"""

import sys
import asyncio
import argparse
import logging
import random
import signal

import qasync
from PyQt6.QtCore import QCoreApplication

from shared.enums import MatchResult
from peer.config import settings
from peer.gui.signals import MatchSignals
from peer.local import Autopilot
from peer.session import PeerSession


logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_SETUP_FAILED = 1
EXIT_ABORTED = 2


def setup_logging(level: str) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="battleship-peer",
        description="Play a peer-to-peer Battleship match.",
    )
    parser.add_argument("role", choices=["host", "join"], help="host a match or join one")
    parser.add_argument("--host", default=settings.REMOTE_HOST, help="host address to join")
    parser.add_argument("--bind", default=settings.BIND_HOST, help="address to listen on when hosting")
    parser.add_argument("--tcp-port", type=int, default=settings.TCP_PORT, help="reliable channel port")
    parser.add_argument("--udp-port", type=int, default=settings.UDP_PORT, help="host UDP port")
    parser.add_argument("--delay", type=float, default=settings.AUTOPLAY_DELAY, help="seconds between shots")
    parser.add_argument("--seed", type=int, default=None, help="random seed for fleet and shots")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    return parser


def install_signal_handlers(session: PeerSession) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, session.request_shutdown)
        except (NotImplementedError, RuntimeError):
            # Qt-driven loops may not support it; use the plain handler
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(session.request_shutdown))


async def run_match(args: argparse.Namespace) -> int:
    """Connect, play one match and report the result."""
    session = PeerSession()

    signals = MatchSignals()
    session.coordinator.add_observer(signals)
    signals.status_changed.connect(lambda text: logger.info(f"[status] {text}"))
    signals.started.connect(lambda turn: logger.info(f"Match started, turn: {turn.value}"))
    signals.game_over.connect(
        lambda result, reason: logger.info(f"Game over: {result.value} ({reason.value})")
    )

    autopilot = Autopilot(session.coordinator, rng=random.Random(args.seed), delay=args.delay)
    install_signal_handlers(session)

    if args.role == "host":
        started = await session.host(args.bind, args.tcp_port, args.udp_port)
    else:
        started = await session.join(args.host, args.tcp_port)
    if not started:
        await session.close()
        return EXIT_SETUP_FAILED

    connected = asyncio.create_task(session.transport.wait_connected())
    finished = asyncio.create_task(session.wait_finished())
    await asyncio.wait({connected, finished}, return_when=asyncio.FIRST_COMPLETED)

    if not finished.done() and connected.result():
        autopilot.start()
        await finished
    connected.cancel()

    autopilot.stop()
    stats = session.coordinator.get_statistics()
    logger.info(f"Final statistics: {stats}")
    await session.close()

    result = session.coordinator.result
    if result in (MatchResult.WON, MatchResult.LOST):
        print(f"Match {result.value.lower()} - score {stats['scores']['local']} to {stats['scores']['opponent']}")
        return EXIT_OK
    print("Match aborted")
    return EXIT_ABORTED


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName("Battleship")

    # Set up async event loop with Qt
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)

    with loop:
        try:
            return loop.run_until_complete(run_match(args))
        except KeyboardInterrupt:
            return EXIT_ABORTED


if __name__ == "__main__":
    sys.exit(main())
