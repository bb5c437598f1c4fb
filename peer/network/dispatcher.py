"""
Message dispatcher for routing received frames to listeners.

Parses each frame, checks that it arrived on the channel its command belongs
to, and hands the typed arguments to either the command listener (reliable
channel) or the signal listener (unreliable channel). Holds no match state.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from shared.enums import AttackOutcome, Channel, Command, MatchVerdict, TurnOrder
from shared.protocol import Coordinate, parse_frame


logger = logging.getLogger(__name__)


class CommandListener(Protocol):
    """Receives reliable-channel game commands."""

    def handle_ready(self) -> None: ...

    def handle_game_start(self, order: TurnOrder) -> None: ...

    def handle_attack(self, coord: Coordinate) -> None: ...

    def handle_attack_result(self, outcome: AttackOutcome, coord: Coordinate) -> None: ...

    def handle_turn_end(self) -> None: ...

    def handle_game_over(self, verdict: MatchVerdict) -> None: ...

    def handle_disconnect(self) -> None: ...

    def handle_surrender(self) -> None: ...


class SignalListener(Protocol):
    """Receives unreliable-channel signals."""

    def handle_hover(self, coord: Optional[Coordinate]) -> None: ...

    def handle_ping(self) -> None: ...

    def handle_pong(self) -> None: ...


@dataclass
class DispatchResult:
    """Result of dispatching one frame."""
    delivered: bool
    command: Command | None = None
    # Why the frame was dropped (None when delivered)
    reason: str | None = None


class MessageDispatcher:
    """
    Routes frames to the command listener or the signal listener.

    Invalid frames, frames on the wrong channel and handler failures are
    logged, reported through ``on_status`` and never delivered.
    """

    def __init__(
        self,
        command_listener: CommandListener,
        signal_listener: SignalListener,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        self._commands = command_listener
        self._signals = signal_listener
        self.on_status = on_status

    def process_reliable(self, text: str) -> DispatchResult:
        """Dispatch a frame received on the reliable channel."""
        return self._dispatch(text, Channel.RELIABLE)

    def process_unreliable(self, text: str) -> DispatchResult:
        """Dispatch a frame received on the unreliable channel."""
        return self._dispatch(text, Channel.UNRELIABLE)

    def _dispatch(self, text: str, channel: Channel) -> DispatchResult:
        frame = parse_frame(text)
        if frame is None:
            return self._drop(None, f"Invalid {channel.value.lower()} frame: {text!r}")

        if frame.channel != channel:
            return self._drop(
                frame.command,
                f"{frame.command.value} is not allowed on the {channel.value.lower()} channel",
            )

        handler = self._get_handler(frame.command)
        if handler is None:
            return self._drop(frame.command, f"No handler for {frame.command.value}")

        if frame.command == Command.HOVER:
            logger.debug(f"Dispatching {text!r}")
        else:
            logger.info(f"Received {text!r}")

        try:
            handler(*frame.args)
        except Exception as e:
            logger.exception(f"Error handling {frame.command.value}: {e}")
            return DispatchResult(delivered=False, command=frame.command, reason=f"Handler error: {e}")

        return DispatchResult(delivered=True, command=frame.command)

    def _get_handler(self, command: Command):
        """Get the listener method for a command."""
        handlers = {
            # Reliable channel
            Command.READY: self._commands.handle_ready,
            Command.GAME_START: self._commands.handle_game_start,
            Command.ATTACK: self._commands.handle_attack,
            Command.ATTACK_RESULT: self._commands.handle_attack_result,
            Command.TURN_END: self._commands.handle_turn_end,
            Command.GAME_OVER: self._commands.handle_game_over,
            Command.DISCONNECT: self._commands.handle_disconnect,
            Command.SURRENDER: self._commands.handle_surrender,

            # Unreliable channel
            Command.HOVER: self._signals.handle_hover,
            Command.PING: self._signals.handle_ping,
            Command.PONG: self._signals.handle_pong,
        }
        return handlers.get(command)

    def _drop(self, command: Command | None, reason: str) -> DispatchResult:
        logger.warning(f"Dropping frame: {reason}")
        if self.on_status:
            self.on_status(reason)
        return DispatchResult(delivered=False, command=command, reason=reason)

