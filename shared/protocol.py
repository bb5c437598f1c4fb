"""
Wire protocol for peer-to-peer Battleship.

Every message is a single text frame of the form ``COMMAND[:ARG1[:ARG2]]``.
Coordinates are encoded as ``row,col`` and a cleared hover is the literal
``null``. This module is pure: it never touches sockets and never raises on
malformed input from the network (``validate`` and ``parse_frame`` return
"invalid" instead).
"""

from dataclasses import dataclass
from typing import Any, Optional

from shared.constants import (
    COORD_SEPARATOR,
    MAX_DATAGRAM_LENGTH,
    MIN_DATAGRAM_LENGTH,
    NULL_VALUE,
    PORT_EXCHANGE_PREFIX,
    SEPARATOR,
)
from shared.enums import AttackOutcome, Channel, Command, MatchVerdict, TurnOrder
from shared.errors import ProtocolError


@dataclass(frozen=True, order=True)
class Coordinate:
    """A (row, col) pair. Bounds are checked by the board, not here."""
    row: int
    col: int

    def __str__(self) -> str:
        # Game notation: column letter, 1-based row (A1, J10)
        return f"{chr(ord('A') + self.col)}{self.row + 1}"

    def to_wire(self) -> str:
        return f"{self.row}{COORD_SEPARATOR}{self.col}"


# Argument kinds per command, in order
_COORD = "coord"
_HOVER = "hover"
_OUTCOME = "outcome"
_ORDER = "order"
_VERDICT = "verdict"

_ARG_KINDS: dict[Command, tuple[str, ...]] = {
    Command.READY: (),
    Command.GAME_START: (_ORDER,),
    Command.ATTACK: (_COORD,),
    Command.ATTACK_RESULT: (_OUTCOME, _COORD),
    Command.TURN_END: (),
    Command.GAME_OVER: (_VERDICT,),
    Command.DISCONNECT: (),
    Command.SURRENDER: (),
    Command.HOVER: (_HOVER,),
    Command.PING: (),
    Command.PONG: (),
}

# Outcomes that may travel on the wire
WIRE_OUTCOMES = (AttackOutcome.HIT, AttackOutcome.MISS, AttackOutcome.SUNK)

RELIABLE_COMMANDS = frozenset({
    Command.READY,
    Command.GAME_START,
    Command.ATTACK,
    Command.ATTACK_RESULT,
    Command.TURN_END,
    Command.GAME_OVER,
    Command.DISCONNECT,
    Command.SURRENDER,
})

UNRELIABLE_COMMANDS = frozenset({Command.HOVER, Command.PING, Command.PONG})


def channel_for(command: Command) -> Channel:
    """Channel a command is carried on."""
    return Channel.UNRELIABLE if command in UNRELIABLE_COMMANDS else Channel.RELIABLE


# =============================================================================
# Frame (tagged variant)
# =============================================================================

@dataclass(frozen=True)
class Frame:
    """A decoded protocol message: one command plus its typed arguments."""
    command: Command
    args: tuple = ()

    @property
    def channel(self) -> Channel:
        return channel_for(self.command)

    @property
    def coordinate(self) -> Optional[Coordinate]:
        """The coordinate argument, if the command carries one."""
        for arg in self.args:
            if isinstance(arg, Coordinate):
                return arg
        return None

    def to_text(self) -> str:
        """Serialize to a wire frame."""
        return encode(self.command, self.args)

    @classmethod
    def from_text(cls, text: str) -> "Frame":
        """Deserialize a wire frame. Raises ProtocolError if invalid."""
        command, args = decode(text)
        return cls(command=command, args=args)


# =============================================================================
# Field parsing helpers
# =============================================================================

def _parse_int(text: str) -> Optional[int]:
    text = text.strip()
    if not text.isdigit() or not text.isascii():
        return None
    return int(text)


def parse_coordinates(text: str) -> Optional[Coordinate]:
    """
    Parse ``row,col`` into a Coordinate.

    Returns None for the sentinel, a wrong separator count, or any
    non-integer / negative field.
    """
    if text is None or text == NULL_VALUE:
        return None

    parts = text.split(COORD_SEPARATOR)
    if len(parts) != 2:
        return None

    row = _parse_int(parts[0])
    col = _parse_int(parts[1])
    if row is None or col is None:
        return None
    return Coordinate(row, col)


def _field_is_valid(kind: str, text: str) -> bool:
    if kind == _COORD:
        return parse_coordinates(text) is not None
    if kind == _HOVER:
        return text == NULL_VALUE or parse_coordinates(text) is not None
    if kind == _OUTCOME:
        return text in {o.value for o in WIRE_OUTCOMES}
    if kind == _ORDER:
        return text in {o.value for o in TurnOrder}
    if kind == _VERDICT:
        return text in {v.value for v in MatchVerdict}
    return False


def _decode_field(kind: str, text: str) -> Any:
    if kind == _COORD:
        return parse_coordinates(text)
    if kind == _HOVER:
        return None if text == NULL_VALUE else parse_coordinates(text)
    if kind == _OUTCOME:
        return AttackOutcome(text)
    if kind == _ORDER:
        return TurnOrder(text)
    if kind == _VERDICT:
        return MatchVerdict(text)
    raise ProtocolError(f"Unknown argument kind: {kind}")


def _encode_field(kind: str, value: Any) -> str:
    if kind == _COORD:
        if not isinstance(value, Coordinate):
            raise ProtocolError(f"Expected Coordinate, got {value!r}")
        if value.row < 0 or value.col < 0:
            raise ProtocolError(f"Coordinates must be non-negative: {value!r}")
        return value.to_wire()
    if kind == _HOVER:
        if value is None:
            return NULL_VALUE
        return _encode_field(_COORD, value)
    if kind == _OUTCOME:
        if value not in WIRE_OUTCOMES:
            raise ProtocolError(f"Outcome cannot be transmitted: {value!r}")
        return AttackOutcome(value).value
    if kind == _ORDER:
        return TurnOrder(value).value
    if kind == _VERDICT:
        return MatchVerdict(value).value
    raise ProtocolError(f"Unknown argument kind: {kind}")


def _split(frame: str) -> tuple[Optional[Command], list[str]]:
    parts = frame.split(SEPARATOR)
    try:
        command = Command(parts[0])
    except ValueError:
        return None, parts[1:]
    return command, parts[1:]


# =============================================================================
# Public API
# =============================================================================

def validate(frame: Any) -> bool:
    """
    Check that a frame follows the protocol.

    Rejects empty or whitespace-only input, unknown commands, wrong arity,
    malformed coordinates and enum arguments outside their domain.
    Never raises.
    """
    if not isinstance(frame, str) or not frame.strip():
        return False

    command, fields = _split(frame)
    if command is None:
        return False

    kinds = _ARG_KINDS[command]
    if len(fields) != len(kinds):
        return False

    return all(_field_is_valid(kind, text) for kind, text in zip(kinds, fields))


def decode(frame: str) -> tuple[Command, tuple]:
    """
    Decode a frame into ``(command, args)``.

    Call after ``validate``; raises ProtocolError when the frame is invalid.
    """
    if not validate(frame):
        raise ProtocolError(f"Invalid frame: {frame!r}")

    command, fields = _split(frame)
    kinds = _ARG_KINDS[command]
    args = tuple(_decode_field(kind, text) for kind, text in zip(kinds, fields))
    return command, args


def encode(command: Command | str, args: tuple | list = ()) -> str:
    """
    Encode a command and its typed arguments into a frame.

    Inverse of ``decode``: ``decode(encode(c, a)) == (c, a)``.
    """
    try:
        command = Command(command)
    except ValueError as e:
        raise ProtocolError(f"Unknown command: {command!r}") from e

    args = tuple(args)
    kinds = _ARG_KINDS[command]
    if len(args) != len(kinds):
        raise ProtocolError(
            f"{command.value} takes {len(kinds)} argument(s), got {len(args)}"
        )

    fields = [command.value]
    for kind, value in zip(kinds, args):
        try:
            fields.append(_encode_field(kind, value))
        except ValueError as e:
            raise ProtocolError(f"Bad argument for {command.value}: {value!r}") from e
    return SEPARATOR.join(fields)


def parse_frame(frame: Any) -> Optional[Frame]:
    """Validate and decode in one step. Returns None for invalid input."""
    if not validate(frame):
        return None
    command, args = decode(frame)
    return Frame(command=command, args=args)


def check_datagram(text: str) -> Optional[str]:
    """
    Size and integrity guard for unreliable-channel payloads.

    Returns a reason string if the datagram must be dropped, else None.
    """
    if len(text) < MIN_DATAGRAM_LENGTH:
        return f"datagram too short ({len(text)} chars)"
    if len(text) > MAX_DATAGRAM_LENGTH:
        return f"datagram too large ({len(text)} chars)"
    if "\ufffd" in text or any(ord(ch) < 32 or ord(ch) == 127 for ch in text):
        return "datagram contains control or replacement characters"
    return None


# =============================================================================
# Message builders
# =============================================================================

def create_ready_message() -> str:
    return encode(Command.READY)


def create_attack_message(coord: Coordinate) -> str:
    return encode(Command.ATTACK, (coord,))


def create_attack_result_message(outcome: AttackOutcome, coord: Coordinate) -> str:
    return encode(Command.ATTACK_RESULT, (outcome, coord))


def create_hover_message(coord: Optional[Coordinate]) -> str:
    """Hover frame; ``None`` encodes the clear sentinel."""
    return encode(Command.HOVER, (coord,))


def create_game_start_message(is_first_player: bool) -> str:
    order = TurnOrder.FIRST if is_first_player else TurnOrder.SECOND
    return encode(Command.GAME_START, (order,))


def create_game_over_message(is_winner: bool) -> str:
    verdict = MatchVerdict.WINNER if is_winner else MatchVerdict.LOSER
    return encode(Command.GAME_OVER, (verdict,))


# =============================================================================
# Port exchange (consumed by the transport, never dispatched)
# =============================================================================

def create_port_exchange_message(port: int) -> str:
    return f"{PORT_EXCHANGE_PREFIX}{SEPARATOR}{port}"


def is_port_exchange(frame: str) -> bool:
    return isinstance(frame, str) and frame.startswith(PORT_EXCHANGE_PREFIX + SEPARATOR)


def parse_port_exchange(frame: str) -> Optional[int]:
    """Extract the UDP port from a port-exchange frame, or None if malformed."""
    if not is_port_exchange(frame):
        return None
    port = _parse_int(frame[len(PORT_EXCHANGE_PREFIX) + 1:])
    if port is None or not 0 < port < 65536:
        return None
    return port
