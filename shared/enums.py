"""
Enumerations used throughout the game.
"""
from enum import Enum, auto


class Command(str, Enum):
    """Commands carried in wire frames."""
    # Reliable channel
    READY = "READY"
    GAME_START = "GAME_START"
    ATTACK = "ATTACK"
    ATTACK_RESULT = "ATTACK_RESULT"
    TURN_END = "TURN_END"
    GAME_OVER = "GAME_OVER"
    DISCONNECT = "DISCONNECT"
    SURRENDER = "SURRENDER"

    # Unreliable channel
    HOVER = "HOVER"
    PING = "PING"
    PONG = "PONG"


class TurnOrder(str, Enum):
    """Turn order announced in GAME_START."""
    FIRST = "FIRST"
    SECOND = "SECOND"


class AttackOutcome(str, Enum):
    """Outcome of an attack on a board. INVALID never goes on the wire."""
    HIT = "HIT"
    MISS = "MISS"
    SUNK = "SUNK"
    INVALID = "INVALID"


class MatchVerdict(str, Enum):
    """Match result declared by the sender of GAME_OVER."""
    WINNER = "WINNER"
    LOSER = "LOSER"


class ConnectionRole(str, Enum):
    """Which side of the match this process is."""
    HOST = "HOST"
    PEER = "PEER"


class Channel(str, Enum):
    """Transport channel a frame arrived on."""
    RELIABLE = "RELIABLE"
    UNRELIABLE = "UNRELIABLE"


class ChannelState(Enum):
    """Lifecycle of a single transport channel."""
    IDLE = auto()
    LISTENING = auto()
    CONNECTING = auto()
    PORT_EXCHANGED = auto()
    CONNECTED = auto()
    CLOSED = auto()


class MatchPhase(str, Enum):
    """Match coordinator state."""
    AWAITING_READY = "AWAITING_READY"
    AWAITING_START = "AWAITING_START"
    IN_PROGRESS = "IN_PROGRESS"
    OVER = "OVER"


class TurnOwner(str, Enum):
    """Which side may currently attack."""
    LOCAL = "LOCAL"
    REMOTE = "REMOTE"


class MatchResult(str, Enum):
    """Final result of a match from the local perspective."""
    WON = "WON"
    LOST = "LOST"
    ABORTED = "ABORTED"


class EndReason(str, Enum):
    """Why a match ended."""
    FLEET_DESTROYED = "FLEET_DESTROYED"
    OPPONENT_DECLARED = "OPPONENT_DECLARED"
    SURRENDER = "SURRENDER"
    DISCONNECT = "DISCONNECT"
    CONNECTION_LOST = "CONNECTION_LOST"


class AttackCheck(str, Enum):
    """Result of checking whether an attack may proceed."""
    OK = "OK"
    NOT_IN_PROGRESS = "NOT_IN_PROGRESS"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    ATTACK_PENDING = "ATTACK_PENDING"
    ALREADY_ATTACKED = "ALREADY_ATTACKED"
    INVALID_TARGET = "INVALID_TARGET"
    UNEXPECTED_RESULT = "UNEXPECTED_RESULT"
    SEND_FAILED = "SEND_FAILED"


class CellState(str, Enum):
    """State of a single board cell."""
    EMPTY = "~"
    SHIP = "S"
    HIT = "X"
    MISS = "O"
    SUNK = "#"
