"""
Exception hierarchy for the Battleship network layer.
"""


class BattleshipError(Exception):
    """Base class for all errors raised by this package."""


class ProtocolError(BattleshipError, ValueError):
    """A frame or argument does not follow the wire protocol."""


class TransportError(BattleshipError, OSError):
    """A transport channel could not be opened or used."""
