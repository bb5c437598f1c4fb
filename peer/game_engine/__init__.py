"""
Game engine package: the local board collaborator and opponent bookkeeping.
"""
from .ship import Ship, ShipType, FLEET_TYPES, create_fleet
from .board import Board
from .ledger import OpponentShipLedger, PlaceholderShip
from .scoreboard import Scores, score_from_board, score_from_outcomes

__all__ = [
    "Ship",
    "ShipType",
    "FLEET_TYPES",
    "create_fleet",
    "Board",
    "OpponentShipLedger",
    "PlaceholderShip",
    "Scores",
    "score_from_board",
    "score_from_outcomes",
]
