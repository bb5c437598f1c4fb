"""
Score calculation.

1 point per hit (a sinking shot counts as a hit), 5 bonus points per sunk
ship and a 50 point bonus for victory.
"""
from dataclasses import dataclass
from typing import Iterable

from shared.constants import POINTS_PER_HIT, POINTS_PER_SUNK, VICTORY_BONUS
from shared.enums import AttackOutcome

from .board import Board


@dataclass
class Scores:
    local: int = 0
    opponent: int = 0

    def to_dict(self) -> dict:
        return {"local": self.local, "opponent": self.opponent}


def score_from_outcomes(outcomes: Iterable[AttackOutcome], fleet_size: int) -> int:
    """Score for the attacker given the outcomes the defender reported."""
    score = 0
    sunk = 0
    for outcome in outcomes:
        if outcome in (AttackOutcome.HIT, AttackOutcome.SUNK):
            score += POINTS_PER_HIT
        if outcome == AttackOutcome.SUNK:
            sunk += 1
    score += sunk * POINTS_PER_SUNK
    if fleet_size and sunk >= fleet_size:
        score += VICTORY_BONUS
    return score


def score_from_board(board: Board) -> int:
    """Score the opponent earned against our own board."""
    score = 0
    for ship in board.ships:
        score += ship.hit_count * POINTS_PER_HIT
        if ship.is_sunk:
            score += POINTS_PER_SUNK
    if board.all_ships_sunk():
        score += VICTORY_BONUS
    return score
