"""
Board representation and ship placement.

A ``Board`` plays two roles in a match: the local player's own fleet (attacks
are resolved with ``process_attack``) and a tracking board for the opponent,
which never holds ships and is updated from reported outcomes with
``mark_external_outcome``.
"""
import logging
import random
from typing import Dict, List, Optional

from shared.constants import BOARD_SIZE
from shared.enums import AttackOutcome, CellState
from shared.protocol import Coordinate

from .ship import Ship, create_fleet


logger = logging.getLogger(__name__)


class Board:
    """Square grid of cells with ships and attack history."""

    def __init__(self, size: int = BOARD_SIZE):
        self.size = size
        self._grid: List[List[CellState]] = [
            [CellState.EMPTY for _ in range(size)] for _ in range(size)
        ]
        self._ships: List[Ship] = []
        self._attacked: List[Coordinate] = []

    # =========================================================================
    # Queries
    # =========================================================================

    def is_within_bounds(self, coord: Optional[Coordinate]) -> bool:
        return (
            coord is not None
            and 0 <= coord.row < self.size
            and 0 <= coord.col < self.size
        )

    def cell_state(self, coord: Coordinate) -> Optional[CellState]:
        """State of a cell, or None for an out-of-bounds coordinate."""
        if not self.is_within_bounds(coord):
            return None
        return self._grid[coord.row][coord.col]

    @property
    def ships(self) -> List[Ship]:
        return list(self._ships)

    @property
    def attacked_positions(self) -> List[Coordinate]:
        return list(self._attacked)

    def was_attacked(self, coord: Coordinate) -> bool:
        return coord in self._attacked

    def ship_at(self, coord: Coordinate) -> Optional[Ship]:
        for ship in self._ships:
            if ship.contains(coord):
                return ship
        return None

    def ships_remaining(self) -> int:
        return sum(1 for ship in self._ships if not ship.is_sunk)

    def all_ships_sunk(self) -> bool:
        """True once every placed ship is sunk. An empty board is never defeated."""
        return bool(self._ships) and all(ship.is_sunk for ship in self._ships)

    def render(self) -> str:
        """Plain-text grid, one row per line."""
        return "\n".join("".join(cell.value for cell in row) for row in self._grid)

    # =========================================================================
    # Placement
    # =========================================================================

    def place_ship(self, ship: Ship, start: Coordinate, vertical: bool = False) -> bool:
        """
        Place a ship with its bow at ``start``.

        Returns False if the ship leaves the board or overlaps another ship.
        """
        cells = ship.layout(start, vertical, self.size)
        if cells is None:
            return False

        if any(self._grid[c.row][c.col] != CellState.EMPTY for c in cells):
            return False

        ship.positions = cells
        ship.hit_positions = set()
        ship.vertical = vertical
        self._ships.append(ship)
        for c in cells:
            self._grid[c.row][c.col] = CellState.SHIP
        return True

    def place_fleet_randomly(
        self,
        rng: Optional[random.Random] = None,
        fleet: Optional[List[Ship]] = None,
        max_attempts: int = 1000,
    ) -> List[Ship]:
        """Place the standard fleet (or ``fleet``) at random non-overlapping positions."""
        rng = rng or random.Random()
        fleet = fleet if fleet is not None else create_fleet()

        for ship in fleet:
            for _ in range(max_attempts):
                start = Coordinate(rng.randrange(self.size), rng.randrange(self.size))
                if self.place_ship(ship, start, vertical=rng.random() < 0.5):
                    break
            else:
                raise RuntimeError(f"Could not place {ship.name} after {max_attempts} attempts")

        logger.debug(f"Placed fleet of {len(fleet)} ships")
        return fleet

    # =========================================================================
    # Attacks
    # =========================================================================

    def process_attack(self, coord: Coordinate) -> AttackOutcome:
        """
        Resolve an attack against this board.

        Returns INVALID for out-of-bounds or repeated coordinates; the board is
        unchanged in that case.
        """
        if not self.is_within_bounds(coord) or coord in self._attacked:
            return AttackOutcome.INVALID

        self._attacked.append(coord)

        ship = self.ship_at(coord)
        if ship is None:
            self._grid[coord.row][coord.col] = CellState.MISS
            return AttackOutcome.MISS

        ship.hit(coord)
        if ship.is_sunk:
            for c in ship.positions:
                self._grid[c.row][c.col] = CellState.SUNK
            return AttackOutcome.SUNK

        self._grid[coord.row][coord.col] = CellState.HIT
        return AttackOutcome.HIT

    def mark_external_outcome(self, coord: Coordinate, outcome: AttackOutcome) -> bool:
        """
        Record an outcome reported by the opponent for one of our attacks.

        Used on the opponent tracking board, whose ships are never known.
        """
        states: Dict[AttackOutcome, CellState] = {
            AttackOutcome.HIT: CellState.HIT,
            AttackOutcome.MISS: CellState.MISS,
            AttackOutcome.SUNK: CellState.SUNK,
        }
        if not self.is_within_bounds(coord) or outcome not in states:
            return False

        if coord not in self._attacked:
            self._attacked.append(coord)
        self._grid[coord.row][coord.col] = states[outcome]
        return True

    def clear(self) -> None:
        self._ships.clear()
        self._attacked.clear()
        for row in self._grid:
            for i in range(self.size):
                row[i] = CellState.EMPTY
