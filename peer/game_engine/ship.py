"""
Ship types and ship state.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from shared.constants import STANDARD_FLEET
from shared.protocol import Coordinate


@dataclass(frozen=True)
class ShipType:
    """Name and length of a kind of ship."""
    name: str
    size: int


FLEET_TYPES: List[ShipType] = [ShipType(name, size) for name, size in STANDARD_FLEET]


@dataclass
class Ship:
    """A ship on a board, tracking which of its cells were hit."""

    type: ShipType
    positions: List[Coordinate] = field(default_factory=list)
    hit_positions: set = field(default_factory=set)
    vertical: bool = False

    @property
    def name(self) -> str:
        return self.type.name

    @property
    def size(self) -> int:
        return self.type.size

    @property
    def hit_count(self) -> int:
        return len(self.hit_positions)

    @property
    def is_sunk(self) -> bool:
        return len(self.positions) > 0 and self.hit_count >= self.size

    def layout(self, start: Coordinate, vertical: bool, board_size: int) -> Optional[List[Coordinate]]:
        """
        Compute the cells this ship would occupy starting at ``start``.

        Returns None if the ship does not fit on the board.
        """
        if not (0 <= start.row < board_size and 0 <= start.col < board_size):
            return None

        end = (start.row if not vertical else start.row + self.size - 1,
               start.col if vertical else start.col + self.size - 1)
        if end[0] >= board_size or end[1] >= board_size:
            return None

        return [
            Coordinate(start.row + i, start.col) if vertical else Coordinate(start.row, start.col + i)
            for i in range(self.size)
        ]

    def contains(self, coord: Coordinate) -> bool:
        return coord in self.positions

    def hit(self, coord: Coordinate) -> bool:
        """Register a hit. Returns False if the cell is not part of the ship or was already hit."""
        if coord not in self.positions or coord in self.hit_positions:
            return False
        self.hit_positions.add(coord)
        return True


def create_fleet() -> List[Ship]:
    """Create an unplaced standard fleet."""
    return [Ship(type=ship_type) for ship_type in FLEET_TYPES]
