"""
Opponent ship ledger.

The opponent never reveals its layout, only attack outcomes. The ledger keeps
one placeholder record per ship of the standard fleet and sinks the first
still-afloat placeholder whenever a SUNK outcome arrives.

This is an approximation. Sizes are assumed, the sinking order is arbitrary
and a placeholder marked sunk does not correspond to the ship that was
actually sunk. It drives the "ships remaining" display and the win-by-count
check only; do not treat it as the opponent's real fleet.
"""
from dataclasses import dataclass
from typing import List, Optional

from shared.constants import STANDARD_FLEET, TOTAL_SHIPS


@dataclass
class PlaceholderShip:
    """Stand-in for one opponent ship."""
    name: str
    size: int
    hits: int = 0
    sunk: bool = False

    def force_sink(self) -> None:
        self.hits = self.size
        self.sunk = True


class OpponentShipLedger:
    """Fixed-size ordered list of placeholder ships."""

    def __init__(self, fleet: Optional[List[tuple]] = None):
        self._fleet = list(fleet) if fleet is not None else list(STANDARD_FLEET)
        self._entries: List[PlaceholderShip] = []
        self.reset()

    def reset(self) -> None:
        """Refloat every placeholder, keeping the fleet the ledger was built with."""
        self._entries = [PlaceholderShip(name=name, size=size) for name, size in self._fleet]

    @property
    def entries(self) -> List[PlaceholderShip]:
        return list(self._entries)

    @property
    def fleet_size(self) -> int:
        return len(self._entries)

    @property
    def sunk_count(self) -> int:
        return sum(1 for entry in self._entries if entry.sunk)

    @property
    def ships_remaining(self) -> int:
        return self.fleet_size - self.sunk_count

    @property
    def all_sunk(self) -> bool:
        return self.sunk_count >= min(self.fleet_size, TOTAL_SHIPS)

    def mark_next_sunk(self) -> Optional[PlaceholderShip]:
        """
        Sink the first placeholder that is still afloat.

        Returns the placeholder, or None when every entry is already sunk
        (the count never exceeds the fleet size).
        """
        for entry in self._entries:
            if not entry.sunk:
                entry.force_sink()
                return entry
        return None
