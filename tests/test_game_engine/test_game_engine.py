"""
Tests for the board, fleet, opponent ledger and scoring.

Run from project root: python -m pytest tests/test_game_engine -v
Or run directly: python tests/test_game_engine/test_game_engine.py
"""

import random
import sys
import unittest
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from peer.game_engine import (
    Board,
    FLEET_TYPES,
    OpponentShipLedger,
    Scores,
    Ship,
    ShipType,
    create_fleet,
    score_from_board,
    score_from_outcomes,
)
from shared.constants import BOARD_SIZE, STANDARD_FLEET, TOTAL_SHIPS
from shared.enums import AttackOutcome, CellState
from shared.protocol import Coordinate


def make_ship(name: str = "Destroyer", size: int = 2) -> Ship:
    return Ship(type=ShipType(name, size))


class TestShip(unittest.TestCase):

    def test_standard_fleet(self):
        fleet = create_fleet()
        self.assertEqual(len(fleet), TOTAL_SHIPS)
        self.assertEqual([(s.name, s.size) for s in fleet], STANDARD_FLEET)
        self.assertEqual(len(FLEET_TYPES), 5)

    def test_layout_horizontal_and_vertical(self):
        ship = make_ship("Cruiser", 3)
        self.assertEqual(
            ship.layout(Coordinate(0, 0), False, BOARD_SIZE),
            [Coordinate(0, 0), Coordinate(0, 1), Coordinate(0, 2)],
        )
        self.assertEqual(
            ship.layout(Coordinate(0, 0), True, BOARD_SIZE),
            [Coordinate(0, 0), Coordinate(1, 0), Coordinate(2, 0)],
        )

    def test_layout_off_board(self):
        ship = make_ship("Carrier", 5)
        self.assertIsNone(ship.layout(Coordinate(0, 6), False, BOARD_SIZE))
        self.assertIsNone(ship.layout(Coordinate(6, 0), True, BOARD_SIZE))
        self.assertIsNone(ship.layout(Coordinate(10, 0), False, BOARD_SIZE))

    def test_unplaced_ship_is_not_sunk(self):
        self.assertFalse(make_ship().is_sunk)


class BoardTestCase(unittest.TestCase):
    """Board with a destroyer at (0,0)-(0,1) and a cruiser at (2,2)-(4,2)."""

    def setUp(self):
        self.board = Board()
        self.destroyer = make_ship("Destroyer", 2)
        self.cruiser = make_ship("Cruiser", 3)
        self.assertTrue(self.board.place_ship(self.destroyer, Coordinate(0, 0)))
        self.assertTrue(self.board.place_ship(self.cruiser, Coordinate(2, 2), vertical=True))


class TestPlacement(BoardTestCase):

    def test_cells_marked(self):
        self.assertEqual(self.board.cell_state(Coordinate(0, 1)), CellState.SHIP)
        self.assertEqual(self.board.cell_state(Coordinate(4, 2)), CellState.SHIP)
        self.assertEqual(self.board.cell_state(Coordinate(5, 2)), CellState.EMPTY)

    def test_overlap_rejected(self):
        ship = make_ship("Submarine", 3)
        self.assertFalse(self.board.place_ship(ship, Coordinate(3, 0)))
        self.assertEqual(len(self.board.ships), 2)

    def test_out_of_bounds_rejected(self):
        self.assertFalse(self.board.place_ship(make_ship("Carrier", 5), Coordinate(9, 9)))

    def test_cell_state_out_of_bounds(self):
        self.assertIsNone(self.board.cell_state(Coordinate(10, 0)))

    def test_random_fleet(self):
        board = Board()
        fleet = board.place_fleet_randomly(random.Random(7))
        self.assertEqual(len(board.ships), 5)
        occupied = [c for ship in fleet for c in ship.positions]
        self.assertEqual(len(occupied), len(set(occupied)))
        self.assertEqual(len(occupied), sum(size for _, size in STANDARD_FLEET))

    def test_render(self):
        lines = self.board.render().splitlines()
        self.assertEqual(len(lines), BOARD_SIZE)
        self.assertEqual(lines[0][:3], "SS~")

    def test_clear(self):
        self.board.process_attack(Coordinate(0, 0))
        self.board.clear()
        self.assertEqual(self.board.ships, [])
        self.assertEqual(self.board.attacked_positions, [])
        self.assertEqual(self.board.cell_state(Coordinate(0, 0)), CellState.EMPTY)


class TestAttacks(BoardTestCase):

    def test_miss(self):
        self.assertEqual(self.board.process_attack(Coordinate(9, 9)), AttackOutcome.MISS)
        self.assertEqual(self.board.cell_state(Coordinate(9, 9)), CellState.MISS)

    def test_hit_then_sunk(self):
        self.assertEqual(self.board.process_attack(Coordinate(0, 0)), AttackOutcome.HIT)
        self.assertEqual(self.board.cell_state(Coordinate(0, 0)), CellState.HIT)
        self.assertEqual(self.board.process_attack(Coordinate(0, 1)), AttackOutcome.SUNK)
        self.assertEqual(self.board.cell_state(Coordinate(0, 0)), CellState.SUNK)
        self.assertEqual(self.board.cell_state(Coordinate(0, 1)), CellState.SUNK)
        self.assertEqual(self.board.ships_remaining(), 1)

    def test_repeat_is_invalid(self):
        self.board.process_attack(Coordinate(5, 5))
        self.assertEqual(self.board.process_attack(Coordinate(5, 5)), AttackOutcome.INVALID)
        self.assertEqual(self.board.attacked_positions, [Coordinate(5, 5)])

    def test_out_of_bounds_is_invalid(self):
        self.assertEqual(self.board.process_attack(Coordinate(10, 3)), AttackOutcome.INVALID)
        self.assertEqual(self.board.attacked_positions, [])

    def test_all_ships_sunk(self):
        for coord in self.destroyer.positions + self.cruiser.positions:
            self.assertFalse(self.board.all_ships_sunk())
            self.board.process_attack(coord)
        self.assertTrue(self.board.all_ships_sunk())

    def test_empty_board_is_not_defeated(self):
        self.assertFalse(Board().all_ships_sunk())


class TestExternalOutcome(unittest.TestCase):

    def setUp(self):
        self.tracking = Board()

    def test_marks_reported_outcomes(self):
        self.assertTrue(self.tracking.mark_external_outcome(Coordinate(1, 1), AttackOutcome.HIT))
        self.assertTrue(self.tracking.mark_external_outcome(Coordinate(1, 2), AttackOutcome.MISS))
        self.assertTrue(self.tracking.mark_external_outcome(Coordinate(1, 3), AttackOutcome.SUNK))
        self.assertEqual(self.tracking.cell_state(Coordinate(1, 1)), CellState.HIT)
        self.assertEqual(self.tracking.cell_state(Coordinate(1, 2)), CellState.MISS)
        self.assertEqual(self.tracking.cell_state(Coordinate(1, 3)), CellState.SUNK)
        self.assertEqual(len(self.tracking.attacked_positions), 3)

    def test_rejects_invalid(self):
        self.assertFalse(self.tracking.mark_external_outcome(Coordinate(0, 0), AttackOutcome.INVALID))
        self.assertFalse(self.tracking.mark_external_outcome(Coordinate(11, 0), AttackOutcome.HIT))
        self.assertEqual(self.tracking.attacked_positions, [])

    def test_tracking_board_has_no_ships(self):
        self.tracking.mark_external_outcome(Coordinate(0, 0), AttackOutcome.SUNK)
        self.assertEqual(self.tracking.ships, [])
        self.assertFalse(self.tracking.all_ships_sunk())


class TestLedger(unittest.TestCase):

    def setUp(self):
        self.ledger = OpponentShipLedger()

    def test_initial_state(self):
        self.assertEqual(self.ledger.fleet_size, 5)
        self.assertEqual(self.ledger.sunk_count, 0)
        self.assertEqual(self.ledger.ships_remaining, 5)
        self.assertFalse(self.ledger.all_sunk)
        self.assertEqual([e.name for e in self.ledger.entries], [n for n, _ in STANDARD_FLEET])

    def test_marks_first_afloat_entry(self):
        first = self.ledger.mark_next_sunk()
        self.assertEqual(first.name, "Carrier")
        self.assertTrue(first.sunk)
        self.assertEqual(first.hits, first.size)
        self.assertEqual(self.ledger.mark_next_sunk().name, "Battleship")

    def test_sunk_count_monotonic_and_bounded(self):
        previous = 0
        for _ in range(8):
            self.ledger.mark_next_sunk()
            self.assertGreaterEqual(self.ledger.sunk_count, previous)
            self.assertLessEqual(self.ledger.sunk_count, 5)
            previous = self.ledger.sunk_count
        self.assertTrue(self.ledger.all_sunk)
        self.assertIsNone(self.ledger.mark_next_sunk())
        self.assertEqual(self.ledger.ships_remaining, 0)

    def test_reset_refloats_same_fleet(self):
        ledger = OpponentShipLedger([("Cruiser", 3), ("Destroyer", 2)])
        ledger.mark_next_sunk()
        ledger.mark_next_sunk()
        self.assertTrue(ledger.all_sunk)

        ledger.reset()
        self.assertEqual(ledger.sunk_count, 0)
        self.assertEqual([(e.name, e.size) for e in ledger.entries], [("Cruiser", 3), ("Destroyer", 2)])


class TestScoring(unittest.TestCase):

    def test_score_from_outcomes(self):
        outcomes = [AttackOutcome.MISS, AttackOutcome.HIT, AttackOutcome.SUNK]
        # 2 hits + 1 sunk bonus
        self.assertEqual(score_from_outcomes(outcomes, 5), 2 + 5)

    def test_victory_bonus(self):
        outcomes = [AttackOutcome.SUNK] * 5
        self.assertEqual(score_from_outcomes(outcomes, 5), 5 + 25 + 50)

    def test_score_from_board(self):
        board = Board()
        ship = make_ship("Destroyer", 2)
        board.place_ship(ship, Coordinate(0, 0))
        board.process_attack(Coordinate(0, 0))
        self.assertEqual(score_from_board(board), 1)
        board.process_attack(Coordinate(0, 1))
        self.assertEqual(score_from_board(board), 2 + 5 + 50)

    def test_scores_to_dict(self):
        self.assertEqual(Scores(3, 4).to_dict(), {"local": 3, "opponent": 4})


if __name__ == "__main__":
    unittest.main()
