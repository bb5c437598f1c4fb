"""
Autopilot player.

Drives one side of a match without a human: places a random fleet, marks
ready and fires at random untried cells whenever it is our turn. Used by the
headless entry point and by the end-to-end tests.
"""

import asyncio
import logging
import random
from typing import Optional

from shared.enums import AttackCheck, EndReason, MatchResult, TurnOwner
from shared.protocol import Coordinate
from peer.config import settings
from peer.network.coordinator import MatchCoordinator, MatchObserver


logger = logging.getLogger(__name__)


class Autopilot(MatchObserver):
    """Random-fire observer for a MatchCoordinator."""

    def __init__(
        self,
        coordinator: MatchCoordinator,
        rng: Optional[random.Random] = None,
        delay: Optional[float] = None,
    ):
        self._coordinator = coordinator
        self._rng = rng or random.Random()
        self._delay = settings.AUTOPLAY_DELAY if delay is None else delay
        self._scheduled: Optional[asyncio.TimerHandle] = None
        self.shots_fired = 0

        coordinator.add_observer(self)

    def start(self) -> bool:
        """Place the fleet and announce READY."""
        if not self._coordinator.board.ships:
            self._coordinator.board.place_fleet_randomly(self._rng)
        logger.info("Autopilot fleet placed:\n" + self._coordinator.board.render())
        return self._coordinator.mark_ready()

    def stop(self) -> None:
        if self._scheduled is not None:
            self._scheduled.cancel()
            self._scheduled = None

    def choose_target(self) -> Optional[Coordinate]:
        """Random cell we have not attacked yet, or None if every cell is taken."""
        tracking = self._coordinator.opponent_board
        attacked = set(tracking.attacked_positions)
        if self._coordinator.pending_attack is not None:
            attacked.add(self._coordinator.pending_attack)

        candidates = [
            Coordinate(row, col)
            for row in range(tracking.size)
            for col in range(tracking.size)
            if Coordinate(row, col) not in attacked
        ]
        if not candidates:
            return None
        return self._rng.choice(candidates)

    # =========================================================================
    # Observer callbacks
    # =========================================================================

    def on_turn_changed(self, turn: TurnOwner) -> None:
        if turn == TurnOwner.LOCAL:
            self._schedule_fire()

    def on_attack_rejected(self, coord: Coordinate, reason: AttackCheck) -> None:
        if reason in (AttackCheck.ALREADY_ATTACKED, AttackCheck.INVALID_TARGET):
            self._schedule_fire()

    def on_game_over(self, result: MatchResult, reason: EndReason) -> None:
        self.stop()
        logger.info(f"Autopilot finished after {self.shots_fired} shots: {result.value}")

    # =========================================================================
    # Firing
    # =========================================================================

    def _schedule_fire(self) -> None:
        self.stop()
        loop = asyncio.get_running_loop()
        self._scheduled = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        self._scheduled = None
        if not self._coordinator.is_my_turn or self._coordinator.pending_attack is not None:
            return

        target = self.choose_target()
        if target is None:
            logger.warning("No cells left to attack")
            return

        if self._coordinator.send_attack(target) == AttackCheck.OK:
            self.shots_fired += 1
