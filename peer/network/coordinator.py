"""
Match coordinator.

Owns the match state machine for one side of a two-player match:

    AWAITING_READY -> AWAITING_START -> IN_PROGRESS(turn) -> OVER(result)

It implements both dispatcher listener interfaces, resolves inbound attacks
against the local board, tracks the opponent through reported outcomes only,
and reports every change to registered observers.
"""

import logging
import time
from typing import Any, Optional, Protocol

from shared.enums import (
    AttackCheck,
    AttackOutcome,
    Command,
    EndReason,
    MatchPhase,
    MatchResult,
    MatchVerdict,
    TurnOrder,
    TurnOwner,
)
from shared.protocol import (
    Coordinate,
    create_attack_message,
    create_attack_result_message,
    create_game_over_message,
    create_game_start_message,
    create_hover_message,
    create_ready_message,
    encode,
)
from peer.game_engine import Board, OpponentShipLedger, Scores, score_from_board, score_from_outcomes
from peer.network.dispatcher import MessageDispatcher


logger = logging.getLogger(__name__)


class MatchTransport(Protocol):
    """What the coordinator needs from a transport."""

    @property
    def is_host(self) -> bool: ...

    def send_reliable(self, text: str) -> bool: ...

    def send_unreliable(self, text: str) -> bool: ...


class MatchObserver:
    """
    Callback surface for the presentation layer.

    Every method is a no-op; subclasses override what they need.
    """

    def on_ready(self, is_local: bool) -> None:
        pass

    def on_start(self, turn: TurnOwner) -> None:
        pass

    def on_attack_received(self, coord: Coordinate, outcome: AttackOutcome) -> None:
        pass

    def on_result_received(self, coord: Coordinate, outcome: AttackOutcome) -> None:
        pass

    def on_turn_changed(self, turn: TurnOwner) -> None:
        pass

    def on_game_over(self, result: MatchResult, reason: EndReason) -> None:
        pass

    def on_disconnect(self) -> None:
        pass

    def on_surrender(self) -> None:
        pass

    def on_hover_received(self, coord: Optional[Coordinate]) -> None:
        pass

    def on_ping_received(self) -> None:
        pass

    def on_attack_rejected(self, coord: Coordinate, reason: AttackCheck) -> None:
        pass

    def on_status(self, text: str) -> None:
        pass


class MatchCoordinator:
    """
    State machine for one side of a match.

    The local board resolves the opponent's attacks. A second board tracks
    our own attacks against the opponent from reported outcomes, and the
    opponent ledger approximates how many of their ships are left.
    """

    def __init__(
        self,
        transport: MatchTransport,
        board: Optional[Board] = None,
        ledger: Optional[OpponentShipLedger] = None,
    ):
        self._transport = transport
        self._board = board if board is not None else Board()
        self._opponent_board = Board(self._board.size)
        self._ledger = ledger if ledger is not None else OpponentShipLedger()
        self._observers: list = []

        self.dispatcher = MessageDispatcher(self, self, on_status=self.report_status)

        self._reset_state()

    def _reset_state(self) -> None:
        self._phase = MatchPhase.AWAITING_READY
        self._turn: Optional[TurnOwner] = None
        self._result: Optional[MatchResult] = None
        self._end_reason: Optional[EndReason] = None

        self._local_ready = False
        self._remote_ready = False

        self._pending_attack: Optional[Coordinate] = None
        self._attacked_by_us: set[Coordinate] = set()
        self._attacked_by_opponent: set[Coordinate] = set()
        self._reported_outcomes: list[AttackOutcome] = []

        self._local_hover: Optional[Coordinate] = None
        self._opponent_hover: Optional[Coordinate] = None

        self._pings_received = 0
        self._last_pong: Optional[float] = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def phase(self) -> MatchPhase:
        return self._phase

    @property
    def turn(self) -> Optional[TurnOwner]:
        return self._turn

    @property
    def result(self) -> Optional[MatchResult]:
        return self._result

    @property
    def end_reason(self) -> Optional[EndReason]:
        return self._end_reason

    @property
    def is_host(self) -> bool:
        return self._transport.is_host

    @property
    def is_over(self) -> bool:
        return self._phase == MatchPhase.OVER

    @property
    def is_my_turn(self) -> bool:
        return self._phase == MatchPhase.IN_PROGRESS and self._turn == TurnOwner.LOCAL

    @property
    def local_ready(self) -> bool:
        return self._local_ready

    @property
    def remote_ready(self) -> bool:
        return self._remote_ready

    @property
    def pending_attack(self) -> Optional[Coordinate]:
        return self._pending_attack

    @property
    def board(self) -> Board:
        return self._board

    @property
    def opponent_board(self) -> Board:
        return self._opponent_board

    @property
    def ledger(self) -> OpponentShipLedger:
        return self._ledger

    @property
    def local_hover(self) -> Optional[Coordinate]:
        return self._local_hover

    @property
    def opponent_hover(self) -> Optional[Coordinate]:
        return self._opponent_hover

    @property
    def last_pong(self) -> Optional[float]:
        """Monotonic time of the last PONG, or None if none arrived."""
        return self._last_pong

    @property
    def scores(self) -> Scores:
        return Scores(
            local=score_from_outcomes(self._reported_outcomes, self._ledger.fleet_size),
            opponent=score_from_board(self._board),
        )

    # =========================================================================
    # Observers
    # =========================================================================

    def add_observer(self, observer: MatchObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: MatchObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, event: str, *args: Any) -> None:
        for observer in list(self._observers):
            callback = getattr(observer, event, None)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception as e:
                logger.exception(f"Observer {type(observer).__name__}.{event} failed: {e}")

    def report_status(self, text: str) -> None:
        """Forward a status line (transport, dispatcher or match event) to observers."""
        self._notify("on_status", text)

    # =========================================================================
    # Outbound actions
    # =========================================================================

    def mark_ready(self) -> bool:
        """Announce that local ship placement is complete."""
        if self._phase != MatchPhase.AWAITING_READY or self._local_ready:
            return False

        if not self._transport.send_reliable(create_ready_message()):
            self.report_status("Failed to send READY")
            return False

        self._local_ready = True
        logger.info("Local side ready")
        self._notify("on_ready", True)
        self._check_both_ready()
        return True

    def can_attack(self, coord: Coordinate) -> AttackCheck:
        """Check whether an attack on ``coord`` is allowed right now. Changes nothing."""
        if self._phase != MatchPhase.IN_PROGRESS:
            return AttackCheck.NOT_IN_PROGRESS
        if self._turn != TurnOwner.LOCAL:
            return AttackCheck.NOT_YOUR_TURN
        if self._pending_attack is not None:
            return AttackCheck.ATTACK_PENDING
        if not self._opponent_board.is_within_bounds(coord):
            return AttackCheck.INVALID_TARGET
        if coord in self._attacked_by_us:
            return AttackCheck.ALREADY_ATTACKED
        return AttackCheck.OK

    def send_attack(self, coord: Coordinate) -> AttackCheck:
        """
        Attack the opponent at ``coord``.

        The turn does not change until the matching ATTACK_RESULT arrives.

        Returns:
            AttackCheck.OK if the attack was sent, otherwise the reason it
            was rejected.
        """
        check = self.can_attack(coord)
        if check != AttackCheck.OK:
            logger.info(f"Attack on {coord} rejected: {check.value}")
            self._notify("on_attack_rejected", coord, check)
            return check

        if not self._transport.send_reliable(create_attack_message(coord)):
            self.report_status(f"Failed to send attack on {coord}")
            self._notify("on_attack_rejected", coord, AttackCheck.SEND_FAILED)
            return AttackCheck.SEND_FAILED

        self._pending_attack = coord
        self._attacked_by_us.add(coord)
        logger.info(f"Attacking {coord}")
        return AttackCheck.OK

    def send_hover(self, coord: Optional[Coordinate]) -> bool:
        """Broadcast where we point on the opponent board; ``None`` clears it."""
        if coord is not None and not self._opponent_board.is_within_bounds(coord):
            return False
        self._local_hover = coord
        return self._transport.send_unreliable(create_hover_message(coord))

    def send_surrender(self) -> bool:
        """Forfeit the match."""
        if self._phase != MatchPhase.IN_PROGRESS:
            return False

        sent = self._transport.send_reliable(encode(Command.SURRENDER))
        self._finish(MatchResult.LOST, EndReason.SURRENDER)
        return sent

    def send_turn_end(self) -> bool:
        """Explicit end-of-turn notice. Informational; the turn already flips on results."""
        return self._transport.send_reliable(encode(Command.TURN_END))

    def send_ping(self) -> bool:
        return self._transport.send_unreliable(encode(Command.PING))

    def disconnect(self) -> bool:
        """
        Tell the opponent we are leaving.

        Leaving an unfinished match is a loss once both sides are ready;
        before that the match is simply aborted. The transport is closed by
        the caller.
        """
        sent = self._transport.send_reliable(encode(Command.DISCONNECT))
        if not self.is_over:
            if self._phase == MatchPhase.AWAITING_READY:
                self._finish(MatchResult.ABORTED, EndReason.DISCONNECT)
            else:
                self._finish(MatchResult.LOST, EndReason.DISCONNECT)
        return sent

    def reset_match(self) -> None:
        """Clear all match state for a new match on the same connection."""
        self._reset_state()
        self._board.clear()
        self._opponent_board.clear()
        self._ledger.reset()
        logger.info("Match reset")
        self.report_status("Match reset")

    # =========================================================================
    # Command listener (reliable channel)
    # =========================================================================

    def handle_ready(self) -> None:
        if self._phase != MatchPhase.AWAITING_READY or self._remote_ready:
            logger.warning(f"Ignoring READY in {self._phase.value}")
            return

        self._remote_ready = True
        logger.info("Opponent ready")
        self._notify("on_ready", False)
        self._check_both_ready()

    def handle_game_start(self, order: TurnOrder) -> None:
        if self.is_host:
            logger.warning("Host ignores GAME_START; turn order is decided locally")
            self.report_status("Unexpected GAME_START from opponent")
            return
        if self._phase != MatchPhase.AWAITING_START:
            logger.warning(f"Ignoring GAME_START in {self._phase.value}")
            return

        self._begin(order)

    def handle_attack(self, coord: Coordinate) -> None:
        if self.is_over:
            logger.debug(f"Match over; ignoring ATTACK {coord}")
            return

        check = self._check_inbound_attack(coord)
        if check != AttackCheck.OK:
            logger.warning(f"Rejecting opponent attack on {coord}: {check.value}")
            self.report_status(f"Opponent attack on {coord} rejected ({check.value})")
            return

        outcome = self._board.process_attack(coord)
        if outcome == AttackOutcome.INVALID:
            logger.warning(f"Board rejected opponent attack on {coord}")
            self.report_status(f"Opponent attack on {coord} rejected ({AttackCheck.INVALID_TARGET.value})")
            return

        self._attacked_by_opponent.add(coord)
        if not self._transport.send_reliable(create_attack_result_message(outcome, coord)):
            self.report_status(f"Failed to send result for {coord}")

        logger.info(f"Opponent attacked {coord}: {outcome.value}")
        self._notify("on_attack_received", coord, outcome)

        if self._board.all_ships_sunk():
            self._transport.send_reliable(create_game_over_message(is_winner=False))
            self._finish(MatchResult.LOST, EndReason.FLEET_DESTROYED)
            return

        self._set_turn(TurnOwner.LOCAL)

    def handle_attack_result(self, outcome: AttackOutcome, coord: Coordinate) -> None:
        if self.is_over:
            logger.debug(f"Match over; ignoring ATTACK_RESULT {outcome.value} {coord}")
            return

        if self._phase != MatchPhase.IN_PROGRESS or self._pending_attack != coord:
            logger.warning(
                f"Unexpected ATTACK_RESULT for {coord} (pending: {self._pending_attack})"
            )
            self.report_status(f"Result for {coord} rejected ({AttackCheck.UNEXPECTED_RESULT.value})")
            return

        self._pending_attack = None
        self._opponent_board.mark_external_outcome(coord, outcome)
        self._reported_outcomes.append(outcome)
        logger.info(f"Attack on {coord}: {outcome.value}")
        self._notify("on_result_received", coord, outcome)

        if outcome == AttackOutcome.SUNK:
            placeholder = self._ledger.mark_next_sunk()
            if placeholder:
                self.report_status(
                    f"Enemy ship sunk! {self._ledger.ships_remaining} remaining"
                )
            if self._ledger.all_sunk:
                self._transport.send_reliable(create_game_over_message(is_winner=True))
                self._finish(MatchResult.WON, EndReason.FLEET_DESTROYED)
                return

        self._set_turn(TurnOwner.REMOTE)

    def handle_turn_end(self) -> None:
        logger.info("Opponent ended their turn")

    def handle_game_over(self, verdict: MatchVerdict) -> None:
        if self.is_over:
            logger.debug(f"Match already over; ignoring GAME_OVER {verdict.value}")
            return

        # The sender declares from its own perspective
        result = MatchResult.LOST if verdict == MatchVerdict.WINNER else MatchResult.WON
        self._finish(result, EndReason.OPPONENT_DECLARED)

    def handle_disconnect(self) -> None:
        if self.is_over:
            return
        logger.info("Opponent disconnected")
        self._notify("on_disconnect")
        self._finish(self._forfeit_result(), EndReason.DISCONNECT)

    def handle_surrender(self) -> None:
        if self.is_over:
            return
        logger.info("Opponent surrendered")
        self._notify("on_surrender")
        self._finish(self._forfeit_result(), EndReason.SURRENDER)

    def handle_connection_lost(self) -> None:
        """Transport callback: the reliable channel closed unexpectedly."""
        if self.is_over:
            return
        self.report_status("Connection to opponent lost")
        if self._phase == MatchPhase.IN_PROGRESS:
            self._finish(MatchResult.WON, EndReason.CONNECTION_LOST)
        else:
            self._finish(MatchResult.ABORTED, EndReason.CONNECTION_LOST)

    # =========================================================================
    # Signal listener (unreliable channel)
    # =========================================================================

    def handle_hover(self, coord: Optional[Coordinate]) -> None:
        # No sequence numbers: the last delivered value wins
        self._opponent_hover = coord
        self._notify("on_hover_received", coord)

    def handle_ping(self) -> None:
        self._pings_received += 1
        self._transport.send_unreliable(encode(Command.PONG))
        self._notify("on_ping_received")

    def handle_pong(self) -> None:
        self._last_pong = time.monotonic()

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_statistics(self) -> dict:
        """Snapshot of the match for display and logging."""
        hits = sum(
            1 for o in self._reported_outcomes if o in (AttackOutcome.HIT, AttackOutcome.SUNK)
        )
        return {
            "phase": self._phase.value,
            "turn": self._turn.value if self._turn else None,
            "result": self._result.value if self._result else None,
            "end_reason": self._end_reason.value if self._end_reason else None,
            "is_host": self.is_host,
            "local_ready": self._local_ready,
            "remote_ready": self._remote_ready,
            "scores": self.scores.to_dict(),
            "ships_remaining": {
                "local": self._board.ships_remaining(),
                "opponent": self._ledger.ships_remaining,
            },
            "attacks_sent": len(self._attacked_by_us),
            "attacks_received": len(self._attacked_by_opponent),
            "hits": hits,
            "local_hover": self._local_hover.to_wire() if self._local_hover else None,
            "opponent_hover": self._opponent_hover.to_wire() if self._opponent_hover else None,
            "pings_received": self._pings_received,
        }

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_both_ready(self) -> None:
        if not (self._local_ready and self._remote_ready):
            return
        if self._phase != MatchPhase.AWAITING_READY:
            return

        self._phase = MatchPhase.AWAITING_START
        logger.info("Both sides ready")
        self.report_status("Both players ready")

        if self.is_host:
            # Host moves first
            if not self._transport.send_reliable(create_game_start_message(is_first_player=False)):
                self.report_status("Failed to send GAME_START")
            self._begin(TurnOrder.FIRST)

    def _begin(self, order: TurnOrder) -> None:
        if self._phase != MatchPhase.AWAITING_START:
            return

        self._phase = MatchPhase.IN_PROGRESS
        self._turn = TurnOwner.LOCAL if order == TurnOrder.FIRST else TurnOwner.REMOTE
        logger.info(f"Match started; {'we' if self._turn == TurnOwner.LOCAL else 'opponent'} move first")
        self._notify("on_start", self._turn)
        self._notify("on_turn_changed", self._turn)

    def _check_inbound_attack(self, coord: Coordinate) -> AttackCheck:
        if self._phase != MatchPhase.IN_PROGRESS:
            return AttackCheck.NOT_IN_PROGRESS
        if self._turn != TurnOwner.REMOTE:
            return AttackCheck.NOT_YOUR_TURN
        if not self._board.is_within_bounds(coord):
            return AttackCheck.INVALID_TARGET
        if coord in self._attacked_by_opponent:
            return AttackCheck.ALREADY_ATTACKED
        return AttackCheck.OK

    def _set_turn(self, turn: TurnOwner) -> None:
        self._turn = turn
        self._notify("on_turn_changed", turn)

    def _forfeit_result(self) -> MatchResult:
        if self._phase == MatchPhase.AWAITING_READY:
            return MatchResult.ABORTED
        return MatchResult.WON

    def _finish(self, result: MatchResult, reason: EndReason) -> None:
        if self.is_over:
            return

        self._phase = MatchPhase.OVER
        self._result = result
        self._end_reason = reason
        self._pending_attack = None
        logger.info(f"Match over: {result.value} ({reason.value})")
        self._notify("on_game_over", result, reason)
