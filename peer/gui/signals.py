"""
Qt signal bridge for the match coordinator.

Register a ``MatchSignals`` instance as a coordinator observer and connect
widgets to its signals. Every observer callback is re-emitted as a Qt signal
so slots run through Qt's normal connection handling.
"""

from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from shared.enums import AttackCheck, AttackOutcome, EndReason, MatchResult, TurnOwner
from shared.protocol import Coordinate


class MatchSignals(QObject):
    """
    Match observer that emits Qt signals.

    Signals:
        ready: A side became ready (is_local)
        started: Match started (turn owner)
        attack_received: Opponent attacked our board (coord, outcome)
        result_received: Opponent reported our attack's outcome (coord, outcome)
        turn_changed: Turn owner changed (turn owner)
        game_over: Match ended (result, reason)
        disconnected: Opponent sent DISCONNECT
        surrendered: Opponent surrendered
        hover_received: Opponent hover moved; None clears it
        ping_received: Opponent sent PING
        attack_rejected: Our attack was refused locally (coord, reason)
        status_changed: Human-readable status line
    """

    ready = pyqtSignal(bool)
    started = pyqtSignal(TurnOwner)
    attack_received = pyqtSignal(Coordinate, AttackOutcome)
    result_received = pyqtSignal(Coordinate, AttackOutcome)
    turn_changed = pyqtSignal(TurnOwner)
    game_over = pyqtSignal(MatchResult, EndReason)
    disconnected = pyqtSignal()
    surrendered = pyqtSignal()
    hover_received = pyqtSignal(object)  # Coordinate or None
    ping_received = pyqtSignal()
    attack_rejected = pyqtSignal(Coordinate, AttackCheck)
    status_changed = pyqtSignal(str)

    def __init__(self, parent=None):
        super().__init__(parent)

    def on_ready(self, is_local: bool) -> None:
        self.ready.emit(is_local)

    def on_start(self, turn: TurnOwner) -> None:
        self.started.emit(turn)

    def on_attack_received(self, coord: Coordinate, outcome: AttackOutcome) -> None:
        self.attack_received.emit(coord, outcome)

    def on_result_received(self, coord: Coordinate, outcome: AttackOutcome) -> None:
        self.result_received.emit(coord, outcome)

    def on_turn_changed(self, turn: TurnOwner) -> None:
        self.turn_changed.emit(turn)

    def on_game_over(self, result: MatchResult, reason: EndReason) -> None:
        self.game_over.emit(result, reason)

    def on_disconnect(self) -> None:
        self.disconnected.emit()

    def on_surrender(self) -> None:
        self.surrendered.emit()

    def on_hover_received(self, coord: Optional[Coordinate]) -> None:
        self.hover_received.emit(coord)

    def on_ping_received(self) -> None:
        self.ping_received.emit()

    def on_attack_rejected(self, coord: Coordinate, reason: AttackCheck) -> None:
        self.attack_rejected.emit(coord, reason)

    def on_status(self, text: str) -> None:
        self.status_changed.emit(text)
