"""
workers/engine_driver.py – QTimer-based driver that ticks the leaderboard
engine on the GUI thread and publishes frames.

Signal contract
---------------
  frame(object) : RenderState for the current tick while the engine is active
  idle()        : Engine has nothing to show; host falls back to its default screen
  status(str)   : Human-readable phase change message — for the status bar / log

Ticking happens on the thread that owns the driver, so no other thread ever
touches engine state.
"""

from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from services.engine import LeaderboardEngine, Phase

# Host loop period (milliseconds); the engine applies its own step spacing.
TICK_INTERVAL_MS: int = 20

_PHASE_MESSAGES = {
    Phase.IDLE: "Waiting for a title…",
    Phase.UNRESOLVED: "Probing catalog roots…",
    Phase.RESOLVING: "Matching title against catalog…",
    Phase.RESOLVED: "Loading leaderboards…",
    Phase.ACTIVE: "Leaderboards active.",
}


class EngineDriver(QObject):
    """
    Periodically calls ``engine.tick()``.

    Instantiate, connect signals, then call start().
    """

    # ── Signals ───────────────────────────────────────────────────────────────
    frame  = Signal(object)   # RenderState
    idle   = Signal()
    status = Signal(str)

    def __init__(self, engine: LeaderboardEngine, parent=None) -> None:
        super().__init__(parent)
        self._engine = engine
        self._timer = QTimer(self)
        self._timer.setInterval(TICK_INTERVAL_MS)
        self._timer.timeout.connect(self._on_timeout)
        self._last_phase: Optional[Phase] = None

    @property
    def engine(self) -> LeaderboardEngine:
        return self._engine

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    @Slot(str)
    def set_query(self, text: str) -> None:
        self._engine.on_query(text)

    @Slot()
    def _on_timeout(self) -> None:
        self._engine.tick()

        phase = self._engine.phase
        if phase is not self._last_phase:
            self._last_phase = phase
            self.status.emit(_PHASE_MESSAGES[phase])

        state = self._engine.render_state()
        if state is None:
            self.idle.emit()
        else:
            self.frame.emit(state)
