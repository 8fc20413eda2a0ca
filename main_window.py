"""
main_window.py – On-screen stand-in for the embedded leaderboard panel.

Layout
------
  ┌──────────────────────────────────────────────────────┐
  │  [Now playing …]            [Diagnostics] [Flush]    │  ← TOP
  ├──────────────────────────────────────────────────────┤
  │  Header (game title)                                 │
  │  ─────────────────────────────────────────────────── │
  │  Board name                                          │  ← PANEL
  │  1. Player  900  · laps=3                            │
  │  …                                                   │
  ├──────────────────────────────────────────────────────┤
  │  Status log (QPlainTextEdit, read-only)              │  ← BOTTOM
  └──────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import datetime
import logging
from typing import Optional

from PySide6.QtCore import Slot
from PySide6.QtGui import QCloseEvent, QFont
from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QPlainTextEdit,
    QPushButton,
    QStatusBar,
    QVBoxLayout,
    QWidget,
)

from models.leaderboard import RenderState
from services.engine import LeaderboardEngine
from workers.engine_driver import EngineDriver

# ── Colour palette ─────────────────────────────────────────────────────────────
_BG         = "#0f1117"
_BG2        = "#1a1d27"
_BG3        = "#22263a"
_ACCENT     = "#4f8ef7"
_TEXT       = "#e2e8f0"
_TEXT_DIM   = "#718096"
_SUCCESS    = "#48bb78"
_ERROR      = "#fc8181"
_BORDER     = "#2d3748"

# Panel rows shown at once; mirrors the 64 px panel with 9 px lines.
_PANEL_LINES = 5

_STYLESHEET = f"""
QMainWindow, QWidget {{
    background-color: {_BG};
    color: {_TEXT};
    font-family: 'Segoe UI', 'Consolas', monospace;
    font-size: 13px;
}}

/* ── Query field ────────────────────────────────────────────────────────── */
QLineEdit#queryBar {{
    background-color: {_BG2};
    border: 1px solid {_BORDER};
    border-radius: 6px;
    padding: 8px 14px;
    font-size: 14px;
    color: {_TEXT};
    selection-background-color: {_ACCENT};
}}
QLineEdit#queryBar:focus {{
    border-color: {_ACCENT};
}}

/* ── Panel ──────────────────────────────────────────────────────────────── */
QFrame#panel {{
    background-color: #000000;
    border: 1px solid {_BORDER};
    border-radius: 8px;
}}
QLabel#panelHeader {{
    color: #f6e05e;
    font-family: 'Consolas', 'Courier New', monospace;
    font-size: 18px;
    font-weight: bold;
    background: transparent;
}}
QLabel#panelBoard {{
    color: {_TEXT_DIM};
    font-family: 'Consolas', 'Courier New', monospace;
    background: transparent;
}}
QLabel#panelRows {{
    color: #f6e05e;
    font-family: 'Consolas', 'Courier New', monospace;
    font-size: 14px;
    background: transparent;
}}

/* ── Buttons ────────────────────────────────────────────────────────────── */
QPushButton {{
    background-color: {_BG3};
    border: 1px solid {_BORDER};
    border-radius: 5px;
    padding: 7px 14px;
    color: {_TEXT};
}}
QPushButton:hover {{
    background-color: {_ACCENT};
    border-color: {_ACCENT};
    color: white;
}}

/* ── Log area ───────────────────────────────────────────────────────────── */
QPlainTextEdit#logArea {{
    background-color: {_BG};
    border: 1px solid {_BORDER};
    border-radius: 6px;
    padding: 6px;
    font-family: 'Consolas', 'Courier New', monospace;
    font-size: 12px;
    color: {_TEXT_DIM};
}}

/* ── Status bar ─────────────────────────────────────────────────────────── */
QStatusBar {{
    background: {_BG2};
    color: {_TEXT_DIM};
    border-top: 1px solid {_BORDER};
    font-size: 11px;
}}
"""


class StatusDisplayWindow(QMainWindow):
    """Primary application window."""

    def __init__(self, engine: LeaderboardEngine) -> None:
        super().__init__()
        self.setWindowTitle("Insignia Board  ·  Leaderboard Display")
        self.setMinimumSize(720, 520)
        self.setStyleSheet(_STYLESHEET)

        self._driver = EngineDriver(engine, self)
        self._last_title: Optional[str] = None
        self._log_bridge = _WarningBridge(self)
        logging.getLogger("services").addHandler(self._log_bridge)

        self._build_ui()
        self._connect_signals()
        self._show_default_screen()
        self._driver.start()

    # ── UI construction ───────────────────────────────────────────────────────

    def _build_ui(self) -> None:
        root = QWidget()
        self.setCentralWidget(root)
        root_layout = QVBoxLayout(root)
        root_layout.setContentsMargins(24, 24, 24, 16)
        root_layout.setSpacing(16)

        # ── Zone A: Top bar ────────────────────────────────────────────────
        top = QHBoxLayout()
        top.setSpacing(12)

        self._query_bar = QLineEdit()
        self._query_bar.setObjectName("queryBar")
        self._query_bar.setPlaceholderText("Now playing (title name)…")
        self._query_bar.setClearButtonEnabled(True)
        self._query_bar.setMinimumHeight(40)

        self._diag_btn = QPushButton("Diagnostics")
        self._flush_btn = QPushButton("Flush Cache")

        top.addWidget(self._query_bar, 6)
        top.addWidget(self._diag_btn, 1)
        top.addWidget(self._flush_btn, 1)
        root_layout.addLayout(top)

        # ── Zone B: Panel ──────────────────────────────────────────────────
        panel = QFrame()
        panel.setObjectName("panel")
        panel_layout = QVBoxLayout(panel)
        panel_layout.setContentsMargins(16, 12, 16, 12)
        panel_layout.setSpacing(6)

        self._header = QLabel()
        self._header.setObjectName("panelHeader")
        rule = QFrame()
        rule.setFrameShape(QFrame.Shape.HLine)
        self._board_name = QLabel()
        self._board_name.setObjectName("panelBoard")
        self._rows = QLabel()
        self._rows.setObjectName("panelRows")
        self._rows.setFont(QFont("Consolas", 14))
        self._rows.setMinimumHeight(_PANEL_LINES * 24)

        panel_layout.addWidget(self._header)
        panel_layout.addWidget(rule)
        panel_layout.addWidget(self._board_name)
        panel_layout.addWidget(self._rows, stretch=1)
        root_layout.addWidget(panel, stretch=1)

        # ── Zone C: Log ────────────────────────────────────────────────────
        self._log_area = QPlainTextEdit()
        self._log_area.setObjectName("logArea")
        self._log_area.setReadOnly(True)
        self._log_area.setMaximumBlockCount(500)
        self._log_area.setFixedHeight(140)
        root_layout.addWidget(self._log_area)

        self._status_bar = QStatusBar()
        self.setStatusBar(self._status_bar)

    # ── Signal wiring ─────────────────────────────────────────────────────────

    def _connect_signals(self) -> None:
        self._query_bar.editingFinished.connect(self._on_query_entered)
        self._diag_btn.clicked.connect(self._on_diagnostics)
        self._flush_btn.clicked.connect(self._on_flush)
        self._driver.frame.connect(self._on_frame)
        self._driver.idle.connect(self._show_default_screen)
        self._driver.status.connect(self._on_status)

    # ── Slots ─────────────────────────────────────────────────────────────────

    @Slot()
    def _on_query_entered(self) -> None:
        text = self._query_bar.text()
        self._driver.set_query(text)
        self._last_title = None
        self._log(f"Query: {text.strip() or '(cleared)'}")

    @Slot(object)
    def _on_frame(self, state: RenderState) -> None:
        if state.title_id != self._last_title:
            self._last_title = state.title_id
            self._log(f"Showing {state.header} [{state.title_id}]", success=True)
        self._header.setText(state.header)
        self._board_name.setText(state.board_name)
        self._rows.setText("\n".join(state.rows[:_PANEL_LINES]))
        self._status_bar.showMessage(
            f"Board {state.board_index + 1} · variant {state.variant_index + 1} · "
            f"hold {state.hold_seconds:.0f}s"
        )

    @Slot()
    def _show_default_screen(self) -> None:
        self._header.setText("Insignia Board")
        self._board_name.setText("")
        self._rows.setText("No leaderboard.")

    @Slot(str)
    def _on_status(self, msg: str) -> None:
        self._log(msg)
        self._status_bar.showMessage(msg)

    @Slot()
    def _on_diagnostics(self) -> None:
        engine = self._driver.engine
        engine.dump_search_debug()
        if not engine.diagnostics:
            self._log("No match candidates recorded.")
            return
        for diag in engine.diagnostics:
            self._log(str(diag))

    @Slot()
    def _on_flush(self) -> None:
        self._driver.engine.flush_cache()
        self._log("Cache flushed.")

    def closeEvent(self, event: QCloseEvent) -> None:
        self._driver.stop()
        logging.getLogger("services").removeHandler(self._log_bridge)
        super().closeEvent(event)

    # ── UI helpers ────────────────────────────────────────────────────────────

    def _log(self, msg: str, *, error: bool = False, success: bool = False) -> None:
        ts = datetime.datetime.now().strftime("%H:%M:%S")
        if error:
            line = f'<span style="color:{_ERROR}">[{ts}] ✗  {msg}</span>'
        elif success:
            line = f'<span style="color:{_SUCCESS}">[{ts}] ✓  {msg}</span>'
        else:
            line = f'<span style="color:{_TEXT_DIM}">[{ts}]  {msg}</span>'
        self._log_area.appendHtml(line)
        sb = self._log_area.verticalScrollBar()
        sb.setValue(sb.maximum())


class _WarningBridge(logging.Handler):
    """Mirrors engine warnings into the window's log area."""

    def __init__(self, window: StatusDisplayWindow) -> None:
        super().__init__(level=logging.WARNING)
        self._window = window

    def emit(self, record: logging.LogRecord) -> None:
        self._window._log(record.getMessage(), error=True)
