"""
main.py – Leaderboard display entry point.
Bootstraps logging and the PySide6 QApplication and launches the status window.
"""

import logging
import sys

from PySide6.QtWidgets import QApplication

from main_window import StatusDisplayWindow
from services.config import EngineConfig
from services.engine import LeaderboardEngine


def main() -> None:
    config = EngineConfig.from_env()
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv)
    app.setApplicationName("Insignia Board")
    app.setApplicationDisplayName("Insignia Board – Leaderboard Display")
    app.setOrganizationName("Insignia Board")

    window = StatusDisplayWindow(LeaderboardEngine(config))
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
