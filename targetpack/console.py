"""Levelled console output used by the command line and the orchestrator."""
from __future__ import annotations

import sys
import threading


class Console:
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "info", dry_run: bool = False):
        if level not in self.LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        self.level_name = level
        self.level = self.LEVELS[level]
        self.dry_run = dry_run
        self._lock = threading.Lock()

    def _emit(self, text: str, *, stream=None) -> None:
        with self._lock:
            print(text, file=stream or sys.stdout, flush=True)

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            self._emit(f"[INFO] {message}")

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            self._emit(f"[ERROR] {message}", stream=sys.stderr)

    def dry(self, message: str) -> None:
        if self.dry_run:
            self._emit(f"[DRY] {message}")

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            self._emit(f"[DEBUG] {message}")
