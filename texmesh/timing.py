"""Timing helper used to report decode durations."""

from __future__ import annotations

import logging
import time
from typing import Optional


class Timer:
    """Wall-clock timer with context manager support."""

    def __init__(self, name: str = "Timer", logger: Optional[logging.Logger] = None):
        """Initialize timer.

        Args:
            name: Timer name for logging
            logger: Logger to use (if None, uses module logger)
        """
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = None
        self.end_time = None

    def start(self) -> None:
        self.start_time = time.perf_counter()
        self.end_time = None

    def stop(self) -> float:
        """Stop the timer and return elapsed time in seconds."""
        if self.start_time is None:
            self.logger.warning(f"{self.name}: Timer stopped without being started")
            return 0.0

        self.end_time = time.perf_counter()
        elapsed = self.end_time - self.start_time
        self.logger.debug(f"{self.name}: {elapsed:.4f}s")
        return elapsed

    def __enter__(self) -> "Timer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    @property
    def elapsed(self) -> float:
        """Elapsed time; frozen once the timer is stopped."""
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return end - self.start_time

