"""Periodic tick driver for the trigger orchestrator."""
import logging
import threading
import time
from typing import Any

logger = logging.getLogger(__name__)


class TickLoop(threading.Thread):
    """Call ``orchestrator.tick()`` every ``interval`` seconds until stopped.

    Each tick runs to completion before the next wait starts, so a slow
    capture stretches the period instead of stacking ticks.
    """

    def __init__(self, orchestrator: Any, interval: float = 0.1, slow_tick_ms: float = 1000.0):
        super().__init__(daemon=True, name="TickLoop")
        self.orchestrator = orchestrator
        self.interval = max(0.01, float(interval))
        self.slow_tick_ms = float(slow_tick_ms)
        self._stop_event = threading.Event()
        self.ticks = 0

    def stop(self) -> None:
        """Stop the loop after the current tick."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        logger.info("Tick loop started (interval=%.0fms)", self.interval * 1000.0)
        while not self._stop_event.is_set():
            self.run_once()
            if self._stop_event.wait(self.interval):
                break
        logger.info("Tick loop stopped after %d ticks", self.ticks)

    def run_once(self) -> None:
        t0 = time.perf_counter()
        try:
            self.orchestrator.tick()
        except Exception:
            logger.exception("ticker: tick raised")
        finally:
            self.ticks += 1
            dur_ms = (time.perf_counter() - t0) * 1000.0
            if dur_ms > self.slow_tick_ms:
                logger.warning("ticker: slow tick took %.1fms", dur_ms)
