"""Frame source: resolve a target process window and capture its pixels.

Responsibility:
- Resolve a process name to a pid and its main top-level window.
- Keep one ``CaptureContext`` sized to the window's current bounds, rebuilt
  on any bounds change and released on target change or ``close``.
- Try the capture strategies in order and return a 3-channel BGR frame.

Failure policy: resolution failures return False and clear all target state;
capture failures return None. Nothing raises across this boundary.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence
import logging
import time

import numpy as np

from ..io import win as win_api
from ..io.capture import CaptureContext, default_strategies
from ..io.win import Rect

logger = logging.getLogger(__name__)


@dataclass
class TargetWindow:
    process_name: str
    pid: int
    hwnd: Any
    bounds: Optional[Rect] = None


class FrameSource:
    """Capture frames from the main window of a named process."""

    def __init__(
        self,
        api=None,
        strategies: Optional[Sequence[Any]] = None,
        min_window_size: tuple = (100, 100),
        client_area: bool = True,
    ) -> None:
        self.api = api if api is not None else win_api
        self.strategies: List[Any] = list(strategies) if strategies is not None else default_strategies()
        self.min_width, self.min_height = (int(v) for v in min_window_size)
        self.client_area = bool(client_area)
        self.process_name: str = ""
        self.target: Optional[TargetWindow] = None
        self._ctx: Optional[CaptureContext] = None
        self.last_strategy: Optional[str] = None

    # --------------------------- lifecycle ---------------------------
    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release capture resources and strategy handles and forget the target."""
        self._release_context()
        for s in self.strategies:
            try:
                s.close()
            except Exception:
                logger.debug("frame_source: strategy %s close failed", getattr(s, "name", s), exc_info=True)
        self.target = None
        self.process_name = ""

    def _release_context(self) -> None:
        ctx, self._ctx = self._ctx, None
        if ctx is None:
            return
        try:
            self.api.release_capture_surface(ctx.surface)
        except Exception:
            logger.warning("frame_source: failed to release capture surface", exc_info=True)

    def _build_context(self, hwnd, bounds: Rect) -> bool:
        """Drop any existing context and allocate one for ``bounds``."""
        self._release_context()
        try:
            surface = self.api.create_capture_surface(hwnd, bounds.width, bounds.height, self.client_area)
        except Exception:
            logger.warning("frame_source: capture surface setup raised", exc_info=True)
            surface = None
        if surface is None:
            logger.warning("frame_source: capture surface setup failed for %dx%d", bounds.width, bounds.height)
            return False
        self._ctx = CaptureContext(hwnd=hwnd, bounds=bounds, client_only=self.client_area, surface=surface)
        return True

    # --------------------------- target ---------------------------
    def set_target(self, process_name: str) -> bool:
        """Resolve ``process_name`` and prepare capture for its main window."""
        self._release_context()
        self.target = None
        name = (process_name or "").strip()
        self.process_name = name
        if not name:
            logger.warning("frame_source: empty process name provided")
            return False

        pid = self.api.find_process_id(name)
        if not pid:
            logger.info("frame_source: process '%s' not currently running", name)
            return False
        hwnd = self.api.find_main_window(pid)
        if not hwnd:
            logger.warning("frame_source: could not find main window for '%s' (pid=%s)", name, pid)
            return False
        bounds = self.api.get_window_bounds(hwnd, self.client_area)
        if bounds is None or bounds.width <= 0 or bounds.height <= 0:
            logger.warning("frame_source: window of '%s' has no usable bounds", name)
            return False
        if not self._build_context(hwnd, bounds):
            return False

        self.target = TargetWindow(process_name=name, pid=int(pid), hwnd=hwnd, bounds=bounds)
        logger.info("frame_source: target '%s' resolved (pid=%s)", name, pid)
        self.log_window_info()
        return True

    def refresh(self) -> bool:
        """Re-resolve the previously configured process (e.g. after a restart)."""
        if not self.process_name:
            return False
        return self.set_target(self.process_name)

    def is_process_live(self) -> bool:
        if self.target is None:
            return False
        try:
            return bool(self.api.is_process_alive(self.target.pid))
        except Exception:
            logger.debug("frame_source: liveness check failed", exc_info=True)
            return False

    # --------------------------- settings ---------------------------
    def set_capture_client_area(self, client_only: bool) -> None:
        client_only = bool(client_only)
        if client_only != self.client_area:
            self.client_area = client_only
            # next capture sees a key mismatch and rebuilds
            self._release_context()

    def set_min_window_size(self, min_width: int, min_height: int) -> None:
        self.min_width = max(0, int(min_width))
        self.min_height = max(0, int(min_height))

    # --------------------------- window info ---------------------------
    def is_window_visible(self) -> bool:
        return self.target is not None and bool(self.api.is_window_visible(self.target.hwnd))

    def get_window_rect(self) -> Optional[Rect]:
        if self.target is None:
            return None
        return self.api.get_window_bounds(self.target.hwnd, False)

    def get_window_title(self) -> str:
        if self.target is None:
            return ""
        return self.api.get_window_text(self.target.hwnd)

    def get_running_processes(self) -> List[str]:
        return list(self.api.list_process_names())

    def log_window_info(self) -> None:
        t = self.target
        if t is None:
            logger.info("frame_source: no target window")
            return
        rect = self.get_window_rect()
        logger.info(
            "frame_source: window title=%r hwnd=%s rect=%s client_area=%s",
            self.get_window_title(), t.hwnd, rect, self.client_area,
        )

    # --------------------------- capture ---------------------------
    def capture(self) -> Optional[np.ndarray]:
        """Return a BGR frame of the target window, or None."""
        t = self.target
        if t is None:
            return None
        try:
            return self._capture(t)
        except Exception:
            logger.warning("frame_source: capture failed", exc_info=True)
            return None

    def _capture(self, t: TargetWindow) -> Optional[np.ndarray]:
        api = self.api
        if not api.is_window(t.hwnd):
            logger.debug("frame_source: window handle %s no longer exists", t.hwnd)
            self._release_context()
            return None
        if api.is_window_minimized(t.hwnd) or not api.is_window_visible(t.hwnd):
            return None
        bounds = api.get_window_bounds(t.hwnd, self.client_area)
        if bounds is None:
            return None
        if bounds.width < self.min_width or bounds.height < self.min_height:
            logger.debug("frame_source: window %dx%d below minimum %dx%d",
                         bounds.width, bounds.height, self.min_width, self.min_height)
            return None

        if self._ctx is None or not self._ctx.matches(t.hwnd, bounds, self.client_area):
            logger.debug("frame_source: bounds changed %s -> %s, rebuilding context", t.bounds, bounds)
            if not self._build_context(t.hwnd, bounds):
                return None
            t.bounds = bounds

        t0 = time.perf_counter()
        for strategy in self.strategies:
            name = getattr(strategy, "name", type(strategy).__name__)
            try:
                pixels = strategy.grab(api, self._ctx)
            except Exception:
                logger.debug("frame_source: strategy %s raised", name, exc_info=True)
                pixels = None
            if pixels is None or pixels.size == 0:
                logger.debug("frame_source: strategy %s failed", name)
                continue
            self.last_strategy = name
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("frame_source: %s capture %.1fms", name, (time.perf_counter() - t0) * 1000.0)
            if pixels.ndim == 3 and pixels.shape[2] == 4:
                return np.ascontiguousarray(pixels[:, :, :3])
            return pixels
        return None
