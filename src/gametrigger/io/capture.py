"""
Capture contexts and the ordered list of window capture strategies.

A ``CaptureContext`` is keyed by ``(hwnd, bounds, client_only)``; when the
window's bounds change the caller drops the old context and builds a new one
rather than patching it. Strategies are tried in list order and each returns a
BGRA ``numpy`` array or ``None``; the first array wins.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional
import logging

import mss
import numpy as np

from .win import Rect

logger = logging.getLogger(__name__)


@dataclass
class CaptureContext:
    """Capture resources sized to one window geometry; owned by a FrameSource."""

    hwnd: Any
    bounds: Rect
    client_only: bool
    surface: Any

    def matches(self, hwnd, bounds: Rect, client_only: bool) -> bool:
        return self.hwnd == hwnd and self.bounds == bounds and self.client_only == client_only


class PrintWindowCapture:
    """Composited capture (PrintWindow); tolerates occluded and off-screen windows."""

    name = "print_window"

    def grab(self, api, ctx: CaptureContext) -> Optional[np.ndarray]:
        return api.print_window(ctx.surface)

    def close(self) -> None:
        pass


class WindowBlitCapture:
    """BitBlt straight from the window's own device context."""

    name = "window_blit"

    def grab(self, api, ctx: CaptureContext) -> Optional[np.ndarray]:
        return api.blit_window(ctx.surface)

    def close(self) -> None:
        pass


class ScreenGrabCapture:
    """Desktop grab of the window's on-screen area through ``mss``.

    Only sees what is actually visible on screen, so it is off by default
    (``capture_screen_fallback`` in config.ini).
    """

    name = "screen_grab"

    def __init__(self) -> None:
        self._sct = None

    def _get_sct(self):
        if self._sct is None:
            self._sct = mss.mss()
        return self._sct

    def grab(self, api, ctx: CaptureContext) -> Optional[np.ndarray]:
        rc = api.get_screen_bounds(ctx.hwnd, ctx.client_only)
        if rc is None or rc.width <= 0 or rc.height <= 0:
            return None
        region = {"left": rc.left, "top": rc.top, "width": rc.width, "height": rc.height}
        return np.array(self._get_sct().grab(region))  # BGRA

    def close(self) -> None:
        sct, self._sct = self._sct, None
        if sct is not None:
            try:
                sct.close()
            except Exception:
                logger.debug("capture: mss close failed", exc_info=True)


def default_strategies(screen_fallback: bool = False) -> List[Any]:
    strategies: List[Any] = [PrintWindowCapture(), WindowBlitCapture()]
    if screen_fallback:
        strategies.append(ScreenGrabCapture())
    return strategies
