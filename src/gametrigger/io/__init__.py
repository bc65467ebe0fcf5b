"""IO subpackage for platform-specific integrations.

- win: Win32 process/window discovery and GDI capture surfaces
- capture: capture contexts and ordered capture strategies
"""
from .win import Rect, find_process_id, find_main_window
from .capture import CaptureContext, PrintWindowCapture, WindowBlitCapture, ScreenGrabCapture, default_strategies

__all__ = [
    "Rect",
    "find_process_id",
    "find_main_window",
    "CaptureContext",
    "PrintWindowCapture",
    "WindowBlitCapture",
    "ScreenGrabCapture",
    "default_strategies",
]
