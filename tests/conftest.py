"""Pytest configuration.

Ensures the src directory is on sys.path so tests can import ``gametrigger.*``
without installing the package, and provides a scriptable stand-in for the
Win32 helpers in ``gametrigger.io.win``.
"""

import sys
from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
for p in (str(PROJECT_ROOT), str(SRC_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from gametrigger.io.win import Rect  # noqa: E402


class FakeWinApi:
    """Duck-typed replacement for ``gametrigger.io.win``.

    One fake window per process. ``screen`` is the BGR content the window
    shows; captures return its top-left ``width x height`` crop as BGRA.
    """

    def __init__(self):
        self.pids = {}
        self.alive = set()
        self.windows = {}
        self.bounds = {}
        self.minimized = set()
        self.hidden = set()
        self.screen = np.zeros((1, 1, 3), dtype=np.uint8)
        self.print_ok = True
        self.blit_ok = True
        self.created = []
        self.released = []
        self.print_calls = 0
        self.blit_calls = 0

    # scripting helpers
    def start(self, name, pid=42, hwnd=7, size=(800, 600)):
        self.pids[name.lower()] = pid
        self.alive.add(pid)
        self.windows[pid] = hwnd
        self.resize(hwnd, *size)

    def kill(self, name):
        pid = self.pids.pop(name.lower(), None)
        self.alive.discard(pid)

    def resize(self, hwnd, width, height):
        self.bounds[hwnd] = Rect(0, 0, width, height)

    @property
    def live_surfaces(self):
        return [s for s in self.created if s not in self.released]

    # io.win surface
    def find_process_id(self, name):
        return self.pids.get(name.lower())

    def list_process_names(self):
        return sorted(self.pids)

    def is_process_alive(self, pid):
        return pid in self.alive

    def get_window_text(self, hwnd):
        return "Fake Game"

    def find_main_window(self, pid):
        return self.windows.get(pid)

    def is_window(self, hwnd):
        return hwnd in self.bounds

    def is_window_visible(self, hwnd):
        return hwnd not in self.hidden

    def is_window_minimized(self, hwnd):
        return hwnd in self.minimized

    def get_window_bounds(self, hwnd, client_only=True):
        return self.bounds.get(hwnd)

    def get_screen_bounds(self, hwnd, client_only=True):
        return self.bounds.get(hwnd)

    def create_capture_surface(self, hwnd, width, height, client_only=True):
        surface = SimpleNamespace(id=len(self.created), hwnd=hwnd, width=width,
                                  height=height, client_only=client_only)
        self.created.append(surface)
        return surface

    def release_capture_surface(self, surface):
        self.released.append(surface)

    def _pixels(self, surface):
        canvas = np.zeros((surface.height, surface.width, 4), dtype=np.uint8)
        h = min(surface.height, self.screen.shape[0])
        w = min(surface.width, self.screen.shape[1])
        canvas[:h, :w, :3] = self.screen[:h, :w]
        canvas[:, :, 3] = 255
        return canvas

    def print_window(self, surface):
        self.print_calls += 1
        return self._pixels(surface) if self.print_ok else None

    def blit_window(self, surface):
        self.blit_calls += 1
        return self._pixels(surface) if self.blit_ok else None


def make_texture(height, width, seed=0, smooth=0):
    """Deterministic random BGR texture; ``smooth`` > 0 applies a box blur."""
    rng = np.random.default_rng(seed)
    img = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    if smooth:
        import cv2

        img = cv2.blur(img, (smooth, smooth))
    return img


def embed(canvas, patch, x, y):
    out = canvas.copy()
    out[y:y + patch.shape[0], x:x + patch.shape[1]] = patch
    return out


@pytest.fixture
def fake_api():
    return FakeWinApi()
