"""
Windows-specific helpers for process discovery, window state and GDI capture.

Separated from controllers to keep platform IO concerns isolated and testable:
``controllers.frame_source.FrameSource`` talks to this module as a duck-typed
API object, so tests substitute a fake with the same function names.

On non-Windows platforms every function is a stub that reports "nothing found".
"""
from __future__ import annotations

import ctypes
import logging
import os
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
STILL_ACTIVE = 259
TH32CS_SNAPPROCESS = 0x00000002
SRCCOPY = 0x00CC0020
PW_CLIENTONLY = 0x00000001
PW_RENDERFULLCONTENT = 0x00000002
BI_RGB = 0
DIB_RGB_COLORS = 0


@dataclass(frozen=True)
class Rect:
    """Window rectangle in Win32 convention (right/bottom exclusive)."""

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top


@dataclass
class CaptureSurface:
    """GDI objects backing one capture context; pixels live in ``bits``."""

    hwnd: Any
    window_dc: Any
    memory_dc: Any
    bitmap: Any
    old_bitmap: Any
    bits: Any
    width: int
    height: int
    client_only: bool


if os.name == "nt":
    from ctypes import wintypes

    user32 = ctypes.WinDLL("user32", use_last_error=True)
    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    gdi32 = ctypes.WinDLL("gdi32", use_last_error=True)

    class RECT(ctypes.Structure):
        _fields_ = [
            ("left", ctypes.c_long),
            ("top", ctypes.c_long),
            ("right", ctypes.c_long),
            ("bottom", ctypes.c_long),
        ]

    class POINT(ctypes.Structure):
        _fields_ = [("x", ctypes.c_long), ("y", ctypes.c_long)]

    class PROCESSENTRY32W(ctypes.Structure):
        _fields_ = [
            ("dwSize", wintypes.DWORD),
            ("cntUsage", wintypes.DWORD),
            ("th32ProcessID", wintypes.DWORD),
            ("th32DefaultHeapID", ctypes.c_size_t),
            ("th32ModuleID", wintypes.DWORD),
            ("cntThreads", wintypes.DWORD),
            ("th32ParentProcessID", wintypes.DWORD),
            ("pcPriClassBase", ctypes.c_long),
            ("dwFlags", wintypes.DWORD),
            ("szExeFile", wintypes.WCHAR * 260),
        ]

    class BITMAPINFOHEADER(ctypes.Structure):
        _fields_ = [
            ("biSize", wintypes.DWORD),
            ("biWidth", wintypes.LONG),
            ("biHeight", wintypes.LONG),
            ("biPlanes", wintypes.WORD),
            ("biBitCount", wintypes.WORD),
            ("biCompression", wintypes.DWORD),
            ("biSizeImage", wintypes.DWORD),
            ("biXPelsPerMeter", wintypes.LONG),
            ("biYPelsPerMeter", wintypes.LONG),
            ("biClrUsed", wintypes.DWORD),
            ("biClrImportant", wintypes.DWORD),
        ]

    class BITMAPINFO(ctypes.Structure):
        _fields_ = [("bmiHeader", BITMAPINFOHEADER), ("bmiColors", wintypes.DWORD * 3)]

    WNDENUMPROC = ctypes.WINFUNCTYPE(wintypes.BOOL, wintypes.HWND, wintypes.LPARAM)

    # Handle-returning calls need explicit restypes or 64-bit handles truncate
    kernel32.CreateToolhelp32Snapshot.restype = wintypes.HANDLE
    kernel32.CreateToolhelp32Snapshot.argtypes = [wintypes.DWORD, wintypes.DWORD]
    kernel32.Process32FirstW.argtypes = [wintypes.HANDLE, ctypes.POINTER(PROCESSENTRY32W)]
    kernel32.Process32NextW.argtypes = [wintypes.HANDLE, ctypes.POINTER(PROCESSENTRY32W)]
    kernel32.OpenProcess.restype = wintypes.HANDLE
    kernel32.OpenProcess.argtypes = [wintypes.DWORD, wintypes.BOOL, wintypes.DWORD]
    kernel32.GetExitCodeProcess.argtypes = [wintypes.HANDLE, ctypes.POINTER(wintypes.DWORD)]
    kernel32.CloseHandle.argtypes = [wintypes.HANDLE]
    user32.EnumWindows.argtypes = [WNDENUMPROC, wintypes.LPARAM]
    user32.GetWindowThreadProcessId.argtypes = [wintypes.HWND, ctypes.POINTER(wintypes.DWORD)]
    user32.GetParent.restype = wintypes.HWND
    user32.GetParent.argtypes = [wintypes.HWND]
    user32.IsWindow.argtypes = [wintypes.HWND]
    user32.IsWindowVisible.argtypes = [wintypes.HWND]
    user32.IsIconic.argtypes = [wintypes.HWND]
    user32.GetWindowTextLengthW.argtypes = [wintypes.HWND]
    user32.GetWindowTextW.argtypes = [wintypes.HWND, wintypes.LPWSTR, ctypes.c_int]
    user32.GetClientRect.argtypes = [wintypes.HWND, ctypes.POINTER(RECT)]
    user32.GetWindowRect.argtypes = [wintypes.HWND, ctypes.POINTER(RECT)]
    user32.ClientToScreen.argtypes = [wintypes.HWND, ctypes.POINTER(POINT)]
    user32.GetDC.restype = wintypes.HDC
    user32.GetDC.argtypes = [wintypes.HWND]
    user32.GetWindowDC.restype = wintypes.HDC
    user32.GetWindowDC.argtypes = [wintypes.HWND]
    user32.ReleaseDC.argtypes = [wintypes.HWND, wintypes.HDC]
    user32.PrintWindow.argtypes = [wintypes.HWND, wintypes.HDC, wintypes.UINT]
    gdi32.CreateCompatibleDC.restype = wintypes.HDC
    gdi32.CreateCompatibleDC.argtypes = [wintypes.HDC]
    gdi32.CreateDIBSection.restype = wintypes.HBITMAP
    gdi32.CreateDIBSection.argtypes = [
        wintypes.HDC, ctypes.POINTER(BITMAPINFO), wintypes.UINT,
        ctypes.POINTER(ctypes.c_void_p), wintypes.HANDLE, wintypes.DWORD,
    ]
    gdi32.SelectObject.restype = wintypes.HGDIOBJ
    gdi32.SelectObject.argtypes = [wintypes.HDC, wintypes.HGDIOBJ]
    gdi32.DeleteObject.argtypes = [wintypes.HGDIOBJ]
    gdi32.DeleteDC.argtypes = [wintypes.HDC]
    gdi32.GdiFlush.argtypes = []
    gdi32.BitBlt.argtypes = [
        wintypes.HDC, ctypes.c_int, ctypes.c_int, ctypes.c_int, ctypes.c_int,
        wintypes.HDC, ctypes.c_int, ctypes.c_int, wintypes.DWORD,
    ]

    INVALID_HANDLE_VALUE = wintypes.HANDLE(-1).value

    def _iter_processes():
        snap = kernel32.CreateToolhelp32Snapshot(TH32CS_SNAPPROCESS, 0)
        if not snap or snap == INVALID_HANDLE_VALUE:
            logger.warning("win: process snapshot failed (err=%d)", ctypes.get_last_error())
            return
        try:
            entry = PROCESSENTRY32W()
            entry.dwSize = ctypes.sizeof(PROCESSENTRY32W)
            ok = kernel32.Process32FirstW(snap, ctypes.byref(entry))
            while ok:
                yield int(entry.th32ProcessID), str(entry.szExeFile)
                ok = kernel32.Process32NextW(snap, ctypes.byref(entry))
        finally:
            kernel32.CloseHandle(snap)

    def find_process_id(name: str) -> Optional[int]:
        """Return the pid of the first process whose image name matches (case-insensitive)."""
        target = (name or "").strip().lower()
        if not target:
            return None
        for pid, exe in _iter_processes():
            if exe.lower() == target:
                return pid
        return None

    def list_process_names() -> List[str]:
        return sorted({exe for _, exe in _iter_processes()}, key=str.lower)

    def is_process_alive(pid: Optional[int]) -> bool:
        if not pid:
            return False
        hproc = kernel32.OpenProcess(PROCESS_QUERY_LIMITED_INFORMATION, False, int(pid))
        if not hproc:
            return False
        try:
            code = wintypes.DWORD()
            if not kernel32.GetExitCodeProcess(hproc, ctypes.byref(code)):
                return False
            return code.value == STILL_ACTIVE
        finally:
            kernel32.CloseHandle(hproc)

    def get_window_text(hwnd) -> str:
        length = user32.GetWindowTextLengthW(hwnd)
        if length <= 0:
            return ""
        buf = ctypes.create_unicode_buffer(length + 1)
        user32.GetWindowTextW(hwnd, buf, length + 1)
        return buf.value or ""

    def find_main_window(pid: int) -> Optional[int]:
        """First visible, titled, parentless top-level window owned by ``pid``."""
        found: List[int] = []

        @WNDENUMPROC
        def _enum_proc(hwnd, lparam):  # pragma: no cover - requires Windows GUI
            try:
                owner = wintypes.DWORD()
                user32.GetWindowThreadProcessId(hwnd, ctypes.byref(owner))
                if owner.value != pid:
                    return True
                if not user32.IsWindowVisible(hwnd):
                    return True
                if user32.GetParent(hwnd):
                    return True
                if user32.GetWindowTextLengthW(hwnd) <= 0:
                    return True
                found.append(hwnd)
                return False
            except Exception:
                return True

        user32.EnumWindows(_enum_proc, 0)
        return found[0] if found else None

    def is_window(hwnd) -> bool:
        return bool(hwnd) and bool(user32.IsWindow(hwnd))

    def is_window_visible(hwnd) -> bool:
        return bool(hwnd) and bool(user32.IsWindowVisible(hwnd))

    def is_window_minimized(hwnd) -> bool:
        return bool(hwnd) and bool(user32.IsIconic(hwnd))

    def get_window_bounds(hwnd, client_only: bool = True) -> Optional[Rect]:
        """Client rect (origin 0,0) or full window rect in screen coordinates."""
        rc = RECT()
        fn = user32.GetClientRect if client_only else user32.GetWindowRect
        if not fn(hwnd, ctypes.byref(rc)):
            logger.warning("win: failed to get %s rect (err=%d)",
                           "client" if client_only else "window", ctypes.get_last_error())
            return None
        return Rect(int(rc.left), int(rc.top), int(rc.right), int(rc.bottom))

    def get_screen_bounds(hwnd, client_only: bool = True) -> Optional[Rect]:
        """Capture area in screen coordinates (for desktop grabs)."""
        if not client_only:
            return get_window_bounds(hwnd, client_only=False)
        rc = get_window_bounds(hwnd, client_only=True)
        if rc is None:
            return None
        pt = POINT(0, 0)
        if not user32.ClientToScreen(hwnd, ctypes.byref(pt)):
            return None
        return Rect(pt.x, pt.y, pt.x + rc.width, pt.y + rc.height)

    def create_capture_surface(hwnd, width: int, height: int, client_only: bool = True) -> Optional[CaptureSurface]:
        """Allocate a window DC, a memory DC and a 32bpp top-down DIB section."""
        window_dc = user32.GetDC(hwnd) if client_only else user32.GetWindowDC(hwnd)
        if not window_dc:
            return None
        memory_dc = gdi32.CreateCompatibleDC(window_dc)
        if not memory_dc:
            user32.ReleaseDC(hwnd, window_dc)
            return None
        bmi = BITMAPINFO()
        bmi.bmiHeader.biSize = ctypes.sizeof(BITMAPINFOHEADER)
        bmi.bmiHeader.biWidth = int(width)
        bmi.bmiHeader.biHeight = -int(height)
        bmi.bmiHeader.biPlanes = 1
        bmi.bmiHeader.biBitCount = 32
        bmi.bmiHeader.biCompression = BI_RGB
        bits = ctypes.c_void_p()
        bitmap = gdi32.CreateDIBSection(memory_dc, ctypes.byref(bmi), DIB_RGB_COLORS, ctypes.byref(bits), None, 0)
        if not bitmap or not bits.value:
            gdi32.DeleteDC(memory_dc)
            user32.ReleaseDC(hwnd, window_dc)
            return None
        old = gdi32.SelectObject(memory_dc, bitmap)
        return CaptureSurface(hwnd, window_dc, memory_dc, bitmap, old, bits, int(width), int(height), client_only)

    def release_capture_surface(surface: Optional[CaptureSurface]) -> None:
        if surface is None:
            return
        if surface.memory_dc and surface.old_bitmap:
            gdi32.SelectObject(surface.memory_dc, surface.old_bitmap)
        if surface.bitmap:
            gdi32.DeleteObject(surface.bitmap)
        if surface.memory_dc:
            gdi32.DeleteDC(surface.memory_dc)
        if surface.window_dc:
            user32.ReleaseDC(surface.hwnd, surface.window_dc)

    def _read_bits(surface: CaptureSurface) -> np.ndarray:
        gdi32.GdiFlush()
        n = surface.width * surface.height * 4
        raw = (ctypes.c_ubyte * n).from_address(surface.bits.value)
        return np.ctypeslib.as_array(raw).reshape((surface.height, surface.width, 4)).copy()

    def print_window(surface: CaptureSurface) -> Optional[np.ndarray]:
        """Composited capture; works for occluded windows, not minimized ones."""
        flags = PW_RENDERFULLCONTENT | (PW_CLIENTONLY if surface.client_only else 0)
        if not user32.PrintWindow(surface.hwnd, surface.memory_dc, flags):
            return None
        return _read_bits(surface)

    def blit_window(surface: CaptureSurface) -> Optional[np.ndarray]:
        """Direct BitBlt from the window's own DC into the DIB section."""
        ok = gdi32.BitBlt(surface.memory_dc, 0, 0, surface.width, surface.height,
                          surface.window_dc, 0, 0, SRCCOPY)
        if not ok:
            return None
        return _read_bits(surface)
else:
    def find_process_id(name: str) -> Optional[int]:
        return None

    def list_process_names() -> List[str]:
        return []

    def is_process_alive(pid: Optional[int]) -> bool:
        return False

    def get_window_text(hwnd) -> str:
        return ""

    def find_main_window(pid: int) -> Optional[int]:
        return None

    def is_window(hwnd) -> bool:
        return False

    def is_window_visible(hwnd) -> bool:
        return False

    def is_window_minimized(hwnd) -> bool:
        return False

    def get_window_bounds(hwnd, client_only: bool = True) -> Optional[Rect]:
        return None

    def get_screen_bounds(hwnd, client_only: bool = True) -> Optional[Rect]:
        return None

    def create_capture_surface(hwnd, width: int, height: int, client_only: bool = True) -> Optional[CaptureSurface]:
        return None

    def release_capture_surface(surface: Optional[CaptureSurface]) -> None:
        return None

    def print_window(surface: CaptureSurface) -> Optional[np.ndarray]:
        return None

    def blit_window(surface: CaptureSurface) -> Optional[np.ndarray]:
        return None

__all__ = [
    "Rect",
    "CaptureSurface",
    "find_process_id",
    "list_process_names",
    "is_process_alive",
    "get_window_text",
    "find_main_window",
    "is_window",
    "is_window_visible",
    "is_window_minimized",
    "get_window_bounds",
    "get_screen_bounds",
    "create_capture_surface",
    "release_capture_surface",
    "print_window",
    "blit_window",
]
