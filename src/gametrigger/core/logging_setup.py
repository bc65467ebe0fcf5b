"""Logging setup for Game Audio Trigger.

Each run gets its own directory next to config.ini:

    logs/session-YYYYmmdd_HHMMSS/
        gametrigger.log     root logger file output
        session_info.txt    platform and trigger settings at startup
        artifacts/          annotated debug frames (debug_mode=True)

Only the newest sessions are kept. The active session path is exported as
GT_LOG_SESSION_DIR so artifact writers in other modules find it without a
config handle.

Usage:
    from .core.logging_setup import setup_logging
    session_dir = setup_logging(config_manager)
"""
from __future__ import annotations

import logging
import os
import platform
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

SESSION_ENV = "GT_LOG_SESSION_DIR"
SESSION_PREFIX = "session-"
KEEP_SESSIONS = 3
LOG_FILE_NAME = "gametrigger.log"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Settings echoed into session_info.txt; file settings show only the file name
_INFO_SETTINGS = (
    "log_level", "process_name", "template_image", "audio_file",
    "match_method", "match_threshold", "cooldown_ms", "enabled", "debug_mode",
)
_FILE_SETTINGS = ("template_image", "audio_file")


def _level_from_str(value: Optional[str]) -> int:
    """Map a level name to its number; unknown or empty names mean INFO."""
    name = str(value or "").strip().upper()
    if name == "WARN":
        name = "WARNING"
    level = logging.getLevelName(name) if name else None
    return level if isinstance(level, int) else logging.INFO


def _resolve_level(config_manager, level: Union[str, int, None]) -> int:
    if isinstance(level, int):
        return level
    if level:
        return _level_from_str(level)
    getter = getattr(config_manager, "get", None)
    return _level_from_str(getter("log_level") if getter else None)


def get_log_dir(config_manager) -> Path:
    """``logs/`` beside the config file, created on demand."""
    log_dir = Path(config_manager.config_path).parent / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_artifacts_dir(config_manager=None, name: str = "artifacts") -> Path:
    """Directory for debug frames.

    Prefers the active session, then the config directory, then the working
    directory when neither is known.
    """
    session_env = os.environ.get(SESSION_ENV, "").strip()
    if session_env:
        base = Path(session_env)
    elif config_manager is not None:
        base = Path(config_manager.config_path).parent
    else:
        base = Path.cwd()
    out_dir = base / name
    out_dir.mkdir(parents=True, exist_ok=True)
    return out_dir


def get_session_dir(config_manager) -> Path:
    session = get_log_dir(config_manager) / datetime.now().strftime(f"{SESSION_PREFIX}%Y%m%d_%H%M%S")
    session.mkdir(parents=True, exist_ok=True)
    return session


def prune_old_sessions(log_dir: Path, keep: int = KEEP_SESSIONS) -> None:
    """Delete all but the ``keep`` newest session directories.

    Session names embed their start timestamp, so name order is age order.
    """
    try:
        sessions = sorted(
            (p for p in log_dir.iterdir() if p.is_dir() and p.name.startswith(SESSION_PREFIX)),
            key=lambda p: p.name,
            reverse=True,
        )
    except OSError:
        return
    for old in sessions[keep:]:
        shutil.rmtree(old, ignore_errors=True)


def _describe_setting(config_manager, key: str) -> str:
    value = config_manager.get(key)
    if key in _FILE_SETTINGS and value:
        path = Path(value)
        return f"{path.name} ({'found' if path.is_file() else 'missing'})"
    return str(value)


def _create_session_info(session_dir: Path, config_manager) -> None:
    lines = [
        "GAME AUDIO TRIGGER SESSION",
        "=" * 40,
        f"Started: {datetime.now():%Y-%m-%d %H:%M:%S}",
        f"Platform: {platform.platform()}",
        f"Python: {sys.version.split()[0]} ({sys.executable})",
        f"Config: {getattr(config_manager, 'config_path', 'unknown')}",
        "",
        "TRIGGER SETTINGS",
        "-" * 40,
    ]
    lines += [f"{key} = {_describe_setting(config_manager, key)}" for key in _INFO_SETTINGS]
    try:
        (session_dir / "session_info.txt").write_text("\n".join(lines) + "\n", encoding="utf-8")
    except OSError:
        # The session still logs without its info file
        pass


def setup_logging(config_manager, level: Union[str, int, None] = None) -> Path:
    """Route the root logger to a fresh session directory and the console.

    ``level`` overrides ``log_level`` from config.ini. The console never goes
    below INFO so per-tick DEBUG chatter stays in the file. Returns the session
    directory.
    """
    lvl = _resolve_level(config_manager, level)
    root = logging.getLogger()
    root.setLevel(lvl)
    # Replace handlers so repeated setup (tests, --once reruns) does not duplicate output
    for h in root.handlers[:]:
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    session_dir = get_session_dir(config_manager)
    os.environ[SESSION_ENV] = str(session_dir)

    file_path = session_dir / LOG_FILE_NAME
    fh = logging.FileHandler(file_path, encoding="utf-8", delay=True)
    fh.setLevel(lvl)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(max(lvl, logging.INFO))
    ch.setFormatter(fmt)
    root.addHandler(ch)

    prune_old_sessions(get_log_dir(config_manager))
    _create_session_info(session_dir, config_manager)

    if lvl > logging.DEBUG:
        logging.getLogger("cv2").setLevel(logging.WARNING)

    root.info("Logging initialized: level=%s, file=%s", logging.getLevelName(lvl), file_path)
    return session_dir
