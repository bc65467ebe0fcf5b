"""
Trigger orchestration: one tick = liveness -> capture -> match -> trigger.

``TriggerOrchestrator.tick`` is called by the host's periodic callback
(``core.ticker.TickLoop`` in the standalone app). Configuration setters may be
called from other threads; they share one lock with ``tick`` so a reload never
interleaves with a running tick.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import cv2

from ..config.vision import (
    ARTIFACT_MAX_DIM,
    DEFAULT_MATCH_THRESHOLD,
    ROTATION_TOLERANCE_DEFAULT,
    SCALE_MAX_DEFAULT,
    SCALE_MIN_DEFAULT,
)
from ..vision.models import MatchMethod, MatchResult
from .logging_setup import get_artifacts_dir
from .playback import LogPlayback, TriggerEvent, normalize_duration

logger = logging.getLogger(__name__)


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


@dataclass
class TriggerSettings:
    """Host-supplied configuration, parsed and clamped."""

    process_name: str = ""
    template_image: str = ""
    audio_file: str = ""
    match_method: MatchMethod = MatchMethod.TEMPLATE_CORRELATION
    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    cooldown_ms: int = 1000
    audio_volume: float = 1.0
    audio_speed: float = 1.0
    audio_duration: float = -1.0
    enabled: bool = True
    debug_mode: bool = False
    tick_interval_ms: int = 100
    min_window_width: int = 100
    min_window_height: int = 100
    capture_client_area: bool = True
    capture_screen_fallback: bool = False
    grayscale: bool = True
    edge_detection: bool = False
    blur_kernel: int = 0
    blur_sigma: float = 0.0
    scale_min: float = SCALE_MIN_DEFAULT
    scale_max: float = SCALE_MAX_DEFAULT
    rotation_tolerance: float = ROTATION_TOLERANCE_DEFAULT
    max_matches: int = 1

    @classmethod
    def from_config(cls, cm) -> "TriggerSettings":
        d = cls()
        try:
            method = MatchMethod.parse(cm.get("match_method", d.match_method.value))
        except ValueError as e:
            logger.warning("config: %s, using %s", e, d.match_method.value)
            method = d.match_method
        return cls(
            process_name=str(cm.get("process_name", "") or "").strip(),
            template_image=str(cm.get("template_image", "") or "").strip(),
            audio_file=str(cm.get("audio_file", "") or "").strip(),
            match_method=method,
            match_threshold=_clamp(cm.get_float("match_threshold", d.match_threshold), 0.0, 1.0),
            cooldown_ms=int(_clamp(cm.get_int("cooldown_ms", d.cooldown_ms), 0, 10000)),
            audio_volume=_clamp(cm.get_float("audio_volume", d.audio_volume), 0.0, 1.0),
            audio_speed=_clamp(cm.get_float("audio_speed", d.audio_speed), 0.1, 3.0),
            audio_duration=_clamp(cm.get_float("audio_duration", d.audio_duration), -1.0, 300.0),
            enabled=cm.get_bool("enabled", d.enabled),
            debug_mode=cm.get_bool("debug_mode", d.debug_mode),
            tick_interval_ms=max(10, cm.get_int("tick_interval_ms", d.tick_interval_ms)),
            min_window_width=max(0, cm.get_int("min_window_width", d.min_window_width)),
            min_window_height=max(0, cm.get_int("min_window_height", d.min_window_height)),
            capture_client_area=cm.get_bool("capture_client_area", d.capture_client_area),
            capture_screen_fallback=cm.get_bool("capture_screen_fallback", d.capture_screen_fallback),
            grayscale=cm.get_bool("grayscale", d.grayscale),
            edge_detection=cm.get_bool("edge_detection", d.edge_detection),
            blur_kernel=cm.get_int("blur_kernel", d.blur_kernel),
            blur_sigma=cm.get_float("blur_sigma", d.blur_sigma),
            scale_min=cm.get_float("scale_min", d.scale_min),
            scale_max=cm.get_float("scale_max", d.scale_max),
            rotation_tolerance=cm.get_float("rotation_tolerance", d.rotation_tolerance),
            max_matches=cm.get_int("max_matches", d.max_matches),
        )


@dataclass
class TriggerState:
    last_trigger_time: Optional[float] = None  # clock seconds
    cooldown_ms: int = 1000
    enabled: bool = True
    trigger_count: int = 0


class TriggerOrchestrator:
    """Tie a FrameSource, an ImageMatcher and a playback consumer together."""

    def __init__(self, frame_source, matcher, playback=None, clock=time.monotonic,
                 artifacts_dir: Optional[Path] = None) -> None:
        self.frame_source = frame_source
        self.matcher = matcher
        self.playback = playback if playback is not None else LogPlayback()
        self._clock = clock
        self._lock = threading.RLock()
        self.artifacts_dir = artifacts_dir
        # startup counts as a trigger, so nothing fires within one cooldown of creation
        self.state = TriggerState(last_trigger_time=clock())
        self.process_running = False
        self.template_loaded = False
        self.threshold: float = DEFAULT_MATCH_THRESHOLD
        self.duration_cap: Optional[float] = None
        self.debug_mode = False
        self.process_name = ""
        self.template_path = ""
        self.last_result: Optional[MatchResult] = None
        self.last_event: Optional[TriggerEvent] = None

    # --------------------------- configuration ---------------------------
    def apply_settings(self, s: TriggerSettings) -> None:
        """Push a full settings snapshot into the collaborators."""
        with self._lock:
            self.matcher.set_preprocessing(s.grayscale, s.edge_detection, s.blur_kernel, s.blur_sigma)
            self.matcher.set_scale_range(s.scale_min, s.scale_max)
            self.matcher.set_rotation_tolerance(s.rotation_tolerance)
            self.matcher.set_max_matches(s.max_matches)
            self.matcher.set_method(s.match_method)
            self.frame_source.set_min_window_size(s.min_window_width, s.min_window_height)
            self.frame_source.set_capture_client_area(s.capture_client_area)
            self.set_threshold(s.match_threshold)
            self.set_cooldown_ms(s.cooldown_ms)
            self.set_duration(s.audio_duration)
            self.set_debug_mode(s.debug_mode)
            self.set_enabled(s.enabled)
            self.set_process_name(s.process_name)
            self.set_template_path(s.template_image)
            self._debug("settings updated - enabled=%s threshold=%.2f cooldown=%dms method=%s",
                        self.state.enabled, self.threshold, self.state.cooldown_ms, s.match_method.value)

    def set_process_name(self, name: str) -> bool:
        """Re-resolve the target now when the name changes or is unresolved."""
        name = (name or "").strip()
        with self._lock:
            if name == self.process_name and getattr(self.frame_source, "target", None) is not None:
                return True
            self.process_name = name
            if not name:
                self.frame_source.close()
                self.process_running = False
                return False
            ok = self.frame_source.set_target(name)
            self._debug("target process set to %s (resolved=%s)", name, ok)
            return ok

    def set_template_path(self, path: str) -> bool:
        """Reload the template now when the path changes; a failure disables matching."""
        path = (path or "").strip()
        with self._lock:
            if path == self.template_path and self.template_loaded:
                return True
            self.template_path = path
            if not path:
                self.template_loaded = False
                return False
            self.template_loaded = bool(self.matcher.load_template_file(path))
            if self.template_loaded:
                self._debug("template image loaded: %s", path)
            else:
                logger.warning("orchestrator: failed to load template image: %s", path)
            return self.template_loaded

    def load_template(self, image) -> bool:
        """Load an in-memory template (bypasses the path setting)."""
        with self._lock:
            self.template_loaded = bool(self.matcher.load_template(image))
            return self.template_loaded

    def set_threshold(self, threshold: float) -> None:
        self.threshold = _clamp(float(threshold), 0.0, 1.0)

    def set_cooldown_ms(self, cooldown_ms: int) -> None:
        self.state.cooldown_ms = max(0, int(cooldown_ms))

    def set_duration(self, seconds) -> None:
        self.duration_cap = normalize_duration(seconds)

    def set_enabled(self, enabled: bool) -> None:
        self.state.enabled = bool(enabled)

    def set_debug_mode(self, debug: bool) -> None:
        self.debug_mode = bool(debug)

    # --------------------------- tick ---------------------------
    def is_cooldown_active(self, now: Optional[float] = None) -> bool:
        st = self.state
        if st.cooldown_ms <= 0 or st.last_trigger_time is None:
            return False
        now = self._clock() if now is None else now
        return (now - st.last_trigger_time) < st.cooldown_ms / 1000.0

    def tick(self, now: Optional[float] = None) -> Optional[TriggerEvent]:
        """Run one capture/match cycle; return the event when a trigger fired."""
        with self._lock:
            self._drain_playback_events()
            if not self.state.enabled:
                return None
            now = self._clock() if now is None else now

            running = self.frame_source.is_process_live()
            if not running:
                self.frame_source.refresh()
                running = self.frame_source.is_process_live()
            if running != self.process_running:
                logger.info("orchestrator: process %s %s", self.process_name or "<unset>",
                            "running" if running else "not running")
            self.process_running = running

            if not running or not self.template_loaded:
                return None
            if self.is_cooldown_active(now):
                return None

            frame = self.frame_source.capture()
            if frame is None:
                self._debug("failed to capture window")
                return None

            result = self.matcher.match(frame, self.threshold)
            self.last_result = result
            if not result.found:
                return None
            self._debug("match found! confidence=%.3f at (%.1f, %.1f)",
                        result.confidence, result.center[0], result.center[1])
            return self._fire(now, result)

    def _fire(self, now: float, result: MatchResult) -> TriggerEvent:
        self.state.last_trigger_time = now
        self.state.trigger_count += 1
        event = TriggerEvent(timestamp=now, confidence=result.confidence,
                             center=result.center, duration_cap=self.duration_cap)
        self.last_event = event
        try:
            ok = self.playback.trigger(self.duration_cap)
        except Exception:
            logger.exception("orchestrator: playback consumer raised")
            ok = False
        if ok:
            self._debug("audio playback triggered")
        else:
            logger.warning("orchestrator: failed to play audio")
        if self.debug_mode:
            self._save_debug_artifact()
        return event

    def _drain_playback_events(self) -> None:
        events = getattr(self.playback, "events", None)
        if events is None:
            return
        for ev in events.drain():
            self._debug("playback finished: %s after %.2fs (stopped_early=%s)",
                        ev.source, ev.played_seconds, ev.stopped_early)

    def _save_debug_artifact(self) -> None:
        img = self.matcher.get_debug_image()
        if img is None:
            return
        try:
            out_dir = Path(self.artifacts_dir) if self.artifacts_dir else get_artifacts_dir()
            out_dir.mkdir(parents=True, exist_ok=True)
            h, w = img.shape[:2]
            scale = ARTIFACT_MAX_DIM / max(1, max(h, w))
            if scale < 1.0:
                img = cv2.resize(img, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA)
            name = datetime.now().strftime("trigger_%Y%m%d_%H%M%S_%f.png")
            ok, buf = cv2.imencode(".png", img)
            if ok:
                buf.tofile(str(out_dir / name))
        except (OSError, cv2.error) as e:
            logger.warning("orchestrator: could not save debug artifact: %s", e)

    # --------------------------- observers ---------------------------
    def status(self) -> Dict[str, Any]:
        with self._lock:
            last = self.last_result
            return {
                "enabled": self.state.enabled,
                "process_name": self.process_name,
                "process_running": self.process_running,
                "template_loaded": self.template_loaded,
                "last_trigger_time": self.state.last_trigger_time,
                "trigger_count": self.state.trigger_count,
                "last_confidence": last.confidence if last is not None else None,
                "last_match_ms": self.matcher.get_last_processing_time(),
            }

    def _debug(self, msg: str, *args) -> None:
        logger.log(logging.INFO if self.debug_mode else logging.DEBUG, "orchestrator: " + msg, *args)
