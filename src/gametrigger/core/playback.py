"""
Playback consumers driven by trigger events.

The orchestrator only needs ``trigger(duration_cap) -> bool``; a cap of
``None`` plays the whole sound. Consumers report finished playback through a
``PlaybackEvents`` queue that the tick thread drains, instead of calling back
into the orchestrator from a playback thread.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

import numpy as np
import simpleaudio as sa

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerEvent:
    timestamp: float
    confidence: float
    center: Tuple[float, float]
    duration_cap: Optional[float] = None  # seconds; None = full


@dataclass(frozen=True)
class PlaybackFinished:
    source: str
    played_seconds: float
    stopped_early: bool


class PlaybackEvents:
    """Single-consumer channel of ``PlaybackFinished`` notifications."""

    def __init__(self) -> None:
        self._q: "queue.SimpleQueue[PlaybackFinished]" = queue.SimpleQueue()

    def put(self, event: PlaybackFinished) -> None:
        self._q.put(event)

    def drain(self) -> List[PlaybackFinished]:
        out: List[PlaybackFinished] = []
        while True:
            try:
                out.append(self._q.get_nowait())
            except queue.Empty:
                return out


class PlaybackConsumer(Protocol):
    def trigger(self, duration_cap: Optional[float] = None) -> bool: ...


def normalize_duration(seconds) -> Optional[float]:
    """Config ``audio_duration`` -> cap in seconds, or None for the whole file."""
    try:
        v = float(seconds)
    except (TypeError, ValueError):
        return None
    if v <= 0:
        return None
    return min(v, 300.0)


class LogPlayback:
    """Consumer that records and logs triggers; used when no audio file is set."""

    def __init__(self, events: Optional[PlaybackEvents] = None) -> None:
        self.events = events or PlaybackEvents()
        self.calls: List[Optional[float]] = []

    def trigger(self, duration_cap: Optional[float] = None) -> bool:
        self.calls.append(duration_cap)
        logger.info("playback: trigger (duration=%s)", "full" if duration_cap is None else f"{duration_cap:.1f}s")
        self.events.put(PlaybackFinished(source="log", played_seconds=0.0, stopped_early=False))
        return True


class WavePlayback:
    """WAV playback through ``simpleaudio``.

    The file is decoded once. Each trigger plays a buffer scaled by ``volume``
    and cut to the duration cap, so a cap needs no timer. A new trigger stops
    the sound still playing from the previous one. ``speed`` is stored and
    logged only: simpleaudio accepts a fixed set of sample rates.
    """

    def __init__(self, audio_file: str, volume: float = 1.0, speed: float = 1.0,
                 events: Optional[PlaybackEvents] = None) -> None:
        self.audio_file = str(audio_file)
        self.volume = min(1.0, max(0.0, float(volume)))
        self.speed = min(3.0, max(0.1, float(speed)))
        self.events = events or PlaybackEvents()
        self._lock = threading.Lock()
        self._play_obj = None
        self._stopped: Optional[threading.Event] = None
        self.wave = self._load(self.audio_file)

    @staticmethod
    def _load(path: str):
        if not Path(path).is_file():
            logger.warning("playback: audio file not found: %s", path)
            return None
        try:
            return sa.WaveObject.from_wave_file(path)
        except Exception as e:
            logger.warning("playback: cannot read %s as WAV: %s", path, e)
            return None

    @property
    def frame_bytes(self) -> int:
        return self.wave.num_channels * self.wave.bytes_per_sample

    @property
    def length(self) -> Optional[float]:
        """Track length in seconds, or None when the file did not load."""
        if self.wave is None:
            return None
        return len(self.wave.audio_data) / float(self.frame_bytes * self.wave.sample_rate)

    def is_available(self) -> bool:
        return self.wave is not None

    def _buffer(self, duration_cap: Optional[float]) -> bytes:
        data = bytes(self.wave.audio_data)
        if duration_cap is not None:
            frames = int(duration_cap * self.wave.sample_rate)
            data = data[:frames * self.frame_bytes]
        if self.volume < 1.0:
            if self.wave.bytes_per_sample == 2:
                samples = np.frombuffer(data, dtype=np.int16)
                data = (samples.astype(np.float32) * self.volume).astype(np.int16).tobytes()
            else:
                logger.debug("playback: volume only applies to 16-bit audio, playing at full volume")
        return data

    def trigger(self, duration_cap: Optional[float] = None) -> bool:
        if not self.is_available():
            logger.warning("playback: audio file unavailable: %s", self.audio_file)
            return False
        self.stop()
        data = self._buffer(duration_cap)
        early = duration_cap is not None and duration_cap < (self.length or 0.0)
        try:
            play_obj = sa.play_buffer(data, self.wave.num_channels, self.wave.bytes_per_sample,
                                      self.wave.sample_rate)
        except Exception as e:
            logger.warning("playback: could not start %s: %s", self.audio_file, e)
            return False

        stopped = threading.Event()
        with self._lock:
            self._play_obj, self._stopped = play_obj, stopped
        threading.Thread(target=self._wait, args=(play_obj, stopped, early),
                         daemon=True, name="PlaybackWait").start()
        return True

    def _wait(self, play_obj, stopped: threading.Event, capped: bool) -> None:
        started = time.monotonic()
        play_obj.wait_done()
        with self._lock:
            if self._play_obj is play_obj:
                self._play_obj, self._stopped = None, None
        self.events.put(PlaybackFinished(
            source=self.audio_file,
            played_seconds=time.monotonic() - started,
            stopped_early=capped or stopped.is_set(),
        ))

    def stop(self) -> None:
        """Stop the sound started by the last trigger, if it is still playing."""
        with self._lock:
            play_obj, stopped = self._play_obj, self._stopped
            self._play_obj, self._stopped = None, None
        if play_obj is not None and play_obj.is_playing():
            stopped.set()
            play_obj.stop()


def create_playback(audio_file: str, volume: float = 1.0, speed: float = 1.0,
                    events: Optional[PlaybackEvents] = None):
    """Pick the WAV consumer when it can play ``audio_file``, else the logging one."""
    events = events or PlaybackEvents()
    if audio_file:
        player = WavePlayback(audio_file, volume, speed, events)
        if player.is_available():
            logger.info("playback: using %s (%.2fs, volume=%.2f, speed=%.2f)",
                        audio_file, player.length or 0.0, player.volume, player.speed)
            return player
        logger.warning("playback: falling back to log-only playback for %s", audio_file)
    return LogPlayback(events)
