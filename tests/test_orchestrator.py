"""TriggerOrchestrator tick behaviour: liveness, cooldown and playback hand-off."""

import numpy as np
import pytest

from conftest import embed, make_texture
from gametrigger.controllers.frame_source import FrameSource
from gametrigger.controllers.image_matcher import ImageMatcher
from gametrigger.core.orchestrator import TriggerOrchestrator, TriggerSettings
from gametrigger.core.playback import LogPlayback
from gametrigger.io.capture import default_strategies
from gametrigger.vision.models import MatchResult


class StubSource:
    def __init__(self, live=True):
        self.live = live
        self.target = object()
        self.captures = 0
        self.refreshes = 0

    def is_process_live(self):
        return self.live

    def refresh(self):
        self.refreshes += 1
        return self.live

    def capture(self):
        self.captures += 1
        return np.zeros((100, 100, 3), dtype=np.uint8)

    def set_target(self, name):
        return self.live

    def close(self):
        self.target = None


class StubMatcher:
    def __init__(self, found=True):
        self.found = found
        self.calls = 0

    def match(self, frame, threshold):
        self.calls += 1
        if not self.found:
            return MatchResult(confidence=0.2)
        return MatchResult(found=True, confidence=0.95, center=(50.0, 40.0), bounding_box=(40, 30, 20, 20))

    def load_template(self, image):
        return image is not None

    def load_template_file(self, path):
        return False

    def get_debug_image(self):
        return np.zeros((20, 20, 3), dtype=np.uint8)

    def get_last_processing_time(self):
        return 1.0


class RaisingPlayback:
    def trigger(self, duration_cap=None):
        raise RuntimeError("audio device gone")


def _orch(source=None, matcher=None, playback=None, **kw):
    kw.setdefault("clock", lambda: 0.0)
    orch = TriggerOrchestrator(source or StubSource(), matcher or StubMatcher(), playback or LogPlayback(), **kw)
    orch.load_template(np.ones((20, 20, 3), dtype=np.uint8))
    return orch


def test_cooldown_gates_second_trigger():
    orch = _orch()
    orch.set_cooldown_ms(1000)
    assert orch.tick(now=10.0) is not None
    assert orch.tick(now=10.5) is None
    assert orch.state.trigger_count == 1
    event = orch.tick(now=11.001)
    assert event is not None
    assert event.timestamp == 11.001
    assert orch.state.trigger_count == 2
    assert orch.playback.calls == [None, None]


def test_cooldown_skips_capture():
    source = StubSource()
    orch = _orch(source)
    orch.tick(now=1.0)
    orch.tick(now=1.2)
    assert source.captures == 1
    assert orch.is_cooldown_active(1.2)
    assert not orch.is_cooldown_active(2.0)


def test_zero_cooldown_fires_every_tick():
    orch = _orch()
    orch.set_cooldown_ms(0)
    for t in (1.0, 1.01, 1.02):
        assert orch.tick(now=t) is not None
    assert orch.state.trigger_count == 3


def test_startup_starts_a_cooldown():
    clock = [100.0]
    source = StubSource()
    orch = _orch(source, clock=lambda: clock[0])
    assert orch.state.last_trigger_time == 100.0
    clock[0] = 100.5
    assert orch.is_cooldown_active()
    assert orch.tick() is None
    assert source.captures == 0
    clock[0] = 101.0
    assert orch.tick() is not None


def test_process_not_running_skips_capture_and_match():
    source = StubSource(live=False)
    matcher = StubMatcher()
    orch = _orch(source, matcher)
    assert orch.tick(now=1.0) is None
    assert not orch.process_running
    assert source.refreshes == 1
    assert source.captures == 0
    assert matcher.calls == 0


def test_missing_template_skips_capture():
    source = StubSource()
    orch = TriggerOrchestrator(source, StubMatcher(), clock=lambda: 0.0)
    assert orch.tick(now=1.0) is None
    assert orch.process_running
    assert source.captures == 0


def test_disabled_is_noop():
    source = StubSource()
    orch = _orch(source)
    orch.set_enabled(False)
    assert orch.tick(now=1.0) is None
    assert source.captures == 0
    assert orch.state.last_trigger_time == 0.0


def test_no_match_does_not_start_cooldown():
    orch = _orch(matcher=StubMatcher(found=False))
    assert orch.tick(now=1.0) is None
    assert orch.state.last_trigger_time == 0.0
    assert orch.last_result.confidence == 0.2


def test_duration_cap_is_forwarded():
    orch = _orch()
    orch.set_duration(2.5)
    event = orch.tick(now=1.0)
    assert event.duration_cap == 2.5
    orch.set_duration(-1)
    orch.tick(now=5.0)
    assert orch.playback.calls == [2.5, None]


def test_playback_exception_still_counts_trigger():
    orch = _orch(playback=RaisingPlayback())
    assert orch.tick(now=1.0) is not None
    assert orch.state.trigger_count == 1
    assert orch.tick(now=1.1) is None


def test_template_path_failure_clears_loaded(tmp_path):
    orch = _orch(matcher=ImageMatcher())
    assert orch.template_loaded
    assert not orch.set_template_path(str(tmp_path / "missing.png"))
    assert not orch.template_loaded
    assert orch.tick(now=1.0) is None


def test_debug_mode_writes_artifact(tmp_path):
    orch = _orch(artifacts_dir=tmp_path)
    orch.set_debug_mode(True)
    orch.tick(now=1.0)
    assert len(list(tmp_path.glob("trigger_*.png"))) == 1


def test_status_snapshot():
    orch = _orch()
    orch.set_process_name("game.exe")
    orch.tick(now=3.0)
    st = orch.status()
    assert st["process_name"] == "game.exe"
    assert st["trigger_count"] == 1
    assert st["last_trigger_time"] == 3.0
    assert st["last_confidence"] == pytest.approx(0.95)


def test_end_to_end_with_fake_window(fake_api, tmp_path):
    tpl = make_texture(32, 48, seed=13)
    fake_api.screen = embed(np.full((600, 800, 3), 25, dtype=np.uint8), tpl, 500, 300)
    source = FrameSource(api=fake_api, strategies=default_strategies())
    playback = LogPlayback()
    orch = TriggerOrchestrator(source, ImageMatcher(), playback, clock=lambda: 0.0)

    settings = TriggerSettings(process_name="game.exe", cooldown_ms=500, match_threshold=0.9)
    orch.apply_settings(settings)
    orch.load_template(tpl)

    # not running yet: no capture attempted
    assert orch.tick(now=0.0) is None
    assert not orch.process_running
    assert fake_api.print_calls == 0

    fake_api.start("game.exe", size=(800, 600))
    event = orch.tick(now=1.0)
    assert orch.process_running
    assert event is not None
    assert abs(event.center[0] - 524) <= 1
    assert abs(event.center[1] - 316) <= 1
    assert playback.calls == [None]

    assert orch.tick(now=1.2) is None
    assert orch.tick(now=1.6) is not None

    fake_api.kill("game.exe")
    assert orch.tick(now=3.0) is None
    assert not orch.process_running
    assert orch.state.trigger_count == 2


def test_clearing_process_name_stops_triggering(fake_api):
    tpl = make_texture(32, 48, seed=14)
    fake_api.screen = embed(np.full((600, 800, 3), 25, dtype=np.uint8), tpl, 100, 100)
    fake_api.start("game.exe")
    source = FrameSource(api=fake_api, strategies=default_strategies())
    orch = TriggerOrchestrator(source, ImageMatcher(), LogPlayback(), clock=lambda: 0.0)
    orch.apply_settings(TriggerSettings(process_name="game.exe", cooldown_ms=0))
    orch.load_template(tpl)
    assert orch.tick(now=1.0) is not None

    orch.set_process_name("")
    assert source.process_name == ""
    assert orch.tick(now=2.0) is None
    assert not orch.process_running
    assert orch.state.trigger_count == 1
    assert fake_api.live_surfaces == []
