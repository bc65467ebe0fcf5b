"""Minimal smoke tests to ensure modules import and core managers work."""

import logging

import pytest

from gametrigger.core.config import ConfigManager
from gametrigger.core.logging_setup import prune_old_sessions, setup_logging
from gametrigger.core.orchestrator import TriggerSettings
from gametrigger.main import build_parser, main
from gametrigger.vision.models import MatchMethod, PreprocessingConfig


@pytest.fixture
def root_logging():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_config_defaults_and_save(tmp_path):
    # Use a temp config path
    cfg_path = tmp_path / "config.ini"
    cfg = ConfigManager(str(cfg_path))
    assert cfg_path.exists()
    # Defaults present
    assert cfg.get("log_level") == "INFO"
    assert cfg.get("match_method") == "template"
    assert cfg.get_float("match_threshold") == 0.8
    assert cfg.get_int("cooldown_ms") == 1000
    assert cfg.get_bool("enabled") is True
    # Modify and save
    cfg.set("process_name", "Game.exe")
    cfg.save()
    # Reload and verify persistence
    cfg2 = ConfigManager(str(cfg_path))
    assert cfg2.get("process_name") == "Game.exe"


def test_config_adds_missing_keys(tmp_path):
    cfg_path = tmp_path / "config.ini"
    cfg_path.write_text("[DEFAULT]\nprocess_name = old.exe\n", encoding="utf-8")
    cfg = ConfigManager(str(cfg_path))
    assert cfg.get("process_name") == "old.exe"
    assert "cooldown_ms" in cfg_path.read_text(encoding="utf-8")


def test_env_overrides_config(tmp_path, monkeypatch):
    cfg = ConfigManager(str(tmp_path / "config.ini"))
    monkeypatch.setenv("GT_MATCH_THRESHOLD", "0.65")
    assert cfg.get_float("match_threshold") == 0.65


def test_typed_getters_fall_back_on_garbage(tmp_path):
    cfg = ConfigManager(str(tmp_path / "config.ini"))
    cfg.set("cooldown_ms", "soon")
    cfg.set("audio_volume", "loud")
    assert cfg.get_int("cooldown_ms", 1000) == 1000
    assert cfg.get_float("audio_volume", 1.0) == 1.0


def test_settings_are_clamped(tmp_path):
    cfg = ConfigManager(str(tmp_path / "config.ini"))
    for key, value in {
        "match_threshold": "1.5",
        "cooldown_ms": "99999",
        "audio_volume": "-2",
        "audio_speed": "10",
        "audio_duration": "1000",
        "tick_interval_ms": "1",
        "match_method": "sideways",
    }.items():
        cfg.set(key, value)
    s = TriggerSettings.from_config(cfg)
    assert s.match_threshold == 1.0
    assert s.cooldown_ms == 10000
    assert s.audio_volume == 0.0
    assert s.audio_speed == 3.0
    assert s.audio_duration == 300.0
    assert s.tick_interval_ms == 10
    assert s.match_method is MatchMethod.TEMPLATE_CORRELATION


@pytest.mark.parametrize("value", ["template", "TemplateMatching", "feature", "FEATURE_MATCHING", "multi-scale"])
def test_match_method_parse(value):
    assert isinstance(MatchMethod.parse(value), MatchMethod)


def test_preprocessing_kernel_forced_odd():
    assert PreprocessingConfig.create(blur_kernel=4).blur_kernel == 5
    assert PreprocessingConfig.create(blur_kernel=7).blur_kernel == 7
    assert PreprocessingConfig.create(blur_kernel=0).blur_kernel == 0


def test_setup_logging_creates_session_dir(tmp_path, monkeypatch, root_logging):
    # setup_logging exports the session dir; setenv restores it afterwards
    monkeypatch.setenv("GT_LOG_SESSION_DIR", "")
    cfg = ConfigManager(str(tmp_path / "config.ini"))
    session = setup_logging(cfg, "DEBUG")
    assert session.is_dir()
    assert session.parent == tmp_path / "logs"
    assert (session / "session_info.txt").exists()
    assert logging.getLogger().level == logging.DEBUG


def test_prune_keeps_newest_sessions(tmp_path):
    for stamp in ("20240101_000000", "20240102_000000", "20240103_000000", "20240104_000000"):
        (tmp_path / f"session-{stamp}").mkdir()
    prune_old_sessions(tmp_path, keep=2)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["session-20240103_000000", "session-20240104_000000"]


def test_cli_parser_flags():
    args = build_parser().parse_args(["--once", "--log-level", "DEBUG"])
    assert args.once and args.log_level == "DEBUG"
    assert not args.list_processes


def test_main_once_without_target(tmp_path, monkeypatch, root_logging):
    monkeypatch.setenv("GT_LOG_SESSION_DIR", str(tmp_path / "session"))
    assert main(["--config", str(tmp_path / "config.ini"), "--once"]) == 0
