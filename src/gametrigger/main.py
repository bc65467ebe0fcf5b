"""Main Application entry point.

Initializes configuration and logging, wires FrameSource, ImageMatcher and
the playback consumer into a TriggerOrchestrator, and drives it from a
TickLoop until interrupted.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

# Add the src directory to the Python path when run as a script
if __package__ in (None, ""):
    src_path = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    if src_path not in sys.path:
        sys.path.insert(0, src_path)

from gametrigger.controllers.frame_source import FrameSource
from gametrigger.controllers.image_matcher import ImageMatcher
from gametrigger.core.config import ConfigManager
from gametrigger.core.logging_setup import setup_logging, get_artifacts_dir
from gametrigger.core.orchestrator import TriggerOrchestrator, TriggerSettings
from gametrigger.core.playback import create_playback
from gametrigger.core.ticker import TickLoop
from gametrigger.io.capture import default_strategies


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="game-audio-trigger",
        description="Play a sound when a template image appears in a game window.",
    )
    p.add_argument("--config", help="path to config.ini (default: per-user config dir)")
    p.add_argument("--log-level", help="override DEFAULT.log_level")
    p.add_argument("--list-processes", action="store_true", help="print running process names and exit")
    p.add_argument("--once", action="store_true", help="run a single tick and exit")
    return p


def build_orchestrator(settings: TriggerSettings, artifacts_dir=None) -> TriggerOrchestrator:
    frame_source = FrameSource(
        strategies=default_strategies(settings.capture_screen_fallback),
        min_window_size=(settings.min_window_width, settings.min_window_height),
        client_area=settings.capture_client_area,
    )
    matcher = ImageMatcher(settings.match_method)
    playback = create_playback(settings.audio_file, settings.audio_volume, settings.audio_speed)
    orchestrator = TriggerOrchestrator(frame_source, matcher, playback, artifacts_dir=artifacts_dir)
    orchestrator.apply_settings(settings)
    return orchestrator


def main(argv: Optional[List[str]] = None) -> int:
    """Start the trigger loop; returns a process exit code."""
    args = build_parser().parse_args(argv)

    config_manager = ConfigManager(args.config)
    setup_logging(config_manager, args.log_level)
    logger = logging.getLogger(__name__)

    if args.list_processes:
        for name in FrameSource().get_running_processes():
            print(name)
        return 0

    settings = TriggerSettings.from_config(config_manager)
    if not settings.process_name:
        logger.warning("No process_name configured in %s", config_manager.config_path)
    if not settings.template_image:
        logger.warning("No template_image configured in %s", config_manager.config_path)

    orchestrator = build_orchestrator(settings, artifacts_dir=get_artifacts_dir(config_manager))
    ticker = TickLoop(orchestrator, interval=settings.tick_interval_ms / 1000.0)

    if args.once:
        ticker.run_once()
        logger.info("Status: %s", orchestrator.status())
        orchestrator.frame_source.close()
        return 0

    ticker.start()
    try:
        while ticker.is_alive():
            ticker.join(timeout=0.5)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        ticker.stop()
        ticker.join(timeout=2.0)
        stop = getattr(orchestrator.playback, "stop", None)
        if callable(stop):
            stop()
        orchestrator.frame_source.close()
        logger.info("Final status: %s", orchestrator.status())
    return 0


if __name__ == "__main__":
    sys.exit(main())
