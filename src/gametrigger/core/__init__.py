"""Core subpackage.

- config: INI-backed ConfigManager
- logging_setup: session log directories and artifacts
- orchestrator: tick state machine tying capture, matching and playback
- playback: trigger consumers and the completion-event channel
- ticker: periodic tick thread
"""
from .config import ConfigManager
from .orchestrator import TriggerOrchestrator, TriggerSettings, TriggerState
from .playback import LogPlayback, PlaybackEvents, TriggerEvent
from .ticker import TickLoop

__all__ = [
    "ConfigManager",
    "TriggerOrchestrator",
    "TriggerSettings",
    "TriggerState",
    "LogPlayback",
    "PlaybackEvents",
    "TriggerEvent",
    "TickLoop",
]
