"""Game Audio Trigger: play a sound when a template image shows up in a game window."""

__version__ = "0.1.0"
