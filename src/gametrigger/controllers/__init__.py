"""Controllers: stateful components that perform IO or own loaded assets.

- frame_source: FrameSource (target window resolution and capture)
- image_matcher: ImageMatcher (template ownership and strategy dispatch)
"""
from .frame_source import FrameSource, TargetWindow
from .image_matcher import ImageMatcher

__all__ = ["FrameSource", "TargetWindow", "ImageMatcher"]
