"""
Vision configuration knobs centralization.

All matching thresholds, preprocessing constants and artifact sizes live here.
Controllers and vision helpers import from this module instead of hardcoding
values.
"""
from __future__ import annotations

import os

# Correlation / validation
MIN_IMAGE_SIDE: int = 10  # shorter side of template and frame must reach this
DEFAULT_MATCH_THRESHOLD: float = 0.8

# Canny thresholds for edge maps (template and frame use the same pair)
CANNY_LOW: int = 50
CANNY_HIGH: int = 150

# Feature matching
RATIO_TEST: float = 0.7
MIN_GOOD_MATCHES: int = 10

# Multi-scale search
SCALE_STEPS: int = 5
SCALE_MIN_DEFAULT: float = 0.8
SCALE_MAX_DEFAULT: float = 1.2
SCALE_LIMITS = (0.1, 5.0)

# Rotation tolerance is accepted and clamped but no strategy estimates rotation
ROTATION_TOLERANCE_DEFAULT: float = 5.0
ROTATION_LIMITS = (0.0, 180.0)

# Environment flags
PERF_ENABLED: bool = os.environ.get("GT_VISION_PERF", "0") == "1"

# Artifact sizes
ARTIFACT_MAX_DIM: int = 960

__all__ = [
    "MIN_IMAGE_SIDE",
    "DEFAULT_MATCH_THRESHOLD",
    "CANNY_LOW",
    "CANNY_HIGH",
    "RATIO_TEST",
    "MIN_GOOD_MATCHES",
    "SCALE_STEPS",
    "SCALE_MIN_DEFAULT",
    "SCALE_MAX_DEFAULT",
    "SCALE_LIMITS",
    "ROTATION_TOLERANCE_DEFAULT",
    "ROTATION_LIMITS",
    "PERF_ENABLED",
    "ARTIFACT_MAX_DIM",
]
