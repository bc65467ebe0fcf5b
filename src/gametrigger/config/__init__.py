"""Config subpackage.

- vision: central knobs for matching thresholds, scale ranges, and toggles
"""
# Import vision configuration explicitly to avoid F403
from .vision import (
    MIN_IMAGE_SIDE,
    DEFAULT_MATCH_THRESHOLD,
    CANNY_LOW,
    CANNY_HIGH,
    RATIO_TEST,
    MIN_GOOD_MATCHES,
    SCALE_STEPS,
    SCALE_MIN_DEFAULT,
    SCALE_MAX_DEFAULT,
    SCALE_LIMITS,
    ROTATION_TOLERANCE_DEFAULT,
    ROTATION_LIMITS,
    PERF_ENABLED,
    ARTIFACT_MAX_DIM,
)

# Re-export all vision constants for convenience
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
