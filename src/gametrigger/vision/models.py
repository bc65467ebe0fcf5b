"""Value types shared by the matcher and its callers."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np


class MatchMethod(str, Enum):
    """Matching strategy selector.

    Values double as the config.ini spelling (``match_method=template``).
    """

    TEMPLATE_CORRELATION = "template"
    FEATURE_MATCHING = "feature"
    MULTI_SCALE = "multiscale"

    @classmethod
    def parse(cls, value) -> "MatchMethod":
        if isinstance(value, cls):
            return value
        v = str(value or "").strip().lower().replace("_", "").replace("-", "")
        aliases = {
            "template": cls.TEMPLATE_CORRELATION,
            "templatecorrelation": cls.TEMPLATE_CORRELATION,
            "templatematching": cls.TEMPLATE_CORRELATION,
            "feature": cls.FEATURE_MATCHING,
            "featurematching": cls.FEATURE_MATCHING,
            "multiscale": cls.MULTI_SCALE,
        }
        if v not in aliases:
            raise ValueError(f"Unknown match method: {value!r}")
        return aliases[v]


@dataclass(frozen=True)
class PreprocessingConfig:
    """Frame/template preparation switches.

    blur_kernel 0 disables blurring; positive sizes are forced odd.
    """

    grayscale: bool = True
    edge_detection: bool = False
    blur_kernel: int = 0
    blur_sigma: float = 0.0

    @classmethod
    def create(cls, grayscale: bool = True, edge_detection: bool = False,
               blur_kernel: int = 0, blur_sigma: float = 0.0) -> "PreprocessingConfig":
        kernel = int(blur_kernel)
        kernel = (kernel | 1) if kernel > 0 else 0
        return cls(bool(grayscale), bool(edge_detection), kernel, max(0.0, float(blur_sigma)))


@dataclass
class MatchResult:
    """Outcome of a single ``ImageMatcher.match`` call.

    Geometry (center, bounding_box, scale) is populated only when ``found``.
    ``rotation`` is always 0.0: no strategy estimates rotation.
    Correlation confidences are not clamped and may fall below 0.
    """

    found: bool = False
    confidence: float = 0.0
    center: Tuple[float, float] = (0.0, 0.0)
    bounding_box: Tuple[int, int, int, int] = (0, 0, 0, 0)  # x, y, w, h
    scale: float = 1.0
    rotation: float = 0.0


@dataclass(frozen=True)
class Template:
    """Loaded reference image and its derived representations.

    Instances are never mutated; the matcher swaps in a new one on reload or
    when derivatives change, so a match sees either the old or the new bundle.
    """

    image: np.ndarray  # 3-channel BGR
    gray: np.ndarray
    edges: Optional[np.ndarray] = None
    keypoints: tuple = field(default_factory=tuple)
    descriptors: Optional[np.ndarray] = None

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def has_descriptors(self) -> bool:
        return bool(self.keypoints) and self.descriptors is not None and len(self.descriptors) > 0
