"""Vision package: pure image ops and matching strategies.

Submodules:
- models: MatchMethod, PreprocessingConfig, MatchResult, Template
- preprocess: stateless image preprocessing utilities
- matcher: correlation, multi-scale and SIFT feature matching
"""
from .models import MatchMethod, MatchResult, PreprocessingConfig, Template
from .preprocess import edges, preprocess_frame, resize_tpl, to_bgr, to_gray
from .matcher import correlate, linear_scales, match_correlation, match_features, match_multi_scale

__all__ = [
    "MatchMethod",
    "MatchResult",
    "PreprocessingConfig",
    "Template",
    "edges",
    "preprocess_frame",
    "resize_tpl",
    "to_bgr",
    "to_gray",
    "correlate",
    "linear_scales",
    "match_correlation",
    "match_features",
    "match_multi_scale",
]
