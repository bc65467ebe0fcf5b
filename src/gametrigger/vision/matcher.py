"""
Matching strategies as pure functions.

Each function takes numpy arrays (already preprocessed by
``vision.preprocess``) and returns a ``MatchResult``. The stateful
``controllers.image_matcher.ImageMatcher`` composes these; nothing here keeps
state between calls.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple
import logging

import cv2
import numpy as np

from ..config.vision import RATIO_TEST, MIN_GOOD_MATCHES, SCALE_STEPS
from .models import MatchResult, PreprocessingConfig, Template
from .preprocess import scaled_representation, to_gray

logger = logging.getLogger(__name__)


def correlate(screen: np.ndarray, tpl: np.ndarray) -> Tuple[float, Tuple[int, int]]:
    """Normalized cross-correlation at every offset; return global max and its top-left."""
    res = cv2.matchTemplate(screen, tpl, cv2.TM_CCOEFF_NORMED)
    _, max_val, _, max_loc = cv2.minMaxLoc(res)
    return float(max_val), (int(max_loc[0]), int(max_loc[1]))


def _located(score: float, loc: Tuple[int, int], wh: Tuple[int, int], threshold: float, scale: float = 1.0) -> MatchResult:
    result = MatchResult(found=score >= threshold, confidence=score)
    if result.found:
        w, h = wh
        result.center = (loc[0] + w * 0.5, loc[1] + h * 0.5)
        result.bounding_box = (loc[0], loc[1], int(w), int(h))
        result.scale = float(scale)
        result.rotation = 0.0
    return result


def match_correlation(screen: np.ndarray, tpl: np.ndarray, threshold: float) -> MatchResult:
    """Single-scale template correlation."""
    score, loc = correlate(screen, tpl)
    return _located(score, loc, (tpl.shape[1], tpl.shape[0]), threshold)


def linear_scales(min_scale: float, max_scale: float, steps: int = SCALE_STEPS) -> List[float]:
    """Evenly spaced scale factors including both endpoints."""
    if steps <= 1:
        return [float(min_scale)]
    step = (max_scale - min_scale) / (steps - 1)
    return [float(min_scale + step * i) for i in range(steps - 1)] + [float(max_scale)]


def match_multi_scale(
    screen: np.ndarray,
    template: Template,
    cfg: PreprocessingConfig,
    scales: Sequence[float],
    threshold: float,
) -> MatchResult:
    """Correlate the template at each scale and keep the strictly best score.

    Scales whose resized template no longer fits inside the frame are skipped.
    Returns ``found=False, confidence=0`` when no scale fits.
    """
    sh, sw = screen.shape[:2]
    best_score: Optional[float] = None
    best_loc = (0, 0)
    best_wh = (0, 0)
    best_scale = 1.0
    for s in scales:
        tpl = scaled_representation(template.image, template.gray, cfg, s)
        th, tw = tpl.shape[:2]
        if tw > sw or th > sh:
            logger.debug("multiscale: skip scale %.3f (%dx%d > %dx%d)", s, tw, th, sw, sh)
            continue
        score, loc = correlate(screen, tpl)
        logger.debug("multiscale: scale=%.3f score=%.4f", s, score)
        if best_score is None or score > best_score:
            best_score, best_loc, best_wh, best_scale = score, loc, (tw, th), s
    if best_score is None:
        return MatchResult()
    return _located(best_score, best_loc, best_wh, threshold, scale=best_scale)


# --------------------------- feature matching ---------------------------
def create_detector():
    """Create the SIFT detector, or None when this OpenCV build lacks it."""
    try:
        return cv2.SIFT_create()
    except (AttributeError, cv2.error) as e:
        logger.warning("matcher: SIFT unavailable: %s", e)
        return None


def extract_features(detector, gray: np.ndarray):
    """Return (keypoints tuple, descriptors or None) for a grayscale image."""
    keypoints, descriptors = detector.detectAndCompute(gray, None)
    return tuple(keypoints or ()), descriptors


def ratio_test(knn_matches, ratio: float = RATIO_TEST) -> list:
    """Keep the nearest neighbour only when clearly closer than the second."""
    good = []
    for pair in knn_matches:
        if len(pair) == 2 and pair[0].distance < ratio * pair[1].distance:
            good.append(pair[0])
    return good


def match_features(
    detector,
    bf_matcher,
    screen: np.ndarray,
    template: Template,
    threshold: float,
) -> MatchResult:
    """SIFT descriptors + kNN(2) + ratio test.

    confidence = good matches / template keypoints. The center is the mean of
    the matched frame keypoints and the box keeps the template's own size;
    no affine or scale recovery is attempted.
    """
    if detector is None or not template.has_descriptors:
        return MatchResult()
    keypoints, descriptors = extract_features(detector, to_gray(screen))
    if not keypoints or descriptors is None or len(descriptors) == 0:
        return MatchResult()

    knn = bf_matcher.knnMatch(template.descriptors, descriptors, k=2)
    good = ratio_test(knn)
    logger.debug("features: %d good of %d template keypoints", len(good), len(template.keypoints))
    if len(good) < MIN_GOOD_MATCHES:
        return MatchResult()

    confidence = len(good) / float(len(template.keypoints))
    result = MatchResult(found=confidence >= threshold, confidence=confidence)
    if result.found:
        pts = np.array([keypoints[m.trainIdx].pt for m in good], dtype=np.float64)
        cx, cy = (float(v) for v in pts.mean(axis=0))
        w, h = template.width, template.height
        result.center = (cx, cy)
        result.bounding_box = (int(cx - w / 2), int(cy - h / 2), w, h)
        result.scale = 1.0
        result.rotation = 0.0
    return result
