"""Template matching controller.

Responsibility:
- Own the loaded template and its derived representations (grayscale, edge
  map, SIFT descriptors) and keep them consistent with the active settings.
- Dispatch a captured frame to one of three strategies in the
  ``vision.matcher`` module and return a ``MatchResult``.
- Keep a debug-annotated copy of the last frame and the last call's timing.

Failure policy: empty inputs, undersized images and OpenCV errors are logged
and reported as ``found=False``; ``match`` never raises for bad image data.
"""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import List, Optional
import logging
import time

import cv2
import numpy as np

from ..config.vision import (
    MIN_IMAGE_SIDE,
    DEFAULT_MATCH_THRESHOLD,
    SCALE_MIN_DEFAULT,
    SCALE_MAX_DEFAULT,
    SCALE_LIMITS,
    SCALE_STEPS,
    ROTATION_TOLERANCE_DEFAULT,
    ROTATION_LIMITS,
    PERF_ENABLED,
)
from ..vision.models import MatchMethod, MatchResult, PreprocessingConfig, Template
from ..vision.preprocess import edges, preprocess_frame, template_representation, to_bgr, to_gray
from ..vision import matcher as strategies

logger = logging.getLogger(__name__)


class ImageMatcher:
    """Find a loaded template inside captured frames.

    ``rotation_tolerance`` and ``max_matches`` are accepted for forward
    compatibility; current strategies report ``rotation=0`` and at most one
    match.
    """

    def __init__(self, method: MatchMethod = MatchMethod.TEMPLATE_CORRELATION) -> None:
        self._method = MatchMethod.parse(method)
        self._pre = PreprocessingConfig()
        self._template: Optional[Template] = None
        self.min_scale: float = SCALE_MIN_DEFAULT
        self.max_scale: float = SCALE_MAX_DEFAULT
        self.rotation_tolerance: float = ROTATION_TOLERANCE_DEFAULT
        self.max_matches: int = 1
        self._detector = strategies.create_detector()
        self._bf = cv2.BFMatcher(cv2.NORM_L2)
        self._debug_image: Optional[np.ndarray] = None
        self._all_matches: List[MatchResult] = []
        self._last_ms: float = 0.0

    # --------------------------- template ---------------------------
    def load_template(self, image: Optional[np.ndarray]) -> bool:
        """Load a template from an in-memory image (gray, BGR or BGRA).

        The new template is fully derived before it replaces the old one.
        """
        if image is None or getattr(image, "size", 0) == 0:
            logger.warning("matcher: empty template image provided")
            return False
        try:
            bgr = np.ascontiguousarray(to_bgr(image)).copy()
            gray = to_gray(bgr)
            edge_map = edges(gray) if self._pre.edge_detection else None
            tpl = Template(image=bgr, gray=gray, edges=edge_map)
            if self._method is MatchMethod.FEATURE_MATCHING:
                tpl = self._with_features(tpl)
        except cv2.error as e:
            logger.error("matcher: OpenCV error while preparing template: %s", e)
            return False
        self._template = tpl
        logger.info(
            "matcher: template loaded %dx%d (keypoints=%d)",
            tpl.width, tpl.height, len(tpl.keypoints),
        )
        return True

    def load_template_file(self, image_path: str) -> bool:
        """Read a color image from disk and load it as the template."""
        if not image_path:
            logger.warning("matcher: empty template path provided")
            return False
        path = Path(image_path)
        if not path.is_file():
            logger.error("matcher: template image not found: %s", image_path)
            return False
        try:
            # imdecode handles non-ASCII Windows paths where imread does not
            data = np.fromfile(str(path), dtype=np.uint8)
            img = cv2.imdecode(data, cv2.IMREAD_COLOR)
        except (OSError, cv2.error) as e:
            logger.error("matcher: failed to read template %s: %s", image_path, e)
            return False
        if img is None:
            logger.error("matcher: failed to decode template image: %s", image_path)
            return False
        return self.load_template(img)

    def is_template_loaded(self) -> bool:
        return self._template is not None

    def get_template_size(self) -> int:
        """Number of samples (rows * cols * channels) in the raw template."""
        if self._template is None:
            return 0
        return int(self._template.image.size)

    @property
    def template(self) -> Optional[Template]:
        return self._template

    def _with_features(self, tpl: Template) -> Template:
        if self._detector is None:
            return replace(tpl, keypoints=(), descriptors=None)
        keypoints, descriptors = strategies.extract_features(self._detector, tpl.gray)
        logger.info("matcher: extracted %d keypoints from template", len(keypoints))
        return replace(tpl, keypoints=keypoints, descriptors=descriptors)

    # --------------------------- settings ---------------------------
    @property
    def method(self) -> MatchMethod:
        return self._method

    def set_method(self, method) -> None:
        method = MatchMethod.parse(method)
        if method is self._method:
            return
        self._method = method
        logger.debug("matcher: method set to %s", method.value)
        if method is MatchMethod.FEATURE_MATCHING and self._template is not None:
            try:
                self._template = self._with_features(self._template)
            except cv2.error as e:
                logger.error("matcher: descriptor extraction failed: %s", e)

    @property
    def preprocessing(self) -> PreprocessingConfig:
        return self._pre

    def set_preprocessing(self, grayscale: bool = True, edge_detection: bool = False,
                          blur_kernel: int = 0, blur_sigma: float = 0.0) -> None:
        """Update preprocessing; an edge map is derived now if edges just turned on."""
        new = PreprocessingConfig.create(grayscale, edge_detection, blur_kernel, blur_sigma)
        turned_on = new.edge_detection and not self._pre.edge_detection
        self._pre = new
        tpl = self._template
        if turned_on and tpl is not None:
            self._template = replace(tpl, edges=edges(tpl.gray))

    def set_scale_range(self, min_scale: float, max_scale: float) -> None:
        lo, hi = SCALE_LIMITS
        a, b = float(min_scale), float(max_scale)
        if a > b:
            a, b = b, a
        self.min_scale = min(hi, max(lo, a))
        self.max_scale = min(hi, max(lo, b))

    def set_rotation_tolerance(self, degrees: float) -> None:
        lo, hi = ROTATION_LIMITS
        self.rotation_tolerance = min(hi, max(lo, float(degrees)))

    def set_max_matches(self, max_matches: int) -> None:
        self.max_matches = max(1, int(max_matches))

    # --------------------------- matching ---------------------------
    def _validate(self, tpl: Template, frame: np.ndarray) -> bool:
        fh, fw = frame.shape[:2]
        if tpl.width > fw or tpl.height > fh:
            logger.warning("matcher: template %dx%d larger than frame %dx%d", tpl.width, tpl.height, fw, fh)
            return False
        if min(tpl.width, tpl.height) < MIN_IMAGE_SIDE or min(fw, fh) < MIN_IMAGE_SIDE:
            logger.warning("matcher: image too small for reliable matching")
            return False
        return True

    def match(self, frame: Optional[np.ndarray], threshold: float = DEFAULT_MATCH_THRESHOLD) -> MatchResult:
        """Search ``frame`` for the template using the configured method."""
        t0 = time.perf_counter()
        tpl = self._template
        result = MatchResult()
        self._all_matches = []
        try:
            if tpl is None or frame is None or getattr(frame, "size", 0) == 0:
                return result
            if frame.ndim < 2 or not self._validate(tpl, frame):
                return result
            pre = self._pre
            try:
                result = self._dispatch(tpl, frame, pre, float(threshold))
            except cv2.error as e:
                logger.error("matcher: OpenCV error during %s matching: %s", self._method.value, e)
                result = MatchResult()
            self._update_debug_image(frame, result)
            return result
        finally:
            self._last_ms = (time.perf_counter() - t0) * 1000.0
            if PERF_ENABLED or logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "matcher: %s found=%s conf=%.4f in %.1fms",
                    self._method.value, result.found, result.confidence, self._last_ms,
                )

    def _dispatch(self, tpl: Template, frame: np.ndarray, pre: PreprocessingConfig, threshold: float) -> MatchResult:
        screen = preprocess_frame(frame, pre)
        if self._method is MatchMethod.TEMPLATE_CORRELATION:
            rep = template_representation(tpl.image, tpl.gray, tpl.edges, pre)
            return strategies.match_correlation(screen, rep, threshold)
        if self._method is MatchMethod.FEATURE_MATCHING:
            return strategies.match_features(self._detector, self._bf, screen, tpl, threshold)
        scales = strategies.linear_scales(self.min_scale, self.max_scale, SCALE_STEPS)
        return strategies.match_multi_scale(screen, tpl, pre, scales, threshold)

    # --------------------------- debug / stats ---------------------------
    def _update_debug_image(self, frame: np.ndarray, result: MatchResult) -> None:
        try:
            img = to_bgr(frame).copy()
            if result.found:
                x, y, w, h = result.bounding_box
                cv2.rectangle(img, (x, y), (x + w, y + h), (0, 255, 0), 2)
                cx, cy = int(round(result.center[0])), int(round(result.center[1]))
                cv2.circle(img, (cx, cy), 5, (0, 0, 255), -1)
                cv2.putText(img, f"Confidence: {result.confidence:.3f}", (x, max(12, y - 10)),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1)
            self._debug_image = img
        except cv2.error as e:
            logger.debug("matcher: debug image update failed: %s", e)
        self._all_matches = [result] if result.found else []

    def get_debug_image(self) -> Optional[np.ndarray]:
        return None if self._debug_image is None else self._debug_image.copy()

    def save_debug_image(self, path) -> bool:
        if self._debug_image is None:
            return False
        try:
            ok, buf = cv2.imencode(Path(path).suffix or ".png", self._debug_image)
            if not ok:
                return False
            buf.tofile(str(path))
            return True
        except (OSError, cv2.error) as e:
            logger.warning("matcher: could not save debug image to %s: %s", path, e)
            return False

    def get_all_matches(self) -> List[MatchResult]:
        return list(self._all_matches)

    def get_last_processing_time(self) -> float:
        """Wall-clock duration of the last ``match`` call in milliseconds."""
        return self._last_ms
