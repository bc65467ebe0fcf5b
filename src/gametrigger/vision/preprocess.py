"""
Pure image preprocessing and template preparation utilities.

This module contains only stateless, side-effect-free functions used by the
matcher. Captured frames and templates both flow through here so the two
sides of a correlation always share one representation.

Logging: Functions here avoid heavy logging for performance; callers can
wrap them and log as needed at DEBUG level.
"""
from __future__ import annotations

import logging

import cv2
import numpy as np

from ..config.vision import CANNY_LOW, CANNY_HIGH
from .models import PreprocessingConfig

logger = logging.getLogger(__name__)


def to_bgr(img: np.ndarray) -> np.ndarray:
    """Return a 3-channel BGR view/copy of a gray, BGR or BGRA image."""
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    channels = img.shape[2]
    if channels == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    if channels == 1:
        return cv2.cvtColor(img[:, :, 0], cv2.COLOR_GRAY2BGR)
    return img


def to_gray(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return img
    if img.shape[2] == 1:
        return img[:, :, 0]
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)


def edges(gray: np.ndarray) -> np.ndarray:
    """Canny edge map with the fixed thresholds shared by template and frame."""
    return cv2.Canny(gray, CANNY_LOW, CANNY_HIGH)


def blur(img: np.ndarray, kernel: int, sigma: float) -> np.ndarray:
    if kernel <= 0:
        return img
    return cv2.GaussianBlur(img, (kernel, kernel), sigma, sigmaY=sigma)


def preprocess_frame(frame: np.ndarray, cfg: PreprocessingConfig) -> np.ndarray:
    """Prepare a captured frame for correlation.

    Order: grayscale (forced when edges are requested) -> blur -> Canny.
    """
    img = to_bgr(frame)
    if cfg.grayscale or cfg.edge_detection:
        img = to_gray(img)
    img = blur(img, cfg.blur_kernel, cfg.blur_sigma)
    if cfg.edge_detection:
        img = edges(img)
    return img


def template_representation(image: np.ndarray, gray: np.ndarray, edge_map, cfg: PreprocessingConfig) -> np.ndarray:
    """Pick the template form that lines up with ``preprocess_frame`` output."""
    if cfg.edge_detection:
        return edge_map if edge_map is not None else edges(gray)
    if cfg.grayscale:
        return gray
    return image


def resize_tpl(tpl: np.ndarray, scale: float) -> np.ndarray:
    """Resize template with appropriate interpolation (identity at scale 1.0)."""
    if abs(scale - 1.0) < 1e-6:
        return tpl
    h, w = tpl.shape[:2]
    nh, nw = max(1, int(round(h * scale))), max(1, int(round(w * scale)))
    return cv2.resize(tpl, (nw, nh), interpolation=cv2.INTER_AREA if scale < 1.0 else cv2.INTER_CUBIC)


def scaled_representation(image: np.ndarray, gray: np.ndarray, cfg: PreprocessingConfig, scale: float) -> np.ndarray:
    """Template representation at ``scale``.

    Edge maps are recomputed on the resized grayscale rather than resized
    themselves so the edges stay one pixel wide.
    """
    if cfg.edge_detection:
        return edges(resize_tpl(gray, scale))
    if cfg.grayscale:
        return resize_tpl(gray, scale)
    return resize_tpl(image, scale)
