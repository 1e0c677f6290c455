"""
[Intent]
Global structural similarity between two equally sized greyscale buffers,
plus the crop/resize step that produces those buffers.

[Usage]
- capture/board_change.py: compares each frame's board crop with the last recorded one
"""

from __future__ import annotations

from typing import Sequence

import cv2
import numpy as np


def compute_ssim(a: np.ndarray, b: np.ndarray, c1: float = 0.01 ** 2, c2: float = 0.03 ** 2) -> float:
    """
    [Purpose]
    Single-window SSIM over the whole buffer:
    ((2*mu1*mu2 + c1) * (2*cov + c2)) / ((mu1^2 + mu2^2 + c1) * (var1 + var2 + c2))

    [Returns]
    - float similarity; 0.0 when the buffers differ in size.
    """
    if a.shape != b.shape or a.size == 0:
        return 0.0

    x = a.astype(np.float64).ravel()
    y = b.astype(np.float64).ravel()

    mean_x = x.mean()
    mean_y = y.mean()
    dx = x - mean_x
    dy = y - mean_y
    var_x = (dx * dx).mean()
    var_y = (dy * dy).mean()
    cov = (dx * dy).mean()

    numerator = (2 * mean_x * mean_y + c1) * (2 * cov + c2)
    denominator = (mean_x ** 2 + mean_y ** 2 + c1) * (var_x + var_y + c2)
    return float(numerator / denominator)


def comparison_buffer(frame: np.ndarray, bbox: Sequence[int], size: Sequence[int] = (800, 600)) -> np.ndarray:
    """
    [Purpose]
    Crop ``bbox`` (x, y, w, h), convert to greyscale and stretch to ``size``
    (width, height) so differently sized regions stay comparable.
    """
    x, y, w, h = (int(v) for v in bbox)
    crop = frame[y : y + h, x : x + w]
    if crop.size == 0:
        raise ValueError(f"empty crop for bbox {list(bbox)}")
    if crop.ndim == 3:
        crop = cv2.cvtColor(crop, cv2.COLOR_BGR2GRAY)
    return cv2.resize(crop, (int(size[0]), int(size[1])), interpolation=cv2.INTER_AREA)
