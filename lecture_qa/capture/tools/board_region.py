"""
[Intent]
Locates the whiteboard/blackboard inside a lecture frame and returns its
bounding box (x, y, w, h) in source-frame pixels.

[Usage]
- capture/board_change.py: region used for the similarity buffer and stored in each BoardEvent

[Usage Method]
- BoardRegionDetector(bright_threshold=200, dark_threshold=50, padding=20)
- detect(frame) with a BGR or greyscale image
"""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

BBox = Tuple[int, int, int, int]


class BoardRegionDetector:
    """
    [Class Purpose]
    Classifies a frame as whiteboard-like (mostly bright) or blackboard-like
    (mostly dark) and boxes every pixel of the dominant class.
    """

    def __init__(
        self,
        bright_threshold: int = 200,
        dark_threshold: int = 50,
        padding: int = 20,
        fallback_margin_ratio: float = 0.1,
    ) -> None:
        """
        [Args]
        - bright_threshold (int): whiteboard pixels are strictly above this (0~255)
        - dark_threshold (int): blackboard pixels are strictly below this (0~255)
        - padding (int): pixels added around the detected box, clamped to the frame
        - fallback_margin_ratio (float): margin per side of the center crop used when nothing is found
        """
        self.bright_threshold = bright_threshold
        self.dark_threshold = dark_threshold
        self.padding = padding
        self.fallback_margin_ratio = fallback_margin_ratio

    def fallback(self, width: int, height: int) -> BBox:
        """[Purpose] Center crop (default 80%) used for degenerate frames."""
        margin = self.fallback_margin_ratio
        return (
            int(width * margin),
            int(height * margin),
            max(1, int(width * (1 - 2 * margin))),
            max(1, int(height * (1 - 2 * margin))),
        )

    def detect(self, frame: np.ndarray) -> BBox:
        """
        [Purpose]
        - Count bright vs dark pixels to pick the board type.
        - Bounding box of all pixels crossing that type's threshold, padded.

        [Returns]
        - (x, y, w, h). Falls back to the center crop when the matching pixels
          do not span at least two distinct rows and columns.
        """
        if frame is None or frame.size == 0:
            raise ValueError("empty frame")

        gray = frame if frame.ndim == 2 else cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        height, width = gray.shape[:2]

        bright = gray > self.bright_threshold
        dark = gray < self.dark_threshold
        is_whiteboard = int(np.count_nonzero(bright)) > int(np.count_nonzero(dark))
        mask = bright if is_whiteboard else dark

        cols = np.flatnonzero(mask.any(axis=0))
        rows = np.flatnonzero(mask.any(axis=1))
        if cols.size == 0 or rows.size == 0:
            return self.fallback(width, height)

        min_x, max_x = int(cols[0]), int(cols[-1])
        min_y, max_y = int(rows[0]), int(rows[-1])
        if min_x >= max_x or min_y >= max_y:
            return self.fallback(width, height)

        x = max(0, min_x - self.padding)
        y = max(0, min_y - self.padding)
        w = min(width - x, max_x - min_x + 2 * self.padding)
        h = min(height - y, max_y - min_y + 2 * self.padding)
        return (x, y, w, h)
