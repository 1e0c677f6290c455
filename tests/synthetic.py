"""Synthetic lecture frames for board detection tests."""

import cv2
import numpy as np


def board_frame(blocks, size=(320, 240)) -> np.ndarray:
    """White board (BGR) with black rectangles ``(x, y, w, h)`` drawn on it."""
    width, height = size
    frame = np.full((height, width, 3), 255, dtype=np.uint8)
    for x, y, w, h in blocks:
        frame[y : y + h, x : x + w] = 0
    return frame


def encode_jpg(frame: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, 95])
    assert ok
    return buf.tobytes()
