"""Image builders shared by the test modules."""

import cv2
import numpy as np


def rgba_png(rgba: np.ndarray) -> bytes:
    """Encode an (h, w, 4) RGBA array as PNG bytes."""
    ok, encoded = cv2.imencode(".png", np.ascontiguousarray(rgba[:, :, [2, 1, 0, 3]]))
    assert ok
    return encoded.tobytes()


def solid_rgba(width: int, height: int, rgba) -> np.ndarray:
    arr = np.zeros((height, width, 4), dtype=np.uint8)
    arr[:, :] = rgba
    return arr
