"""
STICKER PRESS - Adjustments

Brightness, contrast, saturation and sharpness. Each adjustment works on RGB
only, leaves alpha untouched and returns a new buffer.
"""

from dataclasses import dataclass, fields, replace
from typing import Optional

import numpy as np

from config import ADJUSTMENT_MAX, ADJUSTMENT_MIN, ADJUSTMENT_NEUTRAL
from convolution import apply_convolution, with_rgb
from processing import PixelBuffer

# Luma weights (ITU-R BT.709)
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722

# Normalised 3x3 blur used by the unsharp mask
SHARPNESS_BLUR_KERNEL = [
    1, 2, 1,
    2, 4, 2,
    1, 2, 1,
]
SHARPNESS_BLUR_DIVISOR = 16

# Below this |259 - value*255| is treated as zero
CONTRAST_SINGULARITY_EPS = 1e-9


@dataclass(frozen=True)
class AdjustmentValues:
    """Adjustment slider values, each 0.0 - 2.0 with 1.0 = no change."""
    brightness: float = ADJUSTMENT_NEUTRAL
    contrast: float = ADJUSTMENT_NEUTRAL
    saturation: float = ADJUSTMENT_NEUTRAL
    sharpness: float = ADJUSTMENT_NEUTRAL

    def __post_init__(self):
        for f in fields(self):
            value = float(getattr(self, f.name))
            object.__setattr__(self, f.name, max(ADJUSTMENT_MIN, min(ADJUSTMENT_MAX, value)))

    def with_value(self, key: str, value: float) -> 'AdjustmentValues':
        """Copy with one adjustment changed."""
        if key not in ADJUSTMENT_KEYS:
            raise KeyError(f"Unknown adjustment: {key}. Valid keys: {list(ADJUSTMENT_KEYS)}")
        return replace(self, **{key: value})

    def is_neutral(self) -> bool:
        return all(getattr(self, key) == ADJUSTMENT_NEUTRAL for key in ADJUSTMENT_KEYS)


ADJUSTMENT_KEYS = tuple(f.name for f in fields(AdjustmentValues))

DEFAULT_ADJUSTMENTS = AdjustmentValues()


def _rgb(buffer: PixelBuffer) -> np.ndarray:
    return buffer.pixels[:, :, :3].astype(np.float64)


def adjust_brightness(buffer: PixelBuffer, value: float) -> PixelBuffer:
    """Scale every channel by value."""
    return with_rgb(buffer, _rgb(buffer) * value)


def contrast_factor(value: float) -> Optional[float]:
    """Contrast multiplier for a slider value, or None at the singular point."""
    spread = 259 - value * 255
    if abs(spread) < CONTRAST_SINGULARITY_EPS:
        return None
    return (259 * (value * 255 + 255)) / (255 * spread)


def adjust_contrast(buffer: PixelBuffer, value: float) -> PixelBuffer:
    """Stretch channels around mid-gray.

    At value = 259/255 the factor is undefined; the buffer is returned as an
    unchanged copy there.
    """
    factor = contrast_factor(value)
    if factor is None:
        return buffer.copy()
    return with_rgb(buffer, factor * (_rgb(buffer) - 128) + 128)


def adjust_saturation(buffer: PixelBuffer, value: float) -> PixelBuffer:
    """Move each channel toward (value < 1) or away from (value > 1) its luma."""
    rgb = _rgb(buffer)
    gray = (LUMA_R * rgb[:, :, 0] + LUMA_G * rgb[:, :, 1] + LUMA_B * rgb[:, :, 2])[:, :, np.newaxis]
    return with_rgb(buffer, gray + (rgb - gray) * value)


def adjust_sharpness(buffer: PixelBuffer, value: float) -> PixelBuffer:
    """
    Unsharp mask.

    The image is blurred with a small normalised kernel and the difference to
    the original is added back, scaled by (value - 1) * 2. Values below 1.0
    soften the image.
    """
    if value == ADJUSTMENT_NEUTRAL:
        return buffer.copy()

    blurred = apply_convolution(buffer, SHARPNESS_BLUR_KERNEL, SHARPNESS_BLUR_DIVISOR)
    amount = (value - 1.0) * 2
    rgb = _rgb(buffer)
    return with_rgb(buffer, rgb + amount * (rgb - _rgb(blurred)))


def apply_all_adjustments(buffer: PixelBuffer, values: AdjustmentValues) -> PixelBuffer:
    """
    Apply all adjustments in sequence.

    Order is brightness, contrast, saturation, sharpness; each step is skipped
    while its value is neutral. The steps do not commute, so the order is
    part of the result.
    """
    result = buffer

    if values.brightness != ADJUSTMENT_NEUTRAL:
        result = adjust_brightness(result, values.brightness)
    if values.contrast != ADJUSTMENT_NEUTRAL:
        result = adjust_contrast(result, values.contrast)
    if values.saturation != ADJUSTMENT_NEUTRAL:
        result = adjust_saturation(result, values.saturation)
    if values.sharpness != ADJUSTMENT_NEUTRAL:
        result = adjust_sharpness(result, values.sharpness)

    return result
