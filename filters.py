"""
STICKER PRESS - Filters

Named stylistic filters built on the convolution engine.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

import numpy as np

from config import BLUR_RADIUS_MAX, BLUR_RADIUS_MIN, DEFAULT_CONFIG
from convolution import apply_convolution, with_rgb
from processing import PixelBuffer


class FilterType(Enum):
    """Available filters. NONE leaves the image unchanged."""
    NONE = "none"
    SHARPEN = "sharpen"
    BLUR = "blur"
    EDGE_ENHANCE = "edge_enhance"
    EMBOSS = "emboss"
    CONTOUR = "contour"
    DETAIL = "detail"
    FIND_EDGES = "find_edges"


FILTER_LABELS = {
    FilterType.SHARPEN: "Sharpen",
    FilterType.BLUR: "Blur",
    FilterType.EDGE_ENHANCE: "Edge Enhance",
    FilterType.EMBOSS: "Emboss",
    FilterType.CONTOUR: "Contour",
    FilterType.DETAIL: "Detail",
    FilterType.FIND_EDGES: "Find Edges",
}


def clamp_blur_radius(radius: float) -> float:
    return max(BLUR_RADIUS_MIN, min(BLUR_RADIUS_MAX, float(radius)))


@dataclass(frozen=True)
class FilterSpec:
    """The active filter and its parameters."""
    kind: FilterType = FilterType.NONE
    blur_radius: float = DEFAULT_CONFIG.default_blur_radius

    def __post_init__(self):
        object.__setattr__(self, 'kind', parse_filter_type(self.kind))
        object.__setattr__(self, 'blur_radius', clamp_blur_radius(self.blur_radius))

    @property
    def is_active(self) -> bool:
        return self.kind is not FilterType.NONE


def parse_filter_type(value: Union[FilterType, str, None]) -> FilterType:
    """Resolve a FilterType, its string value, or None. Unknown names map to NONE."""
    if value is None:
        return FilterType.NONE
    if isinstance(value, FilterType):
        return value
    try:
        return FilterType(str(value).lower())
    except ValueError:
        return FilterType.NONE


NO_FILTER = FilterSpec()


# =============================================================================
# KERNELS
# =============================================================================

SHARPEN_KERNEL = [
    0, -1, 0,
    -1, 5, -1,
    0, -1, 0,
]

EDGE_ENHANCE_KERNEL = [
    -1, -1, -1,
    -1, 9, -1,
    -1, -1, -1,
]

EMBOSS_KERNEL = [
    -2, -1, 0,
    -1, 1, 1,
    0, 1, 2,
]

CONTOUR_KERNEL = [
    -1, -1, -1,
    -1, 8, -1,
    -1, -1, -1,
]

DETAIL_KERNEL = [
    0, -1, 0,
    -1, 10, -1,
    0, -1, 0,
]
DETAIL_DIVISOR = 6

SOBEL_X = [
    -1, 0, 1,
    -2, 0, 2,
    -1, 0, 1,
]

SOBEL_Y = [
    -1, -2, -1,
    0, 0, 0,
    1, 2, 1,
]

EMBOSS_OFFSET = 128


def gaussian_kernel(radius: float) -> List[float]:
    """Flattened Gaussian kernel of side ceil(radius)*2+1 with sigma = radius/2."""
    sigma = radius / 2
    size = math.ceil(radius) * 2 + 1
    center = size // 2
    offsets = np.arange(size) - center
    dx, dy = np.meshgrid(offsets, offsets)
    weights = np.exp(-(dx * dx + dy * dy) / (2 * sigma * sigma))
    return weights.ravel().tolist()


# =============================================================================
# FILTERS
# =============================================================================

def apply_sharpen(buffer: PixelBuffer) -> PixelBuffer:
    return apply_convolution(buffer, SHARPEN_KERNEL, 1)


def apply_gaussian_blur(buffer: PixelBuffer, radius: float) -> PixelBuffer:
    """Gaussian blur with radius 0-10. A radius of 0 or less returns a copy."""
    if radius <= 0:
        return buffer.copy()

    kernel = gaussian_kernel(radius)
    return apply_convolution(buffer, kernel, sum(kernel))


def apply_edge_enhance(buffer: PixelBuffer) -> PixelBuffer:
    return apply_convolution(buffer, EDGE_ENHANCE_KERNEL, 1)


def apply_emboss(buffer: PixelBuffer) -> PixelBuffer:
    """Emboss - relief effect, shifted up to mid-gray."""
    result = apply_convolution(buffer, EMBOSS_KERNEL, 1)
    rgb = result.pixels[:, :, :3].astype(np.int32) + EMBOSS_OFFSET
    return with_rgb(result, np.minimum(rgb, 255))


def apply_contour(buffer: PixelBuffer) -> PixelBuffer:
    """Contour - edges as dark lines on white."""
    result = apply_convolution(buffer, CONTOUR_KERNEL, 1)
    return with_rgb(result, 255 - result.pixels[:, :, :3].astype(np.int32))


def apply_detail(buffer: PixelBuffer) -> PixelBuffer:
    return apply_convolution(buffer, DETAIL_KERNEL, DETAIL_DIVISOR)


def edge_gray(magnitude: np.ndarray) -> np.ndarray:
    """Edge magnitude to uint8 gray: capped at 255, ties rounded to even."""
    return np.clip(np.rint(magnitude), 0, 255).astype(np.uint8)


def apply_find_edges(buffer: PixelBuffer) -> PixelBuffer:
    """
    Find edges using the Sobel operator.

    Gradients come from the clamped (0-255) convolution results, so only
    rising edges along each axis register. The magnitude over all three
    channels is normalised by sqrt(3) and written as gray.
    """
    gx = apply_convolution(buffer, SOBEL_X, 1).pixels[:, :, :3].astype(np.float64)
    gy = apply_convolution(buffer, SOBEL_Y, 1).pixels[:, :, :3].astype(np.float64)

    magnitude = np.sqrt(np.sum(gx * gx + gy * gy, axis=2)) / math.sqrt(3)
    value = edge_gray(magnitude)

    out = buffer.pixels.copy()
    out[:, :, 0] = value
    out[:, :, 1] = value
    out[:, :, 2] = value
    return PixelBuffer._adopt(out)


def apply_filter(buffer: PixelBuffer,
                 filter_type: Union[FilterType, str, None],
                 blur_radius: Optional[float] = None) -> PixelBuffer:
    """
    Apply a named filter.

    Args:
        buffer: Source image
        filter_type: FilterType, its string value, or None
        blur_radius: Radius for the blur filter (default 3)

    Returns:
        Filtered buffer; 'none' and unknown filters return an unmodified copy
    """
    kind = parse_filter_type(filter_type)
    if blur_radius is None:
        blur_radius = DEFAULT_CONFIG.default_blur_radius

    if kind is FilterType.SHARPEN:
        return apply_sharpen(buffer)
    if kind is FilterType.BLUR:
        return apply_gaussian_blur(buffer, clamp_blur_radius(blur_radius))
    if kind is FilterType.EDGE_ENHANCE:
        return apply_edge_enhance(buffer)
    if kind is FilterType.EMBOSS:
        return apply_emboss(buffer)
    if kind is FilterType.CONTOUR:
        return apply_contour(buffer)
    if kind is FilterType.DETAIL:
        return apply_detail(buffer)
    if kind is FilterType.FIND_EDGES:
        return apply_find_edges(buffer)
    return buffer.copy()
