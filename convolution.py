"""
STICKER PRESS - Convolution

Generic square-kernel convolution over the RGB channels of a PixelBuffer.
Backs the sharpness adjustment and every named filter.
"""

import math
from typing import Optional, Sequence

import numpy as np
from scipy import ndimage

from processing import PixelBuffer


def clamp_channels(values: np.ndarray) -> np.ndarray:
    """Round half-up and clamp to 0-255, returning uint8."""
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.uint8)


def with_rgb(buffer: PixelBuffer, rgb: np.ndarray) -> PixelBuffer:
    """New buffer with the given RGB values and the source alpha channel.

    rgb may be float; it is rounded and clamped.
    """
    out = np.empty_like(buffer.pixels)
    out[:, :, :3] = clamp_channels(rgb)
    out[:, :, 3] = buffer.pixels[:, :, 3]
    return PixelBuffer._adopt(out)


def kernel_matrix(kernel: Sequence[float]) -> np.ndarray:
    """
    Reshape a flattened row-major kernel into an N x N matrix.

    Raises:
        ValueError: if the kernel is empty, not square or has an even side
    """
    weights = np.asarray(kernel, dtype=np.float64).ravel()
    size = math.isqrt(weights.size)
    if weights.size == 0 or size * size != weights.size:
        raise ValueError(f"Kernel length {weights.size} is not a perfect square")
    if size % 2 == 0:
        raise ValueError(f"Kernel side must be odd, got {size}")
    return weights.reshape(size, size)


def convolve_rgb(buffer: PixelBuffer, kernel: Sequence[float]) -> np.ndarray:
    """
    Raw weighted sums for each RGB channel, as float64 (height, width, 3).

    Samples outside the image repeat the nearest edge pixel. The kernel is
    applied as written (kernel[ky][kx] weighs the pixel at x+kx-half,
    y+ky-half), without flipping.
    """
    weights = kernel_matrix(kernel)
    rgb = buffer.pixels[:, :, :3].astype(np.float64)
    # Size-1 third axis keeps channels independent
    return ndimage.correlate(rgb, weights[:, :, np.newaxis], mode='nearest')


def apply_convolution(buffer: PixelBuffer, kernel: Sequence[float],
                      divisor: Optional[float] = None) -> PixelBuffer:
    """
    Apply a convolution kernel to the RGB channels of an image.

    Args:
        buffer: Source image
        kernel: Flattened row-major N x N kernel, N odd
        divisor: Normalisation divisor; defaults to the kernel sum, or 1
                 when that sum is zero

    Returns:
        New buffer with convolved RGB and the source alpha
    """
    if divisor is None:
        divisor = float(np.sum(kernel))
    if divisor == 0:
        divisor = 1.0

    sums = convolve_rgb(buffer, kernel)
    return with_rgb(buffer, sums / divisor)
