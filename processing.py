"""
STICKER PRESS - Image Processing Core

Pixel buffers, transparent border detection, cropping and quality resizing.
Handles decoding source bytes into RGBA and encoding results as PNG.
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np

from config import DEFAULT_CONFIG
from logger import get_logger

log = get_logger("processing")


class DecodeError(ValueError):
    """Source bytes could not be turned into a PixelBuffer."""


class PixelBuffer:
    """Immutable RGBA image.

    Pixels are a read-only uint8 array of shape (height, width, 4), row-major,
    channels in R, G, B, A order. Every transform returns a new PixelBuffer;
    the array behind an existing buffer is never written to.
    """

    __slots__ = ('_pixels',)

    def __init__(self, pixels: np.ndarray):
        arr = np.array(pixels, dtype=np.uint8, order='C', copy=True)
        self._pixels = _validated(arr)

    @classmethod
    def _adopt(cls, arr: np.ndarray) -> 'PixelBuffer':
        """Wrap a freshly allocated array without copying it.

        Only for arrays no one else holds a reference to.
        """
        buf = cls.__new__(cls)
        buf._pixels = _validated(np.ascontiguousarray(arr, dtype=np.uint8))
        return buf

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> 'PixelBuffer':
        """Build a buffer from a flat RGBA byte sequence."""
        expected = width * height * 4
        if len(data) != expected:
            raise ValueError(f"Expected {expected} bytes for {width}x{height} RGBA, got {len(data)}")
        arr = np.frombuffer(data, dtype=np.uint8).reshape(height, width, 4)
        return cls(arr)

    @classmethod
    def filled(cls, width: int, height: int, rgba: Tuple[int, int, int, int]) -> 'PixelBuffer':
        """Buffer of a single solid color."""
        arr = np.empty((height, width, 4), dtype=np.uint8)
        arr[:, :] = rgba
        return cls._adopt(arr)

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    def to_bytes(self) -> bytes:
        return self._pixels.tobytes()

    def copy(self) -> 'PixelBuffer':
        return PixelBuffer._adopt(self._pixels.copy())

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return np.array_equal(self._pixels, other._pixels)

    __hash__ = None

    def __repr__(self):
        return f"PixelBuffer({self.width}x{self.height})"


def _validated(arr: np.ndarray) -> np.ndarray:
    if arr.ndim != 3 or arr.shape[2] != 4:
        raise ValueError(f"Expected a (height, width, 4) array, got shape {arr.shape}")
    if arr.shape[0] < 1 or arr.shape[1] < 1:
        raise ValueError(f"Pixel buffer must be at least 1x1, got {arr.shape[1]}x{arr.shape[0]}")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive rectangle of content pixels."""
    left: int
    top: int
    right: int
    bottom: int
    width: int
    height: int

    @classmethod
    def full(cls, width: int, height: int) -> 'BoundingBox':
        return cls(0, 0, width - 1, height - 1, width, height)


# =============================================================================
# DECODING / ENCODING
# =============================================================================

def _to_rgba8(img: np.ndarray) -> np.ndarray:
    """Convert an OpenCV decode result (BGR order, any depth) to 8-bit RGBA."""
    if img.dtype == np.uint16:
        img = np.round(img.astype(np.float32) / 257.0).astype(np.uint8)
    elif img.dtype in (np.float32, np.float64):
        img = np.round(np.clip(img, 0, 1) * 255.0).astype(np.uint8)
    elif img.dtype != np.uint8:
        raise DecodeError(f"Unsupported sample type: {img.dtype}")

    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)

    channels = img.shape[2]
    if channels == 1:
        return cv2.cvtColor(img[:, :, 0], cv2.COLOR_GRAY2RGBA)
    if channels == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    if channels == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    raise DecodeError(f"Unsupported channel count: {channels}")


def decode_image(data: bytes) -> PixelBuffer:
    """Decode PNG-equivalent bytes into an RGBA PixelBuffer.

    Images without an alpha channel get a fully opaque one.

    Raises:
        DecodeError: if the bytes are empty or not a decodable image
    """
    if not data:
        raise DecodeError("Failed to load image: no data")

    raw = np.frombuffer(data, dtype=np.uint8)
    try:
        img = cv2.imdecode(raw, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DecodeError(f"Failed to load image: {e}") from e

    if img is None:
        raise DecodeError("Failed to load image")
    return PixelBuffer._adopt(_to_rgba8(img))


def load_image(path: str) -> PixelBuffer:
    """Read and decode an image file."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise DecodeError(f"Could not load image: {path}") from e
    return decode_image(data)


def encode_png(buffer: PixelBuffer, compression: int = DEFAULT_CONFIG.png_compression_level) -> bytes:
    """Encode a buffer as a lossless PNG with full alpha."""
    # RGBA -> BGRA for OpenCV
    bgra = buffer.pixels[:, :, [2, 1, 0, 3]]
    ok, encoded = cv2.imencode('.png', bgra, [cv2.IMWRITE_PNG_COMPRESSION, int(compression)])
    if not ok:
        raise ValueError("Failed to export image")
    return encoded.tobytes()


# =============================================================================
# BOUNDING BOX / CROP
# =============================================================================

def detect_bounding_box(buffer: PixelBuffer,
                        alpha_threshold: int = DEFAULT_CONFIG.alpha_threshold) -> BoundingBox:
    """
    Detect the bounding box of non-transparent pixels.

    A pixel counts as content when its alpha is strictly greater than
    alpha_threshold. A buffer with no content returns the full image box.
    """
    content = buffer.pixels[:, :, 3] > alpha_threshold
    rows = np.flatnonzero(content.any(axis=1))
    cols = np.flatnonzero(content.any(axis=0))

    if rows.size == 0:
        return BoundingBox.full(buffer.width, buffer.height)

    left, right = int(cols[0]), int(cols[-1])
    top, bottom = int(rows[0]), int(rows[-1])
    return BoundingBox(
        left=left,
        top=top,
        right=right,
        bottom=bottom,
        width=right - left + 1,
        height=bottom - top + 1,
    )


def crop_image(buffer: PixelBuffer, box: BoundingBox) -> PixelBuffer:
    """
    Crop a buffer to the given bounding box.

    Boxes that do not fit the buffer are clamped to it; the result is never
    smaller than 1x1.
    """
    w, h = buffer.width, buffer.height

    left = min(max(box.left, 0), w - 1)
    top = min(max(box.top, 0), h - 1)
    width = min(max(box.width, 1), w - left)
    height = min(max(box.height, 1), h - top)

    if (left, top, width, height) != (box.left, box.top, box.width, box.height):
        log.warning("Crop box %s does not fit %dx%d buffer, clamped to (%d, %d, %dx%d)",
                    box, w, h, left, top, width, height)

    return PixelBuffer(buffer.pixels[top:top + height, left:left + width])


# =============================================================================
# RESIZE
# =============================================================================

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fit_dimensions(width: int, height: int, max_size: int) -> Tuple[int, int]:
    """Dimensions that fit within max_size keeping the aspect ratio (never upscales)."""
    if max_size < 1:
        raise ValueError(f"max_size must be positive, got {max_size}")

    if width >= height:
        new_width = min(width, max_size)
        new_height = _round_half_up(height / width * new_width)
    else:
        new_height = min(height, max_size)
        new_width = _round_half_up(width / height * new_height)

    return max(1, new_width), max(1, new_height)


def _premultiply(pixels: np.ndarray) -> np.ndarray:
    """RGBA uint8 -> float32 with color premultiplied by alpha.

    Resampling premultiplied data keeps transparent pixels from bleeding
    their (invisible) color into visible neighbours.
    """
    work = pixels.astype(np.float32)
    work[:, :, :3] *= work[:, :, 3:4] / 255.0
    return work


def _unpremultiply(work: np.ndarray) -> np.ndarray:
    alpha = work[:, :, 3:4] / 255.0
    with np.errstate(divide='ignore', invalid='ignore'):
        rgb = np.where(alpha > 0, work[:, :, :3] / alpha, 0.0)
    out = np.empty(work.shape, dtype=np.float32)
    out[:, :, :3] = rgb
    out[:, :, 3:4] = work[:, :, 3:4]
    return np.clip(np.floor(out + 0.5), 0, 255).astype(np.uint8)


def _resample(work: np.ndarray, width: int, height: int) -> np.ndarray:
    out = cv2.resize(work, (width, height), interpolation=cv2.INTER_AREA)
    # OpenCV drops the channel axis for single-channel results only; keep it explicit
    return out.reshape(height, width, work.shape[2])


def _step_down_resize(work: np.ndarray, target_width: int, target_height: int) -> np.ndarray:
    """
    Halve repeatedly until within 2x of the target, then resample to the target.

    A single large downscale aliases visibly even with area interpolation.
    """
    current_height, current_width = work.shape[:2]

    while current_width > target_width * 2 or current_height > target_height * 2:
        current_width = max(_round_half_up(current_width / 2), target_width)
        current_height = max(_round_half_up(current_height / 2), target_height)
        work = _resample(work, current_width, current_height)
        log.debug("Step-down resize to %dx%d", current_width, current_height)

    return _resample(work, target_width, target_height)


def resize_image(buffer: PixelBuffer, max_size: int = DEFAULT_CONFIG.max_size) -> PixelBuffer:
    """
    Resize a buffer to fit within max_size while maintaining aspect ratio.

    Returns the input buffer unchanged when it already fits.
    """
    width, height = buffer.width, buffer.height
    new_width, new_height = fit_dimensions(width, height, max_size)

    if new_width == width and new_height == height:
        return buffer

    work = _premultiply(buffer.pixels)
    if width > new_width * 2 or height > new_height * 2:
        resized = _step_down_resize(work, new_width, new_height)
    else:
        resized = _resample(work, new_width, new_height)

    return PixelBuffer._adopt(_unpremultiply(resized))


# =============================================================================
# PIPELINE
# =============================================================================

def process_image(buffer: PixelBuffer,
                  max_size: int = DEFAULT_CONFIG.max_size,
                  alpha_threshold: int = DEFAULT_CONFIG.alpha_threshold) -> PixelBuffer:
    """
    Process image: crop transparent borders and resize to max_size.

    1. Detect the bounding box of visible content
    2. Crop to it
    3. Resize so the longest side is at most max_size
    """
    box = detect_bounding_box(buffer, alpha_threshold)
    cropped = crop_image(buffer, box)
    resized = resize_image(cropped, max_size)
    log.debug("Processed %dx%d -> crop %dx%d -> %dx%d",
              buffer.width, buffer.height, box.width, box.height, resized.width, resized.height)
    return resized


def generate_thumbnail(buffer: PixelBuffer, max_size: int = DEFAULT_CONFIG.thumbnail_size) -> bytes:
    """Generate a small PNG preview of a buffer."""
    new_width, new_height = fit_dimensions(buffer.width, buffer.height, max_size)
    if new_width == buffer.width and new_height == buffer.height:
        return encode_png(buffer)

    resized = _resample(_premultiply(buffer.pixels), new_width, new_height)
    return encode_png(PixelBuffer._adopt(_unpremultiply(resized)))
