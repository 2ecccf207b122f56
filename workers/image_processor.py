"""
STICKER PRESS - Image Processor

Standalone per-item functions used by the batch processor and the editor
session. They hold no state, so they can be called from any worker.
"""

from typing import Any, Dict, Optional

from adjustments import AdjustmentValues, apply_all_adjustments
from config import DEFAULT_CONFIG
from filters import FilterSpec, apply_filter
from processing import PixelBuffer, decode_image, generate_thumbnail, process_image


def ingest_image(data: bytes, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Decode a source image and produce its canonical buffer.

    This is the main function for initial image processing:
    - Decode to RGBA
    - Crop transparent borders
    - Resize to the maximum sticker size
    - Thumbnail for list previews

    Args:
        data: Encoded source image bytes
        settings: Dict with processing settings:
            - max_size: Longest side of the canonical buffer (default 512)
            - alpha_threshold: Content alpha threshold (default 1)
            - thumbnail_size: Longest side of the thumbnail (default 128)

    Returns:
        Dict with:
            - canonical: Cropped and resized PixelBuffer
            - thumbnail: PNG bytes of the preview
            - source_size: (width, height) of the decoded source

    Raises:
        DecodeError: if the bytes cannot be decoded
    """
    settings = settings or {}
    max_size = settings.get('max_size', DEFAULT_CONFIG.max_size)
    alpha_threshold = settings.get('alpha_threshold', DEFAULT_CONFIG.alpha_threshold)
    thumbnail_size = settings.get('thumbnail_size', DEFAULT_CONFIG.thumbnail_size)

    source = decode_image(data)
    canonical = process_image(source, max_size=max_size, alpha_threshold=alpha_threshold)
    thumbnail = generate_thumbnail(canonical, thumbnail_size)

    return {
        'canonical': canonical,
        'thumbnail': thumbnail,
        'source_size': (source.width, source.height),
    }


def render_sticker(canonical: PixelBuffer,
                   adjustments: AdjustmentValues,
                   filter_spec: FilterSpec) -> PixelBuffer:
    """
    Derive a display/export buffer from a canonical buffer.

    Adjustments first, then the active filter. The canonical buffer is only
    read; with neutral adjustments and no filter the result has identical
    pixels.
    """
    result = apply_all_adjustments(canonical, adjustments)

    if filter_spec.is_active:
        result = apply_filter(result, filter_spec.kind, filter_spec.blur_radius)

    return result
