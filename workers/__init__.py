"""
STICKER PRESS - Workers Module

Per-item image processing functions.
"""

from workers.image_processor import (
    ingest_image,
    render_sticker,
)

__all__ = [
    'ingest_image',
    'render_sticker',
]
