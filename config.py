"""
STICKER PRESS - Configuration

Processing parameters shared by the pipeline, the batch processor and the CLI.
Nothing here is persisted; callers pass a ProcessingConfig where they need
something other than the defaults.
"""

from dataclasses import dataclass
from typing import Tuple


# Adjustment slider range (neutral = 1.0)
ADJUSTMENT_MIN = 0.0
ADJUSTMENT_MAX = 2.0
ADJUSTMENT_NEUTRAL = 1.0

# Gaussian blur radius range
BLUR_RADIUS_MIN = 0.0
BLUR_RADIUS_MAX = 10.0


@dataclass
class ProcessingConfig:
    """Configurable processing parameters."""
    max_size: int = 512                                # longest side of the canonical buffer
    alpha_threshold: int = 1                           # alpha must exceed this to count as content
    thumbnail_size: int = 128                          # longest side of list thumbnails
    default_blur_radius: float = 3.0                   # blur radius when none is chosen
    archive_compression_level: int = 6                 # deflate level for ZIP export
    png_compression_level: int = 3                     # zlib level for PNG encoding (lossless)
    sticker_suffix: str = "_sticker"                   # appended to exported file stems
    archive_prefix: str = "stickers"                   # archive name is <prefix>_<date>.zip
    accepted_extensions: Tuple[str, ...] = (".png",)   # batch ingest filter


DEFAULT_CONFIG = ProcessingConfig()
