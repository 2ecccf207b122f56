"""
STICKER PRESS - Archive Export

Encodes finished buffers as PNG and bundles them into a single ZIP archive.
This is the only place results are materialised as bulk bytes.
"""

import io
import re
import time
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple

from config import DEFAULT_CONFIG
from logger import get_logger
from processing import PixelBuffer, encode_png

log = get_logger("archive")


class ExportError(RuntimeError):
    """The archive or one of its images could not be produced."""


@dataclass(frozen=True)
class ExportResult:
    """A finished export: the file name to deliver under and its bytes."""
    filename: str
    data: bytes
    count: int


class ArchiveWriter(ABC):
    """Write named blobs into a container, then materialise it as bytes."""

    @abstractmethod
    def write(self, name: str, data: bytes):
        """Add a file to the container."""

    @abstractmethod
    def finish(self) -> bytes:
        """Close the container and return its bytes."""


class ZipArchiveWriter(ArchiveWriter):
    """In-memory deflate-compressed ZIP. Entries keep insertion order."""

    def __init__(self, compression_level: int = DEFAULT_CONFIG.archive_compression_level):
        self._buffer = io.BytesIO()
        self._zip = zipfile.ZipFile(self._buffer, mode='w', compression=zipfile.ZIP_DEFLATED,
                                    compresslevel=compression_level)
        self._compression_level = compression_level
        # One timestamp for every entry
        self._date_time = time.localtime()[:6]

    def write(self, name: str, data: bytes):
        info = zipfile.ZipInfo(name, date_time=self._date_time)
        info.compress_type = zipfile.ZIP_DEFLATED
        self._zip.writestr(info, data, compresslevel=self._compression_level)

    def finish(self) -> bytes:
        self._zip.close()
        return self._buffer.getvalue()


class ArchiveExporter:
    """
    Serialise (filename, buffer) pairs into one archive.

    Each buffer is encoded losslessly as PNG and written under its filename,
    in the order given.
    """

    def __init__(
        self,
        writer_factory: Optional[Callable[[], ArchiveWriter]] = None,
        png_compression: int = DEFAULT_CONFIG.png_compression_level,
    ):
        """
        Args:
            writer_factory: Creates a fresh ArchiveWriter per export (default: ZIP)
            png_compression: zlib level used for the PNG entries
        """
        self._writer_factory = writer_factory or ZipArchiveWriter
        self._png_compression = png_compression

    def export(
        self,
        items: Sequence[Tuple[str, PixelBuffer]],
        archive_name: str,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> ExportResult:
        """
        Encode and bundle all items.

        Args:
            items: Ordered (filename, buffer) pairs
            archive_name: Name the archive is delivered under
            on_progress: Called with (current, total) after each entry

        Raises:
            ExportError: if encoding or archiving fails
        """
        total = len(items)
        try:
            writer = self._writer_factory()
            for i, (filename, buffer) in enumerate(items):
                writer.write(filename, encode_png(buffer, self._png_compression))
                if on_progress:
                    on_progress(i + 1, total)
            data = writer.finish()
        except ExportError:
            raise
        except Exception as e:
            raise ExportError(f"Failed to create {archive_name}: {e}") from e

        log.info("Created %s with %d image(s), %d bytes", archive_name, total, len(data))
        return ExportResult(filename=archive_name, data=data, count=total)


# =============================================================================
# FILENAMES
# =============================================================================

_EXTENSION_RE = re.compile(r'\.[^/.]+$')


def generate_sticker_filename(original_name: str,
                              suffix: str = DEFAULT_CONFIG.sticker_suffix) -> str:
    """Output filename for a processed sticker: 'cat.png' -> 'cat_sticker.png'."""
    base_name = _EXTENSION_RE.sub('', original_name)
    return f"{base_name}{suffix}.png"


def generate_zip_filename(today: Optional[date] = None,
                          prefix: str = DEFAULT_CONFIG.archive_prefix) -> str:
    """Date-stamped archive name, e.g. stickers_2024-05-01.zip."""
    today = today or date.today()
    return f"{prefix}_{today.isoformat()}.zip"


def unique_sticker_filenames(original_names: Sequence[str],
                             suffix: str = DEFAULT_CONFIG.sticker_suffix) -> List[str]:
    """
    Sticker filenames for a batch, made unique within the batch.

    Later duplicates get _2, _3, ... before the sticker suffix so no archive
    entry overwrites another.
    """
    result = []
    used = set()
    for name in original_names:
        base_name = _EXTENSION_RE.sub('', name)
        candidate = f"{base_name}{suffix}.png"
        n = 2
        while candidate in used:
            candidate = f"{base_name}_{n}{suffix}.png"
            n += 1
        used.add(candidate)
        result.append(candidate)
    return result
