"""
STICKER PRESS - Editor State

Single-image editing session: one canonical buffer plus the adjustments and
filter that derive the displayed buffer from it.
"""

from dataclasses import replace
from typing import Optional, Tuple, Union

from PySide6.QtCore import QObject, Signal

from adjustments import DEFAULT_ADJUSTMENTS, AdjustmentValues
from archive import generate_sticker_filename
from config import DEFAULT_CONFIG, ProcessingConfig
from filters import FilterSpec, FilterType, parse_filter_type
from logger import get_logger
from processing import DecodeError, PixelBuffer, decode_image, encode_png, process_image
from workers.image_processor import render_sticker

log = get_logger("state")


class EditorState(QObject):
    """Centralized state for the single-image editor.

    The canonical buffer is produced once per loaded file and never modified.
    Every adjustment or filter change re-renders the display buffer from it,
    so changes are always reversible.
    """

    # Signals for state changes
    displayChanged = Signal(object)        # PixelBuffer or None
    adjustmentsChanged = Signal(object)    # AdjustmentValues
    filterChanged = Signal(object)         # FilterSpec
    showOriginalChanged = Signal(bool)
    errorOccurred = Signal(str)

    def __init__(self, config: Optional[ProcessingConfig] = None, parent: QObject = None):
        super().__init__(parent)
        self._config = config or DEFAULT_CONFIG
        self._loading = False
        self._error: Optional[str] = None
        self._reset_session()

    def _reset_session(self):
        self._file_name: Optional[str] = None
        self._source: Optional[PixelBuffer] = None
        self._canonical: Optional[PixelBuffer] = None
        self._display: Optional[PixelBuffer] = None
        self._adjustments = DEFAULT_ADJUSTMENTS
        self._filter = FilterSpec(blur_radius=self._config.default_blur_radius)
        self._show_original = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def file_name(self) -> Optional[str]:
        return self._file_name

    @property
    def source(self) -> Optional[PixelBuffer]:
        """The decoded image as loaded, before cropping and resizing."""
        return self._source

    @property
    def canonical(self) -> Optional[PixelBuffer]:
        return self._canonical

    @property
    def display(self) -> Optional[PixelBuffer]:
        return self._display

    @property
    def current_buffer(self) -> Optional[PixelBuffer]:
        """What the preview should show: the uncropped source while comparing."""
        return self._source if self._show_original else self._display

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_processing(self) -> bool:
        return self._loading

    @property
    def adjustments(self) -> AdjustmentValues:
        return self._adjustments

    @adjustments.setter
    def adjustments(self, value: AdjustmentValues):
        if self._canonical is None or value == self._adjustments:
            return
        self._adjustments = value
        self.adjustmentsChanged.emit(value)
        self._update_display()

    @property
    def active_filter(self) -> FilterSpec:
        return self._filter

    @property
    def blur_radius(self) -> float:
        return self._filter.blur_radius

    @blur_radius.setter
    def blur_radius(self, value: float):
        if self._canonical is None:
            return
        spec = replace(self._filter, blur_radius=value)
        if spec != self._filter:
            self._filter = spec
            self.filterChanged.emit(spec)
            self._update_display()

    @property
    def show_original(self) -> bool:
        return self._show_original

    @show_original.setter
    def show_original(self, value: bool):
        if self._show_original != value:
            self._show_original = value
            self.showOriginalChanged.emit(value)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def load_file(self, name: str, data: bytes) -> bool:
        """
        Load a source image and start a fresh session with it.

        A failed decode leaves no partial state behind: the previous session
        is cleared and errorOccurred is emitted.

        Returns:
            True on success, False on failure or while another load is running
        """
        if self._loading:
            return False
        self._loading = True
        self._error = None

        try:
            source = decode_image(data)
            canonical = process_image(
                source,
                max_size=self._config.max_size,
                alpha_threshold=self._config.alpha_threshold,
            )
        except DecodeError as e:
            log.warning("Failed to load %s: %s", name, e)
            self._reset_session()
            self._error = str(e) or "Failed to load image"
            self.displayChanged.emit(None)
            self.errorOccurred.emit(self._error)
            return False
        finally:
            self._loading = False

        self._reset_session()
        self._file_name = name
        self._source = source
        self._canonical = canonical
        self._display = canonical
        log.info("Loaded %s as %dx%d", name, canonical.width, canonical.height)

        self.adjustmentsChanged.emit(self._adjustments)
        self.filterChanged.emit(self._filter)
        self.displayChanged.emit(self._display)
        return True

    def set_adjustment(self, key: str, value: float):
        self.adjustments = self._adjustments.with_value(key, value)

    def set_filter(self, filter_type: Union[FilterType, str, None]):
        """Select a filter; selecting the active filter again turns it off."""
        if self._canonical is None:
            return
        kind = parse_filter_type(filter_type)
        if kind is self._filter.kind:
            kind = FilterType.NONE
        self._filter = replace(self._filter, kind=kind)
        self.filterChanged.emit(self._filter)
        self._update_display()

    def toggle_original(self):
        self.show_original = not self._show_original

    def reset(self):
        """Back to neutral adjustments and no filter."""
        if self._canonical is None:
            return
        self._adjustments = DEFAULT_ADJUSTMENTS
        self._filter = FilterSpec(blur_radius=self._config.default_blur_radius)
        self.adjustmentsChanged.emit(self._adjustments)
        self.filterChanged.emit(self._filter)
        self._update_display()

    def clear(self):
        self._reset_session()
        self._error = None
        self.displayChanged.emit(None)

    def export_png(self) -> Optional[Tuple[str, bytes]]:
        """Encode the display buffer. Returns (filename, png_bytes) or None when empty."""
        if self._display is None or self._file_name is None:
            return None
        filename = generate_sticker_filename(self._file_name, self._config.sticker_suffix)
        return filename, encode_png(self._display, self._config.png_compression_level)

    def _update_display(self):
        self._display = render_sticker(self._canonical, self._adjustments, self._filter)
        self.displayChanged.emit(self._display)
