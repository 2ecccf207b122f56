"""
STICKER PRESS - Batch Processor

Ingests many source images one at a time and exports the finished stickers
as a single archive. Work is split into single-item steps so the host decides
when to yield to its event loop between items.
"""

import threading
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import PurePath
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from adjustments import DEFAULT_ADJUSTMENTS, AdjustmentValues
from archive import (
    ArchiveExporter,
    ExportError,
    ExportResult,
    ZipArchiveWriter,
    generate_zip_filename,
    unique_sticker_filenames,
)
from config import DEFAULT_CONFIG, ProcessingConfig
from filters import FilterSpec, FilterType, parse_filter_type
from logger import get_logger
from processing import PixelBuffer
from workers.image_processor import ingest_image, render_sticker

log = get_logger("batch_processor")

# Encoded image bytes, or a callable that reads them
Source = Union[bytes, Callable[[], bytes]]


class ItemStatus(Enum):
    """Lifecycle of a batch item."""
    PENDING = "pending"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class Phase(Enum):
    """What the processor is currently doing."""
    IDLE = "idle"
    LOADING = "loading"
    APPLYING = "applying"
    COMPRESSING = "compressing"


@dataclass(frozen=True, eq=False)
class BatchItem:
    """A single source image in the working set."""
    id: str
    name: str
    source: Source = field(repr=False)
    canonical: Optional[PixelBuffer] = field(default=None, repr=False)
    thumbnail: Optional[bytes] = field(default=None, repr=False)
    status: ItemStatus = ItemStatus.PENDING
    error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.status is ItemStatus.READY and self.canonical is not None


@dataclass(frozen=True)
class ProcessingState:
    """Progress snapshot published after every transition."""
    is_processing: bool = False
    current: int = 0
    total: int = 0
    phase: Phase = Phase.IDLE


IDLE_STATE = ProcessingState()


class BatchProcessor:
    """
    State machine for batch ingest and export.

    Ingest:  IDLE -> LOADING (one step per item) -> IDLE
    Export:  IDLE -> APPLYING (one step per ready item) -> COMPRESSING -> IDLE

    Only one run may be active; a second begin_ingest/begin_export while a run
    is active is rejected, not queued. A failing item during ingest is marked
    ERROR and the batch continues. A failing export returns to IDLE and raises
    ExportError from step().
    """

    def __init__(
        self,
        config: Optional[ProcessingConfig] = None,
        exporter: Optional[ArchiveExporter] = None,
        on_progress: Optional[Callable[[ProcessingState], None]] = None,
        on_item_updated: Optional[Callable[[BatchItem], None]] = None,
        on_batch_complete: Optional[Callable[[str, int, int], None]] = None,
        on_export_ready: Optional[Callable[[ExportResult], None]] = None,
    ):
        """
        Initialize the batch processor.

        Args:
            config: Processing parameters (default: DEFAULT_CONFIG)
            exporter: Archive exporter (default: ZIP at the configured level)
            on_progress: Callback with each new ProcessingState
            on_item_updated: Callback when an item changes status
            on_batch_complete: Callback when a run ends (phase name, success_count, total)
            on_export_ready: Callback with the finished archive
        """
        self._config = config or DEFAULT_CONFIG
        self._exporter = exporter or ArchiveExporter(
            writer_factory=lambda: ZipArchiveWriter(self._config.archive_compression_level),
            png_compression=self._config.png_compression_level,
        )
        self._on_progress = on_progress
        self._on_item_updated = on_item_updated
        self._on_batch_complete = on_batch_complete
        self._on_export_ready = on_export_ready

        # Held for the whole of a run; acquire(blocking=False) is the busy check
        self._run_lock = threading.Lock()
        self._state = IDLE_STATE

        self._items: List[BatchItem] = []
        self._selected_item_id: Optional[str] = None
        self._adjustments = DEFAULT_ADJUSTMENTS
        self._filter = FilterSpec(blur_radius=self._config.default_blur_radius)

        # Active run
        self._queue: List[str] = []
        self._success_count = 0
        self._export_items: List[BatchItem] = []
        self._export_names: List[str] = []
        self._export_adjustments = DEFAULT_ADJUSTMENTS
        self._export_filter = self._filter
        self._staged: List[Tuple[str, PixelBuffer]] = []

        self.last_export: Optional[ExportResult] = None

    # =========================================================================
    # RUN CONTROL
    # =========================================================================

    def begin_ingest(self, sources: Iterable[Tuple[str, Source]]) -> bool:
        """
        Enqueue source images and start loading them.

        Args:
            sources: (filename, data) pairs where data is the encoded bytes or a
                callable returning them (read during the item's step); only
                accepted extensions are kept

        Returns:
            True if a run was started, False if there was nothing to load or
            another run is active
        """
        sources = list(sources)
        accepted = [(name, data) for name, data in sources if self.accepts(name)]
        if len(accepted) < len(sources):
            log.info("Skipping %d unsupported file(s)", len(sources) - len(accepted))
        if not accepted:
            return False

        if not self._run_lock.acquire(blocking=False):
            log.warning("A batch run is already active; ingest request rejected")
            return False

        new_items = [
            BatchItem(
                id=uuid.uuid4().hex,
                name=PurePath(name).name,
                source=data if callable(data) else bytes(data),
            )
            for name, data in accepted
        ]
        self._items.extend(new_items)
        self._queue = [item.id for item in new_items]
        self._success_count = 0

        log.info("Loading %d image(s)", len(new_items))
        for item in new_items:
            self._emit_item(item)
        self._set_state(ProcessingState(True, 0, len(new_items), Phase.LOADING))
        return True

    def begin_export(self) -> bool:
        """
        Start rendering all ready items with the current adjustments and filter.

        Returns:
            True if a run was started; False if no item is ready (nothing is
            produced) or another run is active
        """
        ready = self.ready_items
        if not ready:
            log.info("No ready images to export")
            return False

        if not self._run_lock.acquire(blocking=False):
            log.warning("A batch run is already active; export request rejected")
            return False

        self._export_items = ready
        self._export_names = unique_sticker_filenames(
            [item.name for item in ready], self._config.sticker_suffix
        )
        self._export_adjustments = self._adjustments
        self._export_filter = self._filter
        self._staged = []
        self.last_export = None

        log.info("Exporting %d image(s)", len(ready))
        self._set_state(ProcessingState(True, 0, len(ready), Phase.APPLYING))
        return True

    def step(self) -> bool:
        """
        Perform one unit of work of the active run.

        Returns:
            True while more work remains, False once the processor is idle

        Raises:
            ExportError: if the export run failed (the processor is idle again)
        """
        phase = self._state.phase

        if phase is Phase.LOADING:
            self._ingest_next()
            return self._state.is_processing
        if phase is Phase.IDLE:
            return False

        try:
            if phase is Phase.APPLYING:
                self._apply_next()
                return True
            result = self._compress()
        except ExportError as e:
            log.error("Export failed: %s", e)
            self._finish_export(None)
            raise
        except Exception as e:
            log.error("Export failed: %s", e)
            self._finish_export(None)
            raise ExportError(f"Export failed: {e}") from e

        self.last_export = result
        self._finish_export(result)
        if self._on_export_ready:
            self._on_export_ready(result)
        return False

    def ingest_all(self, sources: Iterable[Tuple[str, Source]]) -> bool:
        """Load sources synchronously, without yielding between items."""
        if not self.begin_ingest(sources):
            return False
        while self.step():
            pass
        return True

    def export_all(self) -> Optional[ExportResult]:
        """Export synchronously. Returns None when there was nothing to export."""
        if not self.begin_export():
            return None
        while self.step():
            pass
        return self.last_export

    # =========================================================================
    # STEPS
    # =========================================================================

    def _ingest_next(self):
        item_id = self._queue.pop(0)
        index = self._index_of(item_id)
        # Items removed mid-run are skipped but still count toward progress
        if index >= 0:
            self._ingest_item(index)

        self._set_state(replace(self._state, current=self._state.current + 1))

        if not self._queue:
            total = self._state.total
            log.info("Loaded %d of %d image(s)", self._success_count, total)
            self._finish(Phase.LOADING, self._success_count, total)

    def _ingest_item(self, index: int):
        item = replace(self._items[index], status=ItemStatus.LOADING, error=None)
        self._update_item(index, item)

        try:
            data = item.source() if callable(item.source) else item.source
            result = ingest_image(data, self._ingest_settings())
        except Exception as e:
            message = str(e) or "Failed to load"
            log.warning("Failed to load %s: %s", item.name, message)
            self._update_item(index, replace(item, status=ItemStatus.ERROR, error=message))
            return

        self._update_item(index, replace(
            item,
            canonical=result['canonical'],
            thumbnail=result['thumbnail'],
            status=ItemStatus.READY,
        ))
        self._success_count += 1
        if self._selected_item_id is None:
            self._selected_item_id = item.id
        log.debug("Loaded %s (%dx%d)", item.name, *result['source_size'])

    def _apply_next(self):
        i = len(self._staged)
        item = self._export_items[i]
        render = render_sticker(item.canonical, self._export_adjustments, self._export_filter)
        self._staged.append((self._export_names[i], render))

        self._set_state(replace(self._state, current=i + 1))
        if len(self._staged) == len(self._export_items):
            self._set_state(replace(self._state, phase=Phase.COMPRESSING))

    def _compress(self) -> ExportResult:
        archive_name = generate_zip_filename(prefix=self._config.archive_prefix)
        return self._exporter.export(self._staged, archive_name)

    def _finish_export(self, result: Optional[ExportResult]):
        total = len(self._export_items)
        self._export_items = []
        self._export_names = []
        self._staged = []
        self._finish(Phase.APPLYING, result.count if result else 0, total)

    def _finish(self, run: Phase, success_count: int, total: int):
        self._queue = []
        self._set_state(IDLE_STATE)
        self._run_lock.release()
        if self._on_batch_complete:
            self._on_batch_complete(run.value, success_count, total)

    def _ingest_settings(self) -> Dict[str, Any]:
        return {
            'max_size': self._config.max_size,
            'alpha_threshold': self._config.alpha_threshold,
            'thumbnail_size': self._config.thumbnail_size,
        }

    # =========================================================================
    # STATE
    # =========================================================================

    def _set_state(self, state: ProcessingState):
        self._state = state
        if self._on_progress:
            self._on_progress(state)

    def _emit_item(self, item: BatchItem):
        if self._on_item_updated:
            self._on_item_updated(item)

    def _update_item(self, index: int, item: BatchItem):
        self._items[index] = item
        self._emit_item(item)

    def _index_of(self, item_id: Optional[str]) -> int:
        for i, item in enumerate(self._items):
            if item.id == item_id:
                return i
        return -1

    def accepts(self, name: str) -> bool:
        """Check whether a file name has an accepted image extension."""
        return PurePath(name).suffix.lower() in self._config.accepted_extensions

    @property
    def state(self) -> ProcessingState:
        return self._state

    @property
    def is_processing(self) -> bool:
        """Check if a run is currently active."""
        return self._run_lock.locked()

    @property
    def items(self) -> Tuple[BatchItem, ...]:
        return tuple(self._items)

    @property
    def ready_items(self) -> List[BatchItem]:
        return [item for item in self._items if item.is_ready]

    def get_item(self, item_id: str) -> Optional[BatchItem]:
        index = self._index_of(item_id)
        return self._items[index] if index >= 0 else None

    def remove_item(self, item_id: str) -> bool:
        """Remove an item from the working set. Returns False if it was not found."""
        index = self._index_of(item_id)
        if index < 0:
            return False

        del self._items[index]
        if self._selected_item_id == item_id:
            self._selected_item_id = self._items[0].id if self._items else None
        return True

    def clear_all(self):
        """Remove every item and reset adjustments and filter."""
        self._items = []
        self._selected_item_id = None
        self.reset()

    # =========================================================================
    # ADJUSTMENTS / FILTER
    # =========================================================================

    @property
    def adjustments(self) -> AdjustmentValues:
        return self._adjustments

    def set_adjustment(self, key: str, value: float):
        self._adjustments = self._adjustments.with_value(key, value)

    @property
    def active_filter(self) -> FilterSpec:
        return self._filter

    def set_filter(self, filter_type: Union[FilterType, str, None]):
        """Select a filter; selecting the active filter again turns it off."""
        kind = parse_filter_type(filter_type)
        if kind is self._filter.kind:
            kind = FilterType.NONE
        self._filter = replace(self._filter, kind=kind)

    def set_blur_radius(self, radius: float):
        self._filter = replace(self._filter, blur_radius=radius)

    def reset(self):
        """Restore neutral adjustments, no filter and the default blur radius."""
        self._adjustments = DEFAULT_ADJUSTMENTS
        self._filter = FilterSpec(blur_radius=self._config.default_blur_radius)

    # =========================================================================
    # SELECTION
    # =========================================================================

    @property
    def selected_item_id(self) -> Optional[str]:
        return self._selected_item_id

    def set_selected_item(self, item_id: Optional[str]):
        if item_id is None or self._index_of(item_id) >= 0:
            self._selected_item_id = item_id

    def get_selected_item(self) -> Optional[BatchItem]:
        return self.get_item(self._selected_item_id) if self._selected_item_id else None

    def get_selected_index(self) -> int:
        return self._index_of(self._selected_item_id)

    def navigate_selection(self, direction: str):
        """Move the selection to the 'prev' or 'next' item, wrapping around."""
        current = self.get_selected_index()
        count = len(self._items)
        if current == -1 or count <= 1:
            return

        if direction == 'prev':
            new_index = count - 1 if current == 0 else current - 1
        elif direction == 'next':
            new_index = 0 if current == count - 1 else current + 1
        else:
            raise ValueError(f"Unknown direction: {direction}. Use 'prev' or 'next'")

        self._selected_item_id = self._items[new_index].id

    def get_display_buffer(self) -> Optional[PixelBuffer]:
        """Render the selected item with the current adjustments and filter."""
        item = self.get_selected_item()
        if item is None or not item.is_ready:
            return None
        return render_sticker(item.canonical, self._adjustments, self._filter)
