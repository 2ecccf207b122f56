"""
STICKER PRESS - Processing Service

Qt-compatible host for the batch processor.
Runs one processing step per event loop turn and reports progress via signals.
"""

from pathlib import Path
from typing import Iterable, Optional, Tuple

from PySide6.QtCore import QObject, QTimer, Signal

from archive import ExportError
from config import ProcessingConfig
from services.batch_processor import BatchProcessor, Source


class ProcessingService(QObject):
    """
    Main service coordinating batch ingest and export.

    Provides a simple interface for batch operations with Qt signal integration.
    Each item is processed in its own zero-timeout timer callback, so the UI
    repaints between items while the pixel work itself stays on the GUI thread.
    """

    # Public signals for UI integration
    progressUpdated = Signal(object)          # ProcessingState
    itemUpdated = Signal(object)              # BatchItem
    batchCompleted = Signal(str, int, int)    # run ('loading'/'applying'), success_count, total
    exportReady = Signal(object)              # ExportResult
    errorOccurred = Signal(str)               # error message

    def __init__(self, config: Optional[ProcessingConfig] = None, parent: QObject = None):
        super().__init__(parent)
        self._processor = BatchProcessor(
            config=config,
            on_progress=self.progressUpdated.emit,
            on_item_updated=self.itemUpdated.emit,
            on_batch_complete=self.batchCompleted.emit,
            on_export_ready=self.exportReady.emit,
        )

    @property
    def processor(self) -> BatchProcessor:
        """The underlying state machine (items, adjustments, selection)."""
        return self._processor

    @property
    def is_running(self) -> bool:
        """Check if a batch operation is currently running."""
        return self._processor.is_processing

    def load_files(self, sources: Iterable[Tuple[str, Source]]) -> bool:
        """
        Start loading source images.

        Args:
            sources: (filename, bytes or a callable returning them) pairs

        Returns:
            True if loading started, False if rejected (busy or nothing to load)
        """
        if not self._processor.begin_ingest(sources):
            return False
        self._schedule_step()
        return True

    def load_paths(self, paths: Iterable[str]) -> bool:
        """
        Start loading image files from disk.

        Each file is read during its own step; a file that cannot be read
        becomes an ERROR item like any other load failure.
        """
        return self.load_files((Path(path).name, Path(path).read_bytes) for path in paths)

    def process_and_export(self) -> bool:
        """
        Apply the current adjustments and filter to every ready item and build
        the archive. The result arrives via exportReady.

        Returns:
            True if the export started
        """
        if not self._processor.begin_export():
            return False
        self._schedule_step()
        return True

    def _schedule_step(self):
        QTimer.singleShot(0, self._run_step)

    def _run_step(self):
        try:
            more = self._processor.step()
        except ExportError as e:
            self.errorOccurred.emit(str(e))
            return

        if more:
            self._schedule_step()
