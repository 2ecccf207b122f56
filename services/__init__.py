"""
STICKER PRESS - Services Layer

Batch ingest/export state machine and its Qt host.
"""

from services.batch_processor import (
    BatchItem,
    BatchProcessor,
    ItemStatus,
    Phase,
    ProcessingState,
)
from services.processing_service import ProcessingService

__all__ = [
    'BatchItem',
    'BatchProcessor',
    'ItemStatus',
    'Phase',
    'ProcessingState',
    'ProcessingService',
]
