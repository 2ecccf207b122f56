"""Pytest configuration.

The editor state and processing service are QObjects, and the service drives
its steps through QTimer. A single QApplication is created for the whole
session before any test module imports Qt classes.
"""

from __future__ import annotations

import os
from typing import Any

import numpy as np
import pytest

from helpers import rgba_png, solid_rgba

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""

    # Headless CI has no display server.
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

    from PySide6.QtWidgets import QApplication

    global _APP

    app = QApplication.instance()
    if app is None:
        # Keep a strong ref so it isn't GC'd mid-session.
        _APP = QApplication([])
    else:
        _APP = app


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    """Attempt a clean Qt shutdown so pending timers do not outlive the session."""

    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        return

    app.quit()
    app.processEvents()


@pytest.fixture
def sticker_png() -> bytes:
    """40x30 transparent canvas with an opaque 10x6 red block at (5, 4)."""
    arr = np.zeros((30, 40, 4), dtype=np.uint8)
    arr[4:10, 5:15] = (255, 0, 0, 255)
    return rgba_png(arr)


@pytest.fixture
def make_png():
    """Factory: make_png(width, height, rgba) -> PNG bytes of a solid image."""

    def _make(width: int, height: int, rgba=(255, 0, 0, 255)) -> bytes:
        return rgba_png(solid_rgba(width, height, rgba))

    return _make
