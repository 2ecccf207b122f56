import numpy as np

from adjustments import AdjustmentValues
from filters import FilterType
from processing import decode_image
from state import EditorState


def test_load_file_builds_canonical(qtbot, sticker_png):
    editor = EditorState()

    with qtbot.waitSignal(editor.displayChanged) as blocker:
        assert editor.load_file("cat.png", sticker_png)

    assert blocker.args[0] == editor.canonical
    assert (editor.canonical.width, editor.canonical.height) == (10, 6)
    assert editor.display == editor.canonical
    assert editor.file_name == "cat.png"
    assert editor.error is None
    assert not editor.is_processing


def test_load_failure_clears_session(qtbot, sticker_png):
    editor = EditorState()
    editor.load_file("cat.png", sticker_png)

    with qtbot.waitSignal(editor.errorOccurred):
        assert not editor.load_file("bad.png", b"garbage")

    assert editor.canonical is None
    assert editor.display is None
    assert editor.file_name is None
    assert editor.error
    assert editor.export_png() is None


def test_adjustments_rerender_from_canonical(qtbot, sticker_png):
    editor = EditorState()
    editor.load_file("cat.png", sticker_png)
    canonical = editor.canonical

    editor.set_adjustment('brightness', 0.5)
    assert tuple(editor.display.pixels[0, 0]) == (128, 0, 0, 255)

    editor.set_adjustment('brightness', 1.0)
    assert editor.display == canonical
    assert editor.canonical is canonical


def test_adjustments_ignored_without_image(qtbot):
    editor = EditorState()

    with qtbot.assertNotEmitted(editor.adjustmentsChanged):
        editor.adjustments = AdjustmentValues(brightness=0.2)

    assert editor.adjustments.is_neutral()


def test_filter_toggle_and_reset(qtbot, sticker_png):
    editor = EditorState()
    editor.load_file("cat.png", sticker_png)

    with qtbot.waitSignal(editor.filterChanged):
        editor.set_filter("contour")
    assert editor.active_filter.kind is FilterType.CONTOUR
    assert editor.display != editor.canonical

    editor.set_filter(FilterType.CONTOUR)
    assert not editor.active_filter.is_active
    assert editor.display == editor.canonical

    editor.set_adjustment('saturation', 0.0)
    editor.set_filter("emboss")
    editor.reset()
    assert editor.adjustments.is_neutral()
    assert not editor.active_filter.is_active
    assert editor.display == editor.canonical


def test_blur_radius_change(qtbot, sticker_png):
    editor = EditorState()
    editor.load_file("cat.png", sticker_png)
    editor.set_filter("blur")

    with qtbot.waitSignal(editor.displayChanged):
        editor.blur_radius = 1

    assert editor.active_filter.blur_radius == 1.0
    assert editor.active_filter.kind is FilterType.BLUR


def test_show_original(qtbot, sticker_png):
    editor = EditorState()
    editor.load_file("cat.png", sticker_png)
    editor.set_adjustment('brightness', 0.1)

    with qtbot.waitSignal(editor.showOriginalChanged) as blocker:
        editor.toggle_original()

    assert blocker.args == [True]
    # the uncropped 40x30 source, not the 10x6 sticker
    assert editor.current_buffer is editor.source
    assert (editor.current_buffer.width, editor.current_buffer.height) == (40, 30)
    assert tuple(editor.current_buffer.pixels[0, 0]) == (0, 0, 0, 0)
    editor.toggle_original()
    assert editor.current_buffer is editor.display


def test_export_png(qtbot, sticker_png):
    editor = EditorState()
    editor.load_file("my.cat.png", sticker_png)
    editor.set_adjustment('brightness', 0.5)

    filename, data = editor.export_png()

    assert filename == "my.cat_sticker.png"
    out = decode_image(data)
    assert out == editor.display
    assert np.all(out.pixels[:, :, 3] == 255)


def test_clear(qtbot, sticker_png):
    editor = EditorState()
    editor.load_file("cat.png", sticker_png)

    with qtbot.waitSignal(editor.displayChanged) as blocker:
        editor.clear()

    assert blocker.args == [None]
    assert editor.canonical is None
    assert editor.source is None
