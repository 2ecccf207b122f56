import importlib.util
import sys

import numpy as np
import pytest

import filters
from filters import (
    FILTER_LABELS,
    NO_FILTER,
    FilterSpec,
    FilterType,
    apply_filter,
    apply_gaussian_blur,
    edge_gray,
    gaussian_kernel,
    parse_filter_type,
)
from processing import PixelBuffer

UNIFORM = (100, 150, 200, 255)


@pytest.fixture
def uniform():
    return PixelBuffer.filled(5, 4, UNIFORM)


def _split(left_value, right_value, width=6, height=3):
    arr = np.zeros((height, width, 4), dtype=np.uint8)
    arr[:, :width // 2, :3] = left_value
    arr[:, width // 2:, :3] = right_value
    arr[:, :, 3] = 255
    return PixelBuffer(arr)


@pytest.mark.parametrize("kind", [FilterType.SHARPEN, FilterType.EDGE_ENHANCE, FilterType.DETAIL])
def test_normalised_filters_keep_uniform_image(uniform, kind):
    assert apply_filter(uniform, kind) == uniform


def test_emboss_offsets_to_mid_gray(uniform):
    out = apply_filter(uniform, FilterType.EMBOSS)

    assert tuple(out.pixels[2, 2]) == (228, 255, 255, 255)


def test_contour_of_uniform_image_is_white(uniform):
    out = apply_filter(uniform, "contour")

    assert np.all(out.pixels[:, :, :3] == 255)
    assert np.all(out.pixels[:, :, 3] == 255)


def test_find_edges_uniform_is_black(uniform):
    out = apply_filter(uniform, FilterType.FIND_EDGES)

    assert np.all(out.pixels[:, :, :3] == 0)


def test_find_edges_marks_rising_edge():
    out = apply_filter(_split(0, 255), FilterType.FIND_EDGES)

    row = list(out.pixels[1, :, 0])
    assert row == [0, 0, 255, 255, 0, 0]
    # written as gray
    assert np.array_equal(out.pixels[:, :, 0], out.pixels[:, :, 2])


def test_find_edges_ignores_falling_edge():
    out = apply_filter(_split(255, 0), FilterType.FIND_EDGES)

    assert np.all(out.pixels[:, :, :3] == 0)


def test_find_edges_keeps_alpha():
    arr = np.zeros((3, 3, 4), dtype=np.uint8)
    arr[:, :, 3] = 42

    out = apply_filter(PixelBuffer(arr), FilterType.FIND_EDGES)

    assert np.all(out.pixels[:, :, 3] == 42)


def test_blur_radius_zero_returns_copy():
    buf = _split(0, 255)

    out = apply_gaussian_blur(buf, 0)

    assert out == buf
    assert out is not buf


def test_blur_uniform_image_unchanged(uniform):
    assert apply_filter(uniform, FilterType.BLUR, blur_radius=4.5) == uniform


def test_blur_softens_edge():
    out = apply_filter(_split(0, 255), FilterType.BLUR, blur_radius=2)

    row = out.pixels[1, :, 0].astype(int)
    assert 0 < row[2] < row[3] < 255
    assert list(row) == sorted(row)


def test_gaussian_kernel_size():
    assert len(gaussian_kernel(3)) == 49
    assert len(gaussian_kernel(0.5)) == 9


@pytest.mark.parametrize("kind", [None, "none", "posterize"])
def test_no_filter_returns_copy(uniform, kind):
    out = apply_filter(uniform, kind)

    assert out == uniform
    assert out is not uniform


def test_parse_filter_type():
    assert parse_filter_type("EMBOSS") is FilterType.EMBOSS
    assert parse_filter_type("find_edges") is FilterType.FIND_EDGES
    assert parse_filter_type(FilterType.BLUR) is FilterType.BLUR
    assert parse_filter_type("unknown") is FilterType.NONE
    assert parse_filter_type(None) is FilterType.NONE


def test_filter_spec():
    spec = FilterSpec("blur", blur_radius=15)

    assert spec.kind is FilterType.BLUR
    assert spec.blur_radius == 10.0
    assert spec.is_active
    assert not NO_FILTER.is_active
    assert NO_FILTER.blur_radius == 3.0
    assert FilterType.NONE not in FILTER_LABELS


def test_find_edges_gray_rounds_ties_to_even():
    magnitude = np.array([0.5, 1.5, 2.5, 127.5, 254.5, 255.5, 300.0])

    assert list(edge_gray(magnitude)) == [0, 2, 2, 128, 254, 255, 255]


def test_module_constants_build_on_fresh_import(monkeypatch):
    spec = importlib.util.spec_from_file_location("filters_fresh", filters.__file__)
    module = importlib.util.module_from_spec(spec)
    monkeypatch.setitem(sys.modules, "filters_fresh", module)

    spec.loader.exec_module(module)

    assert module.NO_FILTER.kind is module.FilterType.NONE
    assert module.NO_FILTER.blur_radius == 3.0
