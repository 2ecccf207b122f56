import io
import zipfile

import pytest

from main import build_parser, expand_paths, main
from processing import decode_image


def test_expand_paths(tmp_path, make_png):
    (tmp_path / "a.png").write_bytes(make_png(2, 2))
    (tmp_path / "b.jpg").write_bytes(b"")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "c.PNG").write_bytes(make_png(2, 2))

    assert expand_paths([str(tmp_path)]) == [str(tmp_path / "a.png")]
    assert expand_paths([str(tmp_path)], recursive=True) == [
        str(tmp_path / "a.png"), str(sub / "c.PNG"),
    ]


def test_parser_rejects_out_of_range_values():
    parser = build_parser()

    with pytest.raises(SystemExit):
        parser.parse_args(["x.png", "--brightness", "2.5"])
    with pytest.raises(SystemExit):
        parser.parse_args(["x.png", "--max-size", "0"])
    with pytest.raises(SystemExit):
        parser.parse_args(["x.png", "--filter", "posterize"])


def test_single_file_writes_png(tmp_path, sticker_png):
    src = tmp_path / "cat.png"
    src.write_bytes(sticker_png)
    out_dir = tmp_path / "out"

    assert main([str(src), "-o", str(out_dir), "--brightness", "0.5", "--log-level", "ERROR"]) == 0

    out = decode_image((out_dir / "cat_sticker.png").read_bytes())
    assert (out.width, out.height) == (10, 6)
    assert tuple(out.pixels[0, 0]) == (128, 0, 0, 255)


def test_batch_writes_zip(tmp_path, make_png):
    for name in ("a.png", "b.png"):
        (tmp_path / name).write_bytes(make_png(30, 20))
    out_dir = tmp_path / "out"

    assert main([str(tmp_path), "-o", str(out_dir), "--max-size", "15",
                 "--filter", "find_edges", "--log-level", "ERROR"]) == 0

    archives = list(out_dir.glob("stickers_*.zip"))
    assert len(archives) == 1
    with zipfile.ZipFile(io.BytesIO(archives[0].read_bytes())) as zf:
        assert zf.namelist() == ["a_sticker.png", "b_sticker.png"]
        out = decode_image(zf.read("a_sticker.png"))
    assert (out.width, out.height) == (15, 10)


def test_no_images_found(tmp_path):
    assert main([str(tmp_path), "--log-level", "ERROR"]) == 1


def test_single_corrupt_file(tmp_path):
    src = tmp_path / "bad.png"
    src.write_bytes(b"nope")

    assert main([str(src), "-o", str(tmp_path), "--log-level", "ERROR"]) == 1
