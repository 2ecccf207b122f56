#!/usr/bin/env python3
"""
STICKER PRESS - Command Line

Crops transparent borders, resizes to sticker size, applies adjustments and
an optional filter. One input is written as a single PNG; several inputs are
bundled into a date-stamped ZIP archive.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from archive import ExportError
from config import ADJUSTMENT_MAX, ADJUSTMENT_MIN, BLUR_RADIUS_MAX, DEFAULT_CONFIG, ProcessingConfig
from filters import FilterType
from logger import get_logger, setup_logger
from services.batch_processor import BatchProcessor, ItemStatus
from state import EditorState

IMAGE_EXTENSIONS = set(DEFAULT_CONFIG.accepted_extensions)

log = get_logger("main")


def expand_paths(paths: List[str], recursive: bool = False) -> List[str]:
    """Expand paths to list of image files.

    - Regular files are included if they have a supported extension
    - Directories are expanded to their image files (recursively if recursive=True)
    """
    result = []
    for path in paths:
        p = Path(path)
        if p.is_file():
            if p.suffix.lower() in IMAGE_EXTENSIONS:
                result.append(str(p))
        elif p.is_dir():
            pattern = '**/*' if recursive else '*'
            for child in sorted(p.glob(pattern)):
                if child.is_file() and child.suffix.lower() in IMAGE_EXTENSIONS:
                    result.append(str(child))
    return result


def _adjustment_value(text: str) -> float:
    value = float(text)
    if not ADJUSTMENT_MIN <= value <= ADJUSTMENT_MAX:
        raise argparse.ArgumentTypeError(f"must be between {ADJUSTMENT_MIN} and {ADJUSTMENT_MAX}")
    return value


def _blur_radius(text: str) -> float:
    value = float(text)
    if not 0 <= value <= BLUR_RADIUS_MAX:
        raise argparse.ArgumentTypeError(f"must be between 0 and {BLUR_RADIUS_MAX}")
    return value


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Sticker Press - batch sticker processing')
    parser.add_argument('paths', nargs='+', help='Image files or directories to process')
    parser.add_argument('-r', '--recursive', action='store_true',
                        help='Recursively load images from directories')
    parser.add_argument('-o', '--output', default='.',
                        help='Output directory (default: current directory)')
    for name in ('brightness', 'contrast', 'saturation', 'sharpness'):
        parser.add_argument(f'--{name}', type=_adjustment_value, default=1.0,
                            help=f'{name.capitalize()} 0.0-2.0 (default 1.0)')
    parser.add_argument('--filter', choices=[f.value for f in FilterType], default=FilterType.NONE.value,
                        help='Filter to apply after adjustments')
    parser.add_argument('--blur-radius', type=_blur_radius, default=DEFAULT_CONFIG.default_blur_radius,
                        help='Radius for the blur filter, 0-10 (default 3)')
    parser.add_argument('--max-size', type=_positive_int, default=DEFAULT_CONFIG.max_size,
                        help='Longest side of the output in pixels (default 512)')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')
    return parser


def run_single(path: str, args: argparse.Namespace, config: ProcessingConfig, output_dir: Path) -> int:
    """Process one file through the editor session and write a PNG."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        log.error("Could not read %s: %s", path, e)
        return 1

    editor = EditorState(config)
    if not editor.load_file(Path(path).name, data):
        log.error("%s: %s", path, editor.error)
        return 1

    for key in ('brightness', 'contrast', 'saturation', 'sharpness'):
        editor.set_adjustment(key, getattr(args, key))
    editor.blur_radius = args.blur_radius
    if args.filter != FilterType.NONE.value:
        editor.set_filter(args.filter)

    filename, data = editor.export_png()
    out_path = output_dir / filename
    out_path.write_bytes(data)
    log.info("Wrote %s", out_path)
    return 0


def run_batch(paths: List[str], args: argparse.Namespace, config: ProcessingConfig, output_dir: Path) -> int:
    """Process several files and write one ZIP archive."""
    def report(state):
        log.debug("%s %d/%d", state.phase.value, state.current, state.total)

    processor = BatchProcessor(config=config, on_progress=report)
    processor.ingest_all((Path(p).name, Path(p).read_bytes) for p in paths)

    for item in processor.items:
        if item.status is ItemStatus.ERROR:
            log.warning("Skipped %s: %s", item.name, item.error)

    for key in ('brightness', 'contrast', 'saturation', 'sharpness'):
        processor.set_adjustment(key, getattr(args, key))
    processor.set_blur_radius(args.blur_radius)
    if args.filter != FilterType.NONE.value:
        processor.set_filter(args.filter)

    try:
        result = processor.export_all()
    except ExportError as e:
        log.error("%s", e)
        return 1

    if result is None:
        log.error("No images could be processed")
        return 1

    out_path = output_dir / result.filename
    out_path.write_bytes(result.data)
    log.info("Wrote %s (%d sticker(s))", out_path, result.count)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(getattr(logging, args.log_level))

    config = ProcessingConfig(max_size=args.max_size, default_blur_radius=args.blur_radius)
    files = expand_paths(args.paths, recursive=args.recursive)
    if not files:
        log.error("No PNG images found")
        return 1

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    if len(files) == 1:
        return run_single(files[0], args, config, output_dir)
    return run_batch(files, args, config, output_dir)


if __name__ == "__main__":
    sys.exit(main())
