"""Command-line interface for pixel-art-converter."""

import argparse
import sys
from pathlib import Path

from PIL import Image

from .config import (
    DEFAULT_COLOR_COUNT,
    DEFAULT_MAX_SIZE,
    MAX_COLOR_COUNT,
    MAX_MAX_SIZE,
    MIN_COLOR_COUNT,
    MIN_MAX_SIZE,
    ConvertSettings,
)
from .core import convert_image


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert photos into gridded pixel art with a reduced palette"
    )
    parser.add_argument("inputs", nargs="+", help="Input image path(s)")
    parser.add_argument("-o", "--output", help="Output image path (default: pixel_<input>.png)")
    parser.add_argument(
        "-c",
        "--colors",
        help=f"Palette size, {MIN_COLOR_COUNT}-{MAX_COLOR_COUNT} (default: {DEFAULT_COLOR_COUNT})",
    )
    parser.add_argument(
        "-r",
        "--resolution",
        help=f"Grid cells along the longer side, {MIN_MAX_SIZE}-{MAX_MAX_SIZE} (default: {DEFAULT_MAX_SIZE})",
    )
    parser.add_argument("--cells", help="Also save the 1:1 image, one pixel per cell")
    parser.add_argument("--svg", help="Also save an SVG rendering")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress output")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if len(args.inputs) > 1 and (args.output or args.cells or args.svg):
        parser.error("-o/--output, --cells and --svg need a single input")

    settings = ConvertSettings.from_user(args.colors, args.resolution)

    failed = 0
    for input_path in args.inputs:
        try:
            convert_image(
                input_path,
                args.output,
                settings=settings,
                verbose=not args.quiet,
                cells_output=args.cells,
                svg_output=args.svg,
            )
        except (ValueError, OSError, Image.DecompressionBombError) as exc:
            print(f"[ERROR] {Path(input_path).name}: {exc}", file=sys.stderr)
            failed += 1

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
