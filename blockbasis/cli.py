"""Command line front end.

Usage:
    blockbasis compress <compressor> <quality> <in.png> <out>
    blockbasis decompress <compressor> <in> <out.png>
    blockbasis evaluate <compressor> <quality> <in.png>
    blockbasis list
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np
from PIL import Image

from blockbasis.api import compress, decompress, evaluate, get_compression_ratio
from blockbasis.config import load_compressors
from blockbasis.errors import BlockbasisError

logger = logging.getLogger("blockbasis")


def _quality(value: str) -> float:
    try:
        quality = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid quality: {value}") from None
    if not 0.0 <= quality <= 1.0:
        raise argparse.ArgumentTypeError(f"quality must be in [0, 1], got {value}")
    return quality


def _load_image(path: Path) -> np.ndarray:
    with Image.open(path) as image:
        return np.array(image.convert("RGB"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blockbasis",
        description="Lossy block-basis image compression",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to blockbasis.toml (auto-detected if omitted)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("compress", help="Compress an image file")
    p.add_argument("compressor")
    p.add_argument("quality", type=_quality, help="Fraction of the basis to keep (0-1)")
    p.add_argument("input", type=Path)
    p.add_argument("output", type=Path)

    p = sub.add_parser("decompress", help="Decompress to a PNG file")
    p.add_argument("compressor")
    p.add_argument("input", type=Path)
    p.add_argument("output", type=Path)

    p = sub.add_parser("evaluate", help="Report size and PSNR for one setting")
    p.add_argument("compressor")
    p.add_argument("quality", type=_quality)
    p.add_argument("input", type=Path)

    sub.add_parser("list", help="List compressor identities")
    return parser


def run(args: argparse.Namespace) -> None:
    if args.command == "compress":
        image = _load_image(args.input)
        data = compress(image, args.quality, args.compressor, args.config)
        args.output.write_bytes(data)
        logger.info(
            "Wrote %s (%d bytes, ratio %.2f)",
            args.output,
            len(data),
            get_compression_ratio(image, data),
        )
    elif args.command == "decompress":
        image = decompress(args.input.read_bytes(), args.compressor, args.config)
        Image.fromarray(image).save(args.output, format="PNG")
        logger.info("Wrote %s", args.output)
    elif args.command == "evaluate":
        report = evaluate(_load_image(args.input), args.quality, args.compressor, args.config)
        for key, value in report.items():
            print(f"{key}: {value}")
    elif args.command == "list":
        for name, config in sorted(load_compressors(args.config).items()):
            print(
                f"{name:16} block_size={config.block_size} basis={config.basis} "
                f"quantizer={config.quantizer}"
            )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        run(args)
    except (BlockbasisError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
