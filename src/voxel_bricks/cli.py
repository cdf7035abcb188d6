"""
Command-Line Interface for Voxel Bricks

Usage:
    voxbricks model.vox model.brs
    voxbricks model.vox model.brs --mode plate --simplify
    voxbricks model.vox model.brs --rampify --width 2 --height 3

"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional
import time

from .errors import ConversionError
from .generator import BrickGenerator
from .units import PieceMode

# Longest merged piece, in pieces
DEFAULT_MAX_BRICK_LENGTH = 64


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="voxbricks",
        description="Voxel Bricks - Convert MagicaVoxel models to Brickadia saves",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voxbricks castle.vox castle.brs
      One brick per voxel

  voxbricks castle.vox castle.brs --mode plate --simplify
      Plates, merged into larger pieces

  voxbricks hill.vox hill.brs --rampify
      Merge and replace staircases with ramps

  voxbricks tiny.vox tiny.brs --mode microbrick --width 2 --height 2
      Two voxels per microbrick along every axis

Piece Modes:
  brick       - 1x1 stud, full brick height (default)
  plate       - 1x1 stud, one third of a brick high
  microbrick  - smallest cube piece (no ramps)
        """
    )

    parser.add_argument(
        "input",
        help="Input MagicaVoxel model (.vox)"
    )

    parser.add_argument(
        "output",
        help="Output Brickadia save (.brs)"
    )

    parser.add_argument(
        "-m", "--mode",
        choices=[mode.label for mode in PieceMode],
        default=PieceMode.BRICK.label,
        help="Piece mode (default: brick)"
    )

    parser.add_argument(
        "--width",
        type=int,
        default=1,
        help="Voxels per piece along x (default: 1)"
    )

    parser.add_argument(
        "--depth",
        type=int,
        default=None,
        help="Voxels per piece along y (default: same as --width)"
    )

    parser.add_argument(
        "--height",
        type=int,
        default=1,
        help="Voxels per piece along z (default: 1)"
    )

    parser.add_argument(
        "-s", "--simplify",
        action="store_true",
        help="Merge voxels into larger pieces"
    )

    parser.add_argument(
        "-r", "--rampify",
        action="store_true",
        help="Replace staircases with ramps (implies --simplify)"
    )

    parser.add_argument(
        "--max-brick-length",
        type=int,
        default=DEFAULT_MAX_BRICK_LENGTH,
        help=f"Longest merged piece, in pieces (default: {DEFAULT_MAX_BRICK_LENGTH}, "
             "0 = unlimited)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with progress"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print conversion statistics"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0"
    )

    return parser


def print_stats(stats: dict):
    print("\nConversion Statistics:")
    print(f"  Voxels: {stats['voxel_count']}")
    print(f"  Grid size: {stats['grid_size']}")
    print(f"  Bricks: {stats['brick_count']}")
    for asset, count in stats["bricks_per_asset"].items():
        print(f"    {asset}: {count}")
    print(f"  Colors: {stats['color_count']}")
    print(f"  Reduction: {stats['reduction_percent']:.1f}%")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    input_path = Path(args.input)
    output_path = Path(args.output)

    if input_path.suffix.lower() != ".vox":
        print(f"Error: Input must be a .vox file: {input_path}", file=sys.stderr)
        return 1
    if output_path.suffix.lower() != ".brs":
        print(f"Error: Output must be a .brs file: {output_path}", file=sys.stderr)
        return 1
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    start_time = time.time()

    try:
        generator = BrickGenerator(
            mode=args.mode,
            width_scale=args.width,
            depth_scale=args.depth,
            height_scale=args.height,
            simplify=args.simplify,
            rampify=args.rampify,
            max_extent=args.max_brick_length or None
        )

        if args.verbose:
            print(f"Loading: {input_path}")

        generator.load_vox(input_path).convert()

        if args.stats or args.verbose:
            print_stats(generator.get_stats())

        generator.export_brs(output_path)
        if args.verbose:
            print(f"Exported: {output_path}")

    except (ConversionError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    elapsed = time.time() - start_time
    print(f"Wrote {generator.brick_count} bricks to {output_path} in {elapsed:.2f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
