"""
Command-Line Interface for Voxel Patterns

Usage:
    voxpat castle.vox
    voxpat castle.vox -o patterns/castle -p blocks.json
    voxpat scene.vox --all-models
    voxpat scene.vox --models 1,3
    voxpat --inspect castle_0.cbsbp

"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional
import time

from . import __version__
from .encoder import bit_width
from .exporters import PatternCodec
from .generator import PatternGenerator


def parse_model_indices(value: str) -> List[int]:
    """Parse a comma separated list of 1-based model indices."""
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid model index list: {value!r}")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="voxpat",
        description="Convert MagicaVoxel models into Chisels & Bits patterns",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voxpat castle.vox
      Write pattern.cbsbp (or pattern_0.cbsbp, pattern_1.cbsbp, ...)

  voxpat castle.vox -o patterns/castle -p wool.json
      Use wool.json as material palette, write into patterns/

  voxpat scene.vox --models 1,3
      Export the first and third model (pattern_0*, pattern_1*)

  voxpat --inspect pattern_0.cbsbp
      Print the palette and block counts of a pattern

Material palette:
  A JSON object mapping hex colors to block ids, e.g.
  {"#f9fffe": "minecraft:white_wool", "#1d1d21": "minecraft:black_wool"}
        """
    )

    # Input
    parser.add_argument(
        "model",
        nargs="?",
        help="Path to MagicaVoxel file (typically .vox)"
    )

    # Output
    parser.add_argument(
        "-o", "--output",
        default="pattern",
        help="File name prefix for the resulting pattern(s) (default: pattern)"
    )

    parser.add_argument(
        "-p", "--palette",
        default="blocks.json",
        help="Material palette file to use (default: blocks.json)"
    )

    # Model selection
    selection = parser.add_mutually_exclusive_group()
    selection.add_argument(
        "-a", "--all-models",
        action="store_true",
        help="Create pattern(s) for each model in the file"
    )

    selection.add_argument(
        "-m", "--models",
        nargs="+",
        type=parse_model_indices,
        help="Create pattern(s) for specific models in the file (1-based, e.g. 1,3)"
    )

    # Inspection
    parser.add_argument(
        "--inspect",
        metavar="PATTERN",
        help="Decode a pattern file and print its contents"
    )

    # Misc
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with statistics"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print conversion statistics"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def print_stats(stats: dict):
    """Print the statistics of a build."""
    print("\nConversion Statistics:")
    for model in stats["models"]:
        print(f"  {model['prefix']}:")
        print(f"    Size: {model['size']}")
        print(f"    Voxels: {model['voxel_count']}")
        print(f"    Palette entries: {model['palette_entries']} ({model['bit_width']} bit)")
        for slot, material in model["slot_materials"].items():
            print(f"      slot {slot} -> {material}")
        print(f"    Chunk grid: {model['chunk_grid']}")
        print(f"    Patterns: {model['patterns']} (skipped {model['skipped_chunks']} empty)")
        print(f"    Air positions: {model['air_positions']}")
    print(f"  Total patterns: {stats['pattern_count']}")


def process_model(args) -> int:
    """Convert a model file into patterns."""
    if not args.model:
        print("Error: No model file specified", file=sys.stderr)
        return 1

    start_time = time.time()

    try:
        generator = PatternGenerator()

        if args.verbose:
            print(f"Loading palette: {args.palette}")
        generator.load_palette(args.palette)

        if args.verbose:
            print(f"Loading model: {args.model}")
        generator.load_model(args.model)
        if args.verbose:
            print(f"Models in file: {generator.model_count}")

        indices = None
        if args.models:
            indices = [index for group in args.models for index in group]

        written = generator.export(args.output, all_models=args.all_models, indices=indices)

        if args.verbose:
            for path in written:
                print(f"Exported: {path}")

        if args.stats or args.verbose:
            print_stats(generator.get_stats())

        elapsed = time.time() - start_time
        if args.verbose:
            print(f"\nCompleted in {elapsed:.2f}s")

        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def process_inspect(args) -> int:
    """Print the contents of a pattern file."""
    pattern_path = Path(args.inspect)
    if not pattern_path.is_file():
        print(f"Error: Pattern file not found: {pattern_path}", file=sys.stderr)
        return 1

    try:
        indices, materials, counts = PatternCodec().decode_chunk(pattern_path.read_bytes())
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    print(f"Pattern: {pattern_path}")
    print(f"  Palette entries: {len(materials)} ({bit_width(len(materials))} bit)")
    print(f"  Primary state: {materials[0]}")
    for material, count in zip(materials, counts):
        print(f"    {material}: {count}")
    print(f"  Positions: {len(indices)}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.inspect:
        return process_inspect(args)
    else:
        return process_model(args)


if __name__ == "__main__":
    sys.exit(main())
