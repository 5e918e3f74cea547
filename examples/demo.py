#!/usr/bin/env python3
"""
Voxel Patterns Demo Script

This script demonstrates the full conversion pipeline by:
1. Creating synthetic test models (no .vox files needed)
2. Matching their colors against examples/blocks.json
3. Encoding every non-empty chunk into a pattern
4. Decoding the written patterns again and printing their contents

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import numpy as np
import time

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_patterns import PatternGenerator, VoxelModel
from voxel_patterns.exporters import PatternCodec


def create_palette() -> np.ndarray:
    """
    Create a small RGBA palette.

    Returns:
        Array of shape (256, 4), slots 0-3 set
    """
    palette = np.full((256, 4), 255, dtype=np.uint8)
    palette[0, :3] = [176, 46, 38]     # Brick red
    palette[1, :3] = [157, 157, 151]   # Stone gray
    palette[2, :3] = [94, 124, 22]     # Grass green
    palette[3, :3] = [101, 67, 33]     # Wood brown
    return palette


def create_test_model_tower(height: int = 40) -> VoxelModel:
    """
    Create a hollow round tower with a wooden floor every 8 levels.

    Spans several chunks vertically.
    """
    size = 20
    center = (size - 1) / 2
    voxels = []

    for z in range(height):
        for x in range(size):
            for y in range(size):
                dist = np.hypot(x - center, y - center)
                if 8 <= dist < 10:
                    slot = 0 if z % 4 else 1  # Stone rings in the brick wall
                    voxels.append((x, y, z, slot))
                elif dist < 8 and z % 8 == 0:
                    voxels.append((x, y, z, 3))

    return VoxelModel((size, size, height), voxels, create_palette())


def create_test_model_hill(size: int = 32) -> VoxelModel:
    """Create a grass hill on a stone base."""
    voxels = []
    for x in range(size):
        for y in range(size):
            dist = np.hypot(x - size / 2, y - size / 2)
            top = max(1, int(12 - dist / 2))
            for z in range(top):
                voxels.append((x, y, z, 2 if z == top - 1 else 1))

    return VoxelModel((size, size, 16), voxels, create_palette())


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Voxel Patterns - Demo")
    print("=" * 60)
    print()

    # Create output directory
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    palette_path = Path(__file__).parent / "blocks.json"
    codec = PatternCodec()

    test_models = [
        ("tower", create_test_model_tower()),
        ("hill", create_test_model_hill()),
    ]

    total_start = time.time()

    for name, model in test_models:
        print(f"\n--- Processing: {name} ---")
        print(f"Model size: {model.size[0]}x{model.size[1]}x{model.size[2]}")
        print(f"Voxel count: {model.voxel_count}")

        model_start = time.time()

        generator = PatternGenerator()
        generator.load_models([model])
        generator.load_palette(palette_path)

        written = generator.export(output_dir / name)
        stats = generator.get_stats()["models"][0]

        print(f"  Palette entries: {stats['palette_entries']} ({stats['bit_width']} bit)")
        print(f"  Chunk grid: {stats['chunk_grid']}")
        print(f"  Patterns: {stats['patterns']} (skipped {stats['skipped_chunks']} empty)")

        # Decode the first pattern again
        if written:
            indices, materials, counts = codec.decode_chunk(written[0].read_bytes())
            print(f"\n  {written[0].name}:")
            for material, count in zip(materials, counts):
                print(f"    {material}: {count}")

        model_time = time.time() - model_start
        print(f"\n  Total time: {model_time*1000:.1f}ms")

    total_time = time.time() - total_start

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {total_time:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


if __name__ == "__main__":
    run_demo()
