#!/usr/bin/env python3
"""
Voxel Bricks Demo Script

This script demonstrates the full conversion pipeline by:
1. Creating synthetic test models (no .vox files needed)
2. Converting them in every piece mode, with and without merging
3. Writing .brs saves
4. Printing statistics and comparisons

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import numpy as np
import time

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_bricks import BrickGenerator, Palette, VoxelGrid
from voxel_bricks.greedy_merge import GreedyMerger


def create_demo_palette() -> Palette:
    """A small palette: index 1 grass, 2 dirt, 3 stone, 4 roof."""
    colors = np.zeros((256, 4), dtype=np.uint8)
    colors[1] = [70, 160, 60, 255]
    colors[2] = [120, 85, 50, 255]
    colors[3] = [140, 140, 140, 255]
    colors[4] = [170, 40, 40, 255]
    return Palette(colors)


def create_test_hill(size: int = 24) -> VoxelGrid:
    """
    Create a stepped hill: a pyramid of dirt capped with grass.

    Returns:
        VoxelGrid
    """
    height = size // 2
    grid = VoxelGrid(size, size, height)

    for x in range(size):
        for y in range(size):
            edge = min(x, y, size - 1 - x, size - 1 - y)
            top = min(edge, height - 1)
            for z in range(top + 1):
                grid.set_voxel(x, y, z, 1 if z == top else 2)

    return grid


def create_test_house(size: int = 16) -> VoxelGrid:
    """
    Create a stone box with a stepped roof.

    Returns:
        VoxelGrid
    """
    wall_height = size // 2
    roof_height = size // 2
    grid = VoxelGrid(size, size, wall_height + roof_height)

    for x in range(size):
        for y in range(size):
            for z in range(wall_height):
                grid.set_voxel(x, y, z, 3)

    # Roof ridge runs along y, stepping down toward both x edges
    for x in range(size):
        steps = min(x, size - 1 - x) + 1
        for y in range(size):
            for z in range(wall_height, wall_height + min(steps, roof_height)):
                grid.set_voxel(x, y, z, 4)

    return grid


def create_test_block(size: int = 32) -> VoxelGrid:
    """
    Create a solid cube with a random color per voxel layer.

    Returns:
        VoxelGrid
    """
    rng = np.random.default_rng(7)
    data = np.zeros((size, size, size), dtype=np.uint8)
    for z in range(size):
        data[:, :, z] = rng.integers(1, 5)
    return VoxelGrid.from_array(data)


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Voxel Bricks - Demo")
    print("=" * 60)
    print()

    # Create output directory
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    palette = create_demo_palette()

    # Test models
    test_models = [
        ("hill", create_test_hill(24)),
        ("house", create_test_house(16)),
        ("block", create_test_block(32)),
    ]

    total_start = time.time()

    for name, grid in test_models:
        print(f"\n--- Processing: {name} ---")
        print(f"Grid size: {grid.shape}, {grid.count_voxels()} voxels")

        model_start = time.time()

        print("\nTesting piece settings:")

        settings = [
            ("brick", False, False),
            ("brick", True, False),
            ("plate", True, False),
            ("brick", True, True),
        ]

        for mode, simplify, rampify in settings:
            generator = BrickGenerator(mode=mode, simplify=simplify, rampify=rampify)
            generator.load_grid(grid, palette, source_name=f"{name} demo")

            convert_start = time.time()
            generator.convert()
            convert_time = time.time() - convert_start

            stats = generator.get_stats()
            label = f"{mode}{' +simplify' if simplify else ''}{' +rampify' if rampify else ''}"
            print(f"  {label}:")
            print(f"    Conversion: {convert_time*1000:.1f}ms")
            print(f"    Bricks: {stats['brick_count']}")
            for asset, count in stats["bricks_per_asset"].items():
                print(f"      {asset}: {count}")
            print(f"    Reduction: {stats['reduction_percent']:.1f}%")

            output_path = output_dir / f"{name}_{mode}_{int(simplify)}{int(rampify)}.brs"
            generator.export_brs(output_path)
            print(f"    Saved: {output_path}")

        model_time = time.time() - model_start
        print(f"    Total time: {model_time*1000:.1f}ms")

    total_time = time.time() - total_start

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {total_time:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


def benchmark_greedy_merge():
    """Benchmark greedy merging performance."""
    print("\n--- Greedy Merge Benchmark ---\n")

    sizes = [16, 32, 64, 128]
    rng = np.random.default_rng(0)

    for size in sizes:
        cells = rng.integers(0, 4, size=(size, size, size)).astype(np.uint8)

        merger = GreedyMerger()
        start = time.time()
        placements = merger.merge(cells)
        merge_time = time.time() - start

        filled = int(np.count_nonzero(cells))
        print(f"Grid size: {size}x{size}x{size}")
        print(f"  Merge: {merge_time*1000:.1f}ms, {filled} cells -> {len(placements)} pieces")
        print(f"  Reduction: {(1 - len(placements) / filled) * 100:.1f}%")
        print()


if __name__ == "__main__":
    run_demo()

    # Uncomment to run benchmark
    # benchmark_greedy_merge()
