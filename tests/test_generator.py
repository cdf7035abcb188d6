"""
Unit tests for the conversion pipeline.
"""

import sys
import tempfile
from pathlib import Path
import numpy as np
import unittest
from unittest import mock

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_bricks import BrickGenerator, convert
from voxel_bricks.color import Palette
from voxel_bricks.errors import EmptyModel, InvalidScale, ModelTooLarge
from voxel_bricks.exporters import load_brs_header
from voxel_bricks.units import PieceMode
from voxel_bricks.voxelizer import VoxelGrid


def make_palette() -> Palette:
    colors = np.zeros((256, 3), dtype=np.uint8)
    colors[1] = [200, 50, 50]
    colors[2] = [50, 200, 50]
    colors[3] = [50, 50, 200]
    colors[4] = [200, 200, 50]
    colors[5] = [200, 50, 50]
    return Palette(colors)


def make_staircase() -> VoxelGrid:
    data = np.zeros((1, 3, 3), dtype=np.uint8)
    for y in range(3):
        data[0, y, :3 - y] = 1
    return VoxelGrid.from_array(data)


def make_block(size=(2, 2, 1), index=1) -> VoxelGrid:
    return VoxelGrid.from_array(np.full(size, index, dtype=np.uint8))


class TestConvert(unittest.TestCase):
    """Tests for the convert entry point."""

    def test_empty_model(self):
        """Test that a grid without voxels is rejected."""
        with self.assertRaises(EmptyModel):
            convert(VoxelGrid(4, 4, 4), make_palette())

    def test_invalid_scale(self):
        """Test that bad multipliers are rejected before any work."""
        with self.assertRaises(InvalidScale):
            convert(make_block(), make_palette(), width_scale=0)
        with self.assertRaises(InvalidScale):
            convert(make_block(), make_palette(), height_scale=-2)

    def test_palette_mismatch(self):
        """Test that voxel indices past the palette are rejected."""
        palette = Palette(np.zeros((3, 3), dtype=np.uint8))
        with self.assertRaises(ValueError):
            convert(make_block(index=9), palette)

    def test_one_brick_per_voxel(self):
        """Test output without simplification."""
        document = convert(make_block(), make_palette())
        assert document.brick_count == 4
        assert all(brick.size == (5, 5, 6) for brick in document.bricks)

    def test_simplify_merges(self):
        """Test that simplification merges the block into one brick."""
        document = convert(make_block(), make_palette(), simplify=True)
        assert document.brick_count == 1
        assert document.bricks[0].size == (10, 10, 6)

    def test_mode_by_name(self):
        """Test that modes can be given by name."""
        document = convert(make_block(), make_palette(), mode="plate", simplify=True)
        assert document.bricks[0].size == (10, 10, 2)

    def test_rampify_implies_simplify(self):
        """Test that rampify merges and emits a ramp."""
        document = convert(make_staircase(), make_palette(), rampify=True)
        assert document.brick_count == 1
        assert document.brick_assets == ("PB_DefaultRamp",)

    def test_rampify_microbrick_falls_back(self):
        """Test that rampify switches microbricks to bricks."""
        with self.assertLogs("voxel_bricks.generator", level="WARNING"):
            document = convert(
                make_staircase(), make_palette(),
                mode=PieceMode.MICROBRICK, rampify=True
            )
        assert "PB_DefaultMicroBrick" not in document.brick_assets
        assert document.bricks[0].size[2] == 3 * 6

    def test_deterministic_bytes(self):
        """Test that identical inputs give byte-identical saves."""
        rng = np.random.default_rng(11)
        data = rng.integers(0, 4, size=(6, 5, 4)).astype(np.uint8)
        grid = VoxelGrid.from_array(data)

        first = convert(grid, make_palette(), rampify=True).to_bytes()
        second = convert(grid, make_palette(), rampify=True).to_bytes()
        assert first == second

    def test_scale_invariance(self):
        """Test that block-constant models convert the same at scale 1 and 2."""
        data = np.zeros((4, 4, 1), dtype=np.uint8)
        data[:2, :2] = 1
        data[2:, :2] = 2
        data[:2, 2:] = 3
        data[2:, 2:] = 4
        grid = VoxelGrid.from_array(data)

        unit = convert(grid, make_palette(), simplify=True)
        scaled = convert(grid, make_palette(), simplify=True, width_scale=2)

        assert unit.brick_count == 4
        assert unit.to_bytes() == scaled.to_bytes()

    def test_duplicate_colors_shared(self):
        """Test that palette entries with equal colors share a save color."""
        data = np.zeros((2, 1, 1), dtype=np.uint8)
        data[0] = 1
        data[1] = 5
        document = convert(VoxelGrid.from_array(data), make_palette())
        assert len(document.colors) == 1

    def test_model_too_large(self):
        """Test the coordinate range check."""
        with mock.patch("voxel_bricks.generator.MAX_COORDINATE", 10):
            with self.assertRaises(ModelTooLarge):
                convert(make_block(), make_palette())

    def test_source_grid_untouched(self):
        """Test that conversion does not modify the input grid."""
        grid = make_staircase()
        before = grid.data.copy()
        convert(grid, make_palette(), rampify=True, width_scale=1)
        assert np.array_equal(grid.data, before)


class TestBrickGenerator(unittest.TestCase):
    """Tests for the high-level generator."""

    def test_basic_pipeline(self):
        """Test the full pipeline from grid to file."""
        generator = BrickGenerator(mode="brick", simplify=True)
        generator.load_grid(make_block((3, 2, 2)), make_palette(), source_name="block")

        assert generator.voxel_count == 12
        generator.convert()
        assert generator.brick_count == 1

        with tempfile.TemporaryDirectory() as tmpdir:
            path = generator.export_brs(Path(tmpdir) / "block.brs")
            header = load_brs_header(path)

        assert header["brick_count"] == 1
        assert header["description"].startswith("Converted block.")

    def test_stats(self):
        """Test conversion statistics."""
        generator = BrickGenerator(rampify=True)
        generator.load_grid(make_staircase(), make_palette()).convert()

        stats = generator.get_stats()
        assert stats["voxel_count"] == 6
        assert stats["brick_count"] == 1
        assert stats["bricks_per_asset"] == {"PB_DefaultRamp": 1}
        assert stats["color_count"] == 1
        assert stats["reduction_percent"] > 80

    def test_set_mode_resets_result(self):
        """Test that changing mode discards the previous conversion."""
        generator = BrickGenerator()
        generator.load_grid(make_block(), make_palette()).convert()
        assert generator.document is not None

        generator.set_mode("plate")
        assert generator.document is None
        assert generator.brick_count == 0

        generator.convert()
        assert generator.document.bricks[0].size == (5, 5, 2)

    def test_convert_without_model(self):
        """Test that converting before loading fails clearly."""
        with self.assertRaises(RuntimeError):
            BrickGenerator().convert()


if __name__ == "__main__":
    unittest.main()
