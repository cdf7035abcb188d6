"""
Unit tests for voxel grids, palettes and unit mapping.
"""

import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_bricks.color import Palette, dedupe_colors, gamma_correct
from voxel_bricks.errors import InvalidScale
from voxel_bricks.units import PieceMode, UnitMapper
from voxel_bricks.voxelizer import VoxelGrid


class TestVoxelGrid(unittest.TestCase):
    """Tests for VoxelGrid class."""

    def test_create_grid(self):
        """Test grid creation."""
        grid = VoxelGrid(16, 16, 16)
        assert grid.shape == (16, 16, 16)
        assert grid.count_voxels() == 0

    def test_set_get_voxel(self):
        """Test setting and getting voxels."""
        grid = VoxelGrid(8, 8, 8)
        grid.set_voxel(1, 2, 3, 42)
        assert grid.get_voxel(1, 2, 3) == 42
        assert grid.is_solid(1, 2, 3)
        assert not grid.is_solid(0, 0, 0)

    def test_out_of_bounds(self):
        """Test out-of-bounds access."""
        grid = VoxelGrid(8, 8, 8)
        grid.set_voxel(100, 0, 0, 5)  # Should not crash
        assert grid.get_voxel(100, 0, 0) == 0
        assert grid.count_voxels() == 0

    def test_invalid_extents(self):
        """Test that zero-sized grids are rejected."""
        with self.assertRaises(ValueError):
            VoxelGrid(0, 4, 4)

    def test_sparse_conversion(self):
        """Test sparse representation."""
        grid = VoxelGrid(8, 8, 8)
        grid.set_voxel(0, 0, 0, 1)
        grid.set_voxel(7, 7, 7, 9)

        coords, indices = grid.to_sparse()
        assert len(coords) == 2
        assert sorted(indices.tolist()) == [1, 9]

        rebuilt = VoxelGrid.from_sparse(coords, indices, grid.shape)
        assert np.array_equal(rebuilt.data, grid.data)

    def test_sparse_out_of_bounds(self):
        """Test that sparse voxels outside the extents are rejected."""
        coords = np.array([[0, 0, 0], [4, 1, 1]])
        indices = np.array([1, 2])
        with self.assertRaises(ValueError):
            VoxelGrid.from_sparse(coords, indices, (4, 4, 4))

    def test_used_indices(self):
        """Test the sorted list of referenced palette indices."""
        grid = VoxelGrid(4, 1, 1)
        grid.set_voxel(0, 0, 0, 7)
        grid.set_voxel(1, 0, 0, 3)
        grid.set_voxel(2, 0, 0, 7)
        assert grid.used_indices().tolist() == [3, 7]


class TestPalette(unittest.TestCase):
    """Tests for palettes and gamma correction."""

    def test_rgb_gets_opaque_alpha(self):
        """Test that RGB palettes are stored as opaque RGBA."""
        palette = Palette(np.array([[0, 0, 0], [10, 20, 30]], dtype=np.uint8))
        assert palette[1] == (10, 20, 30, 255)

    def test_vox_rgba_shift(self):
        """Test that .vox RGBA entry k becomes palette index k + 1."""
        rgba = np.zeros((256, 4), dtype=np.uint8)
        rgba[0] = [1, 2, 3, 255]
        palette = Palette.from_vox_rgba(rgba)
        assert len(palette) == 256
        assert palette[1] == (1, 2, 3, 255)

    def test_validate_index_past_end(self):
        """Test that grids referencing missing palette entries fail."""
        palette = Palette(np.zeros((3, 4), dtype=np.uint8))
        grid = VoxelGrid(1, 1, 1)
        grid.set_voxel(0, 0, 0, 5)
        with self.assertRaises(ValueError):
            palette.validate(grid)

    def test_gamma_endpoints(self):
        """Test that black and white survive gamma correction."""
        corrected = gamma_correct(np.array([[0, 255, 128]], dtype=np.uint8))
        assert corrected[0, 0] == 0
        assert corrected[0, 1] == 255
        assert 0 < corrected[0, 2] < 128

    def test_dedupe_shares_identical_colors(self):
        """Test that indices with equal corrected colors share one entry."""
        colors = np.zeros((4, 3), dtype=np.uint8)
        colors[1] = [200, 10, 10]
        colors[2] = [200, 10, 10]
        colors[3] = [10, 200, 10]
        dense, remap = dedupe_colors(Palette(colors), [3, 1, 2, 1])

        assert len(dense) == 2
        assert remap[1] == remap[2] == 0
        assert remap[3] == 1
        assert all(color[3] == 255 for color in dense)


class TestUnitMapper(unittest.TestCase):
    """Tests for unit mapping."""

    def test_identity_mapping(self):
        """Test that scale (1, 1, 1) keeps every voxel."""
        grid = VoxelGrid(3, 2, 2)
        grid.set_voxel(2, 1, 1, 4)
        mapped = UnitMapper().map(grid)

        assert mapped.shape == (3, 2, 2)
        assert np.array_equal(mapped.cells, grid.data)
        assert mapped.cells is not grid.data

    def test_majority_vote(self):
        """Test that a block maps to its most frequent index."""
        data = np.zeros((2, 2, 1), dtype=np.uint8)
        data[0, 0, 0] = 1
        data[1, 0, 0] = 1
        data[0, 1, 0] = 2
        grid = VoxelGrid.from_array(data)

        mapped = UnitMapper(width_scale=2).map(grid)
        assert mapped.shape == (1, 1, 1)
        assert mapped.cells[0, 0, 0] == 1

    def test_majority_tie_takes_lowest_index(self):
        """Test the tie-break between equally frequent indices."""
        data = np.array([[[9]], [[3]]], dtype=np.uint8)
        grid = VoxelGrid.from_array(data)

        mapped = UnitMapper(width_scale=2).map(grid)
        assert mapped.cells[0, 0, 0] == 3

    def test_empty_cells_do_not_vote(self):
        """Test that a single voxel colors an otherwise empty block."""
        data = np.zeros((2, 2, 2), dtype=np.uint8)
        data[1, 1, 1] = 6
        grid = VoxelGrid.from_array(data)

        mapped = UnitMapper(width_scale=2, height_scale=2).map(grid)
        assert mapped.cells[0, 0, 0] == 6

    def test_empty_block_stays_empty(self):
        """Test that a block without voxels maps to an empty cell."""
        data = np.zeros((4, 1, 1), dtype=np.uint8)
        data[0, 0, 0] = 2
        grid = VoxelGrid.from_array(data)

        mapped = UnitMapper(width_scale=2, depth_scale=1).map(grid)
        assert mapped.cells[:, 0, 0].tolist() == [2, 0]

    def test_partial_blocks_round_up(self):
        """Test that trailing partial blocks still produce a cell."""
        grid = VoxelGrid(5, 1, 4)
        grid.set_voxel(4, 0, 3, 1)

        mapped = UnitMapper(width_scale=2, depth_scale=1, height_scale=3).map(grid)
        assert mapped.shape == (3, 1, 2)
        assert mapped.cells[2, 0, 1] == 1

    def test_source_grid_untouched(self):
        """Test that mapping does not modify the input grid."""
        data = np.arange(8, dtype=np.uint8).reshape(2, 2, 2)
        grid = VoxelGrid.from_array(data)
        before = grid.data.copy()

        UnitMapper(width_scale=2, height_scale=2).map(grid)
        assert np.array_equal(grid.data, before)

    def test_invalid_scales(self):
        """Test that non-positive or non-integer multipliers are rejected."""
        for bad in (0, -1, 1.5, True, "2"):
            with self.assertRaises(InvalidScale):
                UnitMapper(width_scale=bad)
        with self.assertRaises(InvalidScale):
            UnitMapper(height_scale=0)
        with self.assertRaises(InvalidScale):
            UnitMapper(depth_scale=-3)

    def test_invalid_scale_is_value_error(self):
        """Test that InvalidScale can be caught as ValueError."""
        with self.assertRaises(ValueError):
            UnitMapper(width_scale=0)

    def test_unit_sizes(self):
        """Test half extents of one mapped cell per mode."""
        grid = VoxelGrid(1, 1, 1)
        grid.set_voxel(0, 0, 0, 1)

        assert UnitMapper(PieceMode.BRICK).map(grid).unit_size == (5, 5, 6)
        assert UnitMapper(PieceMode.PLATE).map(grid).unit_size == (5, 5, 2)
        assert UnitMapper(PieceMode.MICROBRICK).map(grid).unit_size == (1, 1, 1)

        scaled = UnitMapper(PieceMode.PLATE, width_scale=2, height_scale=3).map(grid)
        assert scaled.scale == (2, 2, 3)
        assert scaled.unit_size == (10, 10, 6)

    def test_depth_defaults_to_width(self):
        """Test that depth_scale follows width_scale when omitted."""
        assert UnitMapper(width_scale=3).scale == (3, 3, 1)
        assert UnitMapper(width_scale=3, depth_scale=1).scale == (3, 1, 1)

    def test_mode_lookup(self):
        """Test piece mode lookup by name."""
        assert PieceMode.from_name("plate") is PieceMode.PLATE
        assert PieceMode.from_name("MicroBrick") is PieceMode.MICROBRICK
        with self.assertRaises(ValueError):
            PieceMode.from_name("slab")


if __name__ == "__main__":
    unittest.main()
