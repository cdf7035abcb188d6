"""
Voxel Grid Data Structure

This module provides VoxelGrid, the in-memory model every conversion
starts from. Voxels are stored as palette indices in a dense uint8 array;
index 0 means "no voxel".

Memory consideration: a 256³ grid is 256³ × 1 byte ≈ 16 MB, which covers
the largest single MagicaVoxel model.
"""

from dataclasses import dataclass, field
from typing import Tuple, Iterator
import numpy as np


@dataclass
class VoxelGrid:
    """
    Dense 3D grid of palette indices.

    The grid is read-only to the conversion stages; they only ever call
    the query methods below and build their own arrays from `data`.

    Coordinate system: X-right, Y-back, Z-up (MagicaVoxel convention)
    """

    size_x: int
    size_y: int
    size_z: int
    _data: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        if self.size_x <= 0 or self.size_y <= 0 or self.size_z <= 0:
            raise ValueError(
                f"Grid extents must be positive, got {self.shape}"
            )
        self._data = np.zeros(
            (self.size_x, self.size_y, self.size_z),
            dtype=np.uint8
        )

    @classmethod
    def from_array(cls, data: np.ndarray) -> "VoxelGrid":
        """
        Wrap an existing (X, Y, Z) array of palette indices.

        Args:
            data: Integer array, values 0-255

        Returns:
            New VoxelGrid holding a uint8 copy of the data
        """
        if data.ndim != 3:
            raise ValueError("Voxel data must have shape (X, Y, Z)")
        if data.size and (data.min() < 0 or data.max() > 255):
            raise ValueError("Palette indices must be in the range 0-255")

        grid = cls(*data.shape)
        grid._data = data.astype(np.uint8)
        return grid

    @classmethod
    def from_sparse(
        cls,
        coords: np.ndarray,
        indices: np.ndarray,
        shape: Tuple[int, int, int]
    ) -> "VoxelGrid":
        """
        Build a grid from a sparse voxel list.

        Args:
            coords: Array of shape (N, 3) with xyz coordinates
            indices: Array of shape (N,) with palette indices
            shape: Declared model extents (x, y, z)

        Returns:
            Populated VoxelGrid

        Raises:
            ValueError: If a coordinate lies outside the declared extents
        """
        grid = cls(*shape)
        for (x, y, z), index in zip(coords, indices):
            if not grid._in_bounds(int(x), int(y), int(z)):
                raise ValueError(
                    f"Voxel ({x}, {y}, {z}) is outside the extents {grid.shape}"
                )
            grid.set_voxel(int(x), int(y), int(z), int(index))
        return grid

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Get grid dimensions (x, y, z)."""
        return (self.size_x, self.size_y, self.size_z)

    @property
    def data(self) -> np.ndarray:
        """Get the raw palette-index array."""
        return self._data

    @property
    def occupancy(self) -> np.ndarray:
        """Get binary occupancy mask (True where a voxel exists)."""
        return self._data > 0

    def set_voxel(self, x: int, y: int, z: int, index: int):
        """
        Set the palette index of a voxel.

        Args:
            x, y, z: Voxel coordinates
            index: Palette index (1-255), 0 clears the voxel
        """
        if not self._in_bounds(x, y, z):
            return  # Silently ignore out-of-bounds
        if not 0 <= index <= 255:
            raise ValueError(f"Palette index out of range: {index}")

        self._data[x, y, z] = index

    def get_voxel(self, x: int, y: int, z: int) -> int:
        """Get the palette index at coordinates (0 if empty or out of bounds)."""
        if not self._in_bounds(x, y, z):
            return 0
        return int(self._data[x, y, z])

    def is_solid(self, x: int, y: int, z: int) -> bool:
        """Check if a voxel exists at the given coordinates."""
        return self.get_voxel(x, y, z) != 0

    def _in_bounds(self, x: int, y: int, z: int) -> bool:
        """Check if coordinates are within grid bounds."""
        return (
            0 <= x < self.size_x and
            0 <= y < self.size_y and
            0 <= z < self.size_z
        )

    def count_voxels(self) -> int:
        """Count the number of solid voxels."""
        return int(np.count_nonzero(self._data))

    def used_indices(self) -> np.ndarray:
        """Sorted palette indices referenced by at least one voxel."""
        used = np.unique(self._data)
        return used[used != 0]

    def iterate_voxels(self) -> Iterator[Tuple[int, int, int, int]]:
        """
        Iterate over all solid voxels.

        Yields:
            Tuples of (x, y, z, palette_index)
        """
        for x, y, z in np.argwhere(self.occupancy):
            yield (int(x), int(y), int(z), int(self._data[x, y, z]))

    def to_sparse(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Convert to sparse representation.

        Returns:
            Tuple of (coordinates, indices) where:
            - coordinates: Array of shape (N, 3) with xyz indices
            - indices: Array of shape (N,) with palette indices
        """
        occupied = self.occupancy
        return np.argwhere(occupied), self._data[occupied]
