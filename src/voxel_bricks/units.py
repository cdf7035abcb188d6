"""
Unit Mapping

Reinterprets a voxel grid in the units of the selected piece mode.

Each mapped cell stands for a `width_scale × depth_scale × height_scale`
block of source voxels. The block's color is the most frequent non-empty
palette index inside it (lowest index wins a tie); a block without any
voxel maps to an empty cell. The piece mode then fixes how large one
mapped cell is in the save format.

Save units: one stud is 10 units wide, a brick is 12 units tall, a plate
4 and a microbrick 2. Sizes are stored as half extents.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import logging
import numpy as np
from numba import njit

from .errors import InvalidScale
from .voxelizer import VoxelGrid

logger = logging.getLogger(__name__)


class PieceMode(Enum):
    """
    Piece class used for every mapped cell.

    Each member carries its half-width per stud, its half-height per
    layer and the brick asset it is built from.
    """

    BRICK = ("brick", 5, 6, "PB_DefaultBrick")
    PLATE = ("plate", 5, 2, "PB_DefaultBrick")
    MICROBRICK = ("microbrick", 1, 1, "PB_DefaultMicroBrick")

    def __init__(self, label: str, stud_half: int, layer_half: int, asset: str):
        self.label = label
        self.stud_half = stud_half
        self.layer_half = layer_half
        self.asset = asset

    @classmethod
    def from_name(cls, name: str) -> "PieceMode":
        """Look a mode up by its label ("brick", "plate", "microbrick")."""
        for mode in cls:
            if mode.label == name.lower():
                return mode
        raise ValueError(f"Unknown piece mode: {name}")


@njit(cache=True)
def _majority_downsample(
    data: np.ndarray,
    bx: int,
    by: int,
    bz: int
) -> np.ndarray:
    """
    Collapse every (bx, by, bz) block to its majority palette index.

    Args:
        data: uint8 grid (X, Y, Z) of palette indices
        bx, by, bz: Block size along each axis

    Returns:
        uint8 grid of shape ceil(X / bx), ceil(Y / by), ceil(Z / bz)
    """
    sx, sy, sz = data.shape
    ox = (sx + bx - 1) // bx
    oy = (sy + by - 1) // by
    oz = (sz + bz - 1) // bz

    out = np.zeros((ox, oy, oz), dtype=np.uint8)
    counts = np.zeros(256, dtype=np.int64)

    for i in range(ox):
        for j in range(oy):
            for k in range(oz):
                counts[:] = 0
                for x in range(i * bx, min((i + 1) * bx, sx)):
                    for y in range(j * by, min((j + 1) * by, sy)):
                        for z in range(k * bz, min((k + 1) * bz, sz)):
                            v = data[x, y, z]
                            if v != 0:
                                counts[v] += 1

                # Strict comparison keeps the lowest index on ties
                best = 0
                best_count = 0
                for v in range(1, 256):
                    if counts[v] > best_count:
                        best = v
                        best_count = counts[v]
                out[i, j, k] = best

    return out


@dataclass(frozen=True)
class MappedGrid:
    """
    A voxel grid expressed in piece units.

    Attributes:
        cells: uint8 array (X, Y, Z) of palette indices, 0 = empty
        mode: Piece mode the cells will be built from
        scale: (width_scale, depth_scale, height_scale) used for the mapping
    """

    cells: np.ndarray
    mode: PieceMode
    scale: Tuple[int, int, int]

    @property
    def shape(self) -> Tuple[int, int, int]:
        return tuple(int(s) for s in self.cells.shape)

    @property
    def unit_size(self) -> Tuple[int, int, int]:
        """Half extents of one mapped cell in save units (x, y, z)."""
        ws, ds, hs = self.scale
        return (
            self.mode.stud_half * ws,
            self.mode.stud_half * ds,
            self.mode.layer_half * hs,
        )

    def count_cells(self) -> int:
        return int(np.count_nonzero(self.cells))


def _check_scale(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidScale(f"{name} must be a positive integer, got {value!r}")
    if value <= 0:
        raise InvalidScale(f"{name} must be positive, got {value}")
    return int(value)


class UnitMapper:
    """
    Maps voxel grids to piece units for one mode and set of multipliers.

    Usage:
        mapper = UnitMapper(PieceMode.PLATE, width_scale=2)
        mapped = mapper.map(grid)
    """

    def __init__(
        self,
        mode: PieceMode = PieceMode.BRICK,
        width_scale: int = 1,
        depth_scale: Optional[int] = None,
        height_scale: int = 1
    ):
        """
        Initialize the mapper.

        Args:
            mode: Piece mode for the mapped cells
            width_scale: Source voxels per mapped cell along x
            depth_scale: Source voxels per mapped cell along y
                (defaults to width_scale)
            height_scale: Source voxels per mapped cell along z

        Raises:
            InvalidScale: If a multiplier is not a positive integer
        """
        if depth_scale is None:
            depth_scale = width_scale

        self.mode = mode
        self.width_scale = _check_scale("width_scale", width_scale)
        self.depth_scale = _check_scale("depth_scale", depth_scale)
        self.height_scale = _check_scale("height_scale", height_scale)

    @property
    def scale(self) -> Tuple[int, int, int]:
        return (self.width_scale, self.depth_scale, self.height_scale)

    def map(self, grid: VoxelGrid) -> MappedGrid:
        """
        Map a voxel grid to piece units.

        Args:
            grid: Source grid (left untouched)

        Returns:
            MappedGrid with its own cell array
        """
        if self.scale == (1, 1, 1):
            cells = grid.data.copy()
        else:
            cells = _majority_downsample(
                np.ascontiguousarray(grid.data), *self.scale
            )

        logger.debug(
            "Mapped %s grid %s to %s cells (%s mode, scale %s)",
            grid.count_voxels(), grid.shape, cells.shape,
            self.mode.label, self.scale
        )
        return MappedGrid(cells=cells, mode=self.mode, scale=self.scale)
