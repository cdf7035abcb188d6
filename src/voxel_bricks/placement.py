"""
Piece Placements

A Placement is one emitted piece: an axis-aligned box in mapped units,
its palette index, and for ramps the direction the slope descends toward.
This module also holds the coverage helpers the tests and the pipeline
use to check that a placement set covers the model exactly once.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, Iterator, List, Tuple
import numpy as np

from .scan import scan_key


class PieceKind(Enum):
    """Shape of an emitted piece."""
    CUBOID = "cuboid"
    RAMP = "ramp"


class Facing(IntEnum):
    """Horizontal direction a ramp descends toward (quarter turns from +X)."""
    POS_X = 0
    POS_Y = 1
    NEG_X = 2
    NEG_Y = 3

    @property
    def axis(self) -> int:
        """World axis of the incline (0 = x, 1 = y)."""
        return self.value % 2

    @property
    def sign(self) -> int:
        """+1 when descending toward the positive axis direction."""
        return 1 if self.value < 2 else -1

    @classmethod
    def from_axis(cls, axis: int, sign: int) -> "Facing":
        return cls(axis + (0 if sign > 0 else 2))


@dataclass(frozen=True)
class Placement:
    """
    One piece in mapped-unit coordinates.

    Attributes:
        origin: Minimum corner (x, y, z)
        extents: Box size (width along x, depth along y, height along z)
        color: Palette index
        kind: CUBOID or RAMP
        facing: Descent direction for ramps, POS_X for cuboids
        inverted: True for ramps hanging from a ceiling
    """

    origin: Tuple[int, int, int]
    extents: Tuple[int, int, int]
    color: int
    kind: PieceKind = PieceKind.CUBOID
    facing: Facing = Facing.POS_X
    inverted: bool = False

    @property
    def volume(self) -> int:
        """Number of mapped cells the piece occupies."""
        w, d, h = self.extents
        if self.kind is PieceKind.CUBOID:
            return w * d * h
        length = self.extents[self.facing.axis]
        across = self.extents[1 - self.facing.axis]
        return across * sum(h - i for i in range(length))

    @property
    def bounds(self) -> Tuple[Tuple[int, int, int], Tuple[int, int, int]]:
        """Half-open bounding box (min_xyz, max_xyz)."""
        x, y, z = self.origin
        w, d, h = self.extents
        return (x, y, z), (x + w, y + d, z + h)

    def column_height(self, step: int) -> int:
        """Height of the ramp column `step` cells from the high end."""
        return self.extents[2] - step

    def cells(self) -> Iterator[Tuple[int, int, int]]:
        """
        Yield every mapped cell the piece occupies.

        Cuboids fill their box. Ramps fill a staircase profile: the column
        `i` cells from the high end is `h - i` cells tall, standing on the
        box floor, or hanging from the box ceiling when inverted.
        """
        x0, y0, z0 = self.origin
        w, d, h = self.extents

        if self.kind is PieceKind.CUBOID:
            for z in range(z0, z0 + h):
                for y in range(y0, y0 + d):
                    for x in range(x0, x0 + w):
                        yield (x, y, z)
            return

        axis = self.facing.axis
        length = self.extents[axis]
        for x in range(x0, x0 + w):
            for y in range(y0, y0 + d):
                along = (x - x0) if axis == 0 else (y - y0)
                step = along if self.facing.sign > 0 else length - 1 - along
                column = self.column_height(step)
                if self.inverted:
                    zs = range(z0 + h - column, z0 + h)
                else:
                    zs = range(z0, z0 + column)
                for z in zs:
                    yield (x, y, z)

    def sort_key(self):
        """Scan-order key of the origin, ties broken by shape."""
        return (scan_key(self.origin), self.kind.value, self.extents,
                int(self.facing), self.inverted, self.color)


def sort_placements(placements: Iterable[Placement]) -> List[Placement]:
    """Return placements ordered by the shared scan order of their origins."""
    return sorted(placements, key=Placement.sort_key)


def rasterize(
    placements: Iterable[Placement],
    shape: Tuple[int, int, int]
) -> np.ndarray:
    """
    Paint placements into an (X, Y, Z) array of palette indices.

    Raises:
        AssertionError: If two placements claim the same cell
    """
    cells = np.zeros(shape, dtype=np.uint8)
    for placement in placements:
        for cell in placement.cells():
            assert cells[cell] == 0, f"cell {cell} covered twice"
            cells[cell] = placement.color
    return cells


def coverage_mask(
    placements: Iterable[Placement],
    shape: Tuple[int, int, int]
) -> np.ndarray:
    """Boolean mask of the cells covered by a placement set."""
    return rasterize(placements, shape) > 0


def verify_coverage(placements: Iterable[Placement], cells: np.ndarray) -> None:
    """
    Check that placements cover exactly the non-empty cells, once each,
    with matching colors.

    Raises:
        AssertionError: On any double cover, gap, fabricated cell or
            color mismatch
    """
    painted = rasterize(placements, cells.shape)
    mismatch = np.argwhere(painted != cells)
    assert len(mismatch) == 0, (
        f"{len(mismatch)} cells differ from the model, first at "
        f"{tuple(int(v) for v in mismatch[0])}"
    )
