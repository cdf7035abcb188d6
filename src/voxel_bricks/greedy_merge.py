"""
Greedy Box Merging with Numba JIT Compilation

This module merges mapped cells into as few axis-aligned, single-colored
boxes as a single greedy pass can find. It does not search for the global
minimum (NP-hard in general); it is deterministic and linear in the
number of cells times the box size.

Algorithm Overview:
1. Visit candidate cells in the shared (z, y, x) scan order
2. Skip cells that are empty or already covered by an earlier box
3. Grow a box from the candidate: along x, then along y across the whole
   x-span, then along z across the whole footprint, taking only
   unvisited cells of the candidate's color
4. Mark the box visited and emit it
"""

from typing import List, Optional, Tuple
import logging
import numpy as np
from numba import njit

from .placement import Placement
from .scan import scan_order

logger = logging.getLogger(__name__)

_UNLIMITED = np.iinfo(np.int64).max


@njit(cache=True)
def _row_free(
    cells: np.ndarray,
    visited: np.ndarray,
    x: int, width: int,
    y: int, z: int,
    color: int
) -> bool:
    """Check a run of `width` cells along x for growth."""
    for i in range(x, x + width):
        if visited[i, y, z] or cells[i, y, z] != color:
            return False
    return True


@njit(cache=True)
def _greedy_merge_kernel(
    cells: np.ndarray,
    order: np.ndarray,
    max_extent: int
) -> np.ndarray:
    """
    Merge an (X, Y, Z) grid of palette indices into boxes.

    Args:
        cells: uint8 grid, 0 = empty
        order: (N, 3) int64 candidate coordinates in scan order
        max_extent: Maximum box length along any axis

    Returns:
        (M, 7) int64 array of boxes in emission order, one row per box:
        x, y, z, width, depth, height, color
    """
    sx, sy, sz = cells.shape
    visited = np.zeros((sx, sy, sz), dtype=np.bool_)

    boxes = np.zeros((order.shape[0], 7), dtype=np.int64)
    box_count = 0

    for n in range(order.shape[0]):
        x = order[n, 0]
        y = order[n, 1]
        z = order[n, 2]

        color = cells[x, y, z]
        if color == 0 or visited[x, y, z]:
            continue

        # Expand width (along x)
        width = 1
        while (x + width < sx and width < max_extent and
               not visited[x + width, y, z] and
               cells[x + width, y, z] == color):
            width += 1

        # Expand depth (along y) across the claimed x-span
        depth = 1
        while (y + depth < sy and depth < max_extent and
               _row_free(cells, visited, x, width, y + depth, z, color)):
            depth += 1

        # Expand height (along z) across the claimed footprint
        height = 1
        done = False
        while z + height < sz and height < max_extent and not done:
            for j in range(y, y + depth):
                if not _row_free(cells, visited, x, width, j, z + height, color):
                    done = True
                    break
            if not done:
                height += 1

        # Mark the region as processed
        for k in range(z, z + height):
            for j in range(y, y + depth):
                for i in range(x, x + width):
                    if visited[i, j, k]:
                        raise AssertionError("greedy merge covered a cell twice")
                    visited[i, j, k] = True

        boxes[box_count, 0] = x
        boxes[box_count, 1] = y
        boxes[box_count, 2] = z
        boxes[box_count, 3] = width
        boxes[box_count, 4] = depth
        boxes[box_count, 5] = height
        boxes[box_count, 6] = color
        box_count += 1

    return boxes[:box_count]


def _boxes_to_placements(
    boxes: np.ndarray,
    offset: Tuple[int, int, int] = (0, 0, 0)
) -> List[Placement]:
    ox, oy, oz = offset
    return [
        Placement(
            origin=(int(x) + ox, int(y) + oy, int(z) + oz),
            extents=(int(w), int(d), int(h)),
            color=int(c),
        )
        for x, y, z, w, d, h, c in boxes
    ]


class GreedyMerger:
    """
    Deterministic greedy merging of mapped cells into cuboid placements.

    This class wraps the Numba-accelerated kernel and handles region
    restriction and conversion to Placement objects.
    """

    def __init__(self, max_extent: Optional[int] = None):
        """
        Initialize the merger.

        Args:
            max_extent: Optional cap on a box's length along each axis,
                in mapped cells (None = unlimited)
        """
        if max_extent is not None and max_extent <= 0:
            raise ValueError(f"max_extent must be positive, got {max_extent}")
        self.max_extent = max_extent

    def merge(
        self,
        cells: np.ndarray,
        region: Optional[Tuple[Tuple[int, int, int], Tuple[int, int, int]]] = None
    ) -> List[Placement]:
        """
        Merge a grid of palette indices into cuboid placements.

        Args:
            cells: uint8 array (X, Y, Z), 0 = empty
            region: Optional half-open box ((x0, y0, z0), (x1, y1, z1));
                only cells inside it are merged

        Returns:
            Placements in scan order of their origins, covering every
            non-empty cell of the region exactly once
        """
        if cells.ndim != 3:
            raise ValueError("Cells must have shape (X, Y, Z)")

        offset = (0, 0, 0)
        if region is not None:
            (x0, y0, z0), (x1, y1, z1) = region
            cells = cells[x0:x1, y0:y1, z0:z1]
            offset = (x0, y0, z0)

        cells = np.ascontiguousarray(cells, dtype=np.uint8)
        if cells.size == 0:
            return []

        order = scan_order(cells > 0)
        limit = _UNLIMITED if self.max_extent is None else self.max_extent
        boxes = _greedy_merge_kernel(cells, order, limit)

        logger.debug("Merged %d cells into %d boxes", len(order), len(boxes))
        return _boxes_to_placements(boxes, offset)


def unit_placements(cells: np.ndarray) -> List[Placement]:
    """
    One 1×1×1 placement per non-empty cell, in scan order.

    This is the output of a run without simplification.
    """
    return [
        Placement(
            origin=(int(x), int(y), int(z)),
            extents=(1, 1, 1),
            color=int(cells[x, y, z]),
        )
        for x, y, z in scan_order(cells > 0)
    ]
