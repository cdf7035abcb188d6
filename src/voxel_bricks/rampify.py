"""
Ramp Synthesis

Replaces staircase-shaped clusters of merged boxes with single ramp
pieces, then re-merges whatever flat geometry the removed boxes leave
behind.

A staircase of n steps descending toward a horizontal direction is a run
of n columns of one color where the column i steps from the high end
holds exactly n - i cells above a shared base, and each column's top face
is exposed (nothing above it). Ceiling staircases are the same shape
hanging downward with exposed bottom faces.

Detection walks the cells in the shared (z, y, x) scan order. Cells taken
by a ramp are claimed immediately, so when two candidate staircases share
a cell (at a corner, say) the one discovered first keeps it. A candidate
whose uphill neighbour column would extend the staircase by one step is
passed over, so the staircase is rooted at its tall end.

A ramp is only kept when it and the re-merged remainder of the pieces it
cuts into are fewer than those pieces. A staircase standing on a floor of
its own color is therefore not based on the floor: the candidates in the
floor layer are refused, and the scan picks the staircase up again one
layer higher.
"""

from dataclasses import replace
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
import logging
import numpy as np

from .greedy_merge import GreedyMerger
from .placement import Facing, PieceKind, Placement, sort_placements
from .scan import scan_order

logger = logging.getLogger(__name__)

# Directions tried for every candidate, in order
_INCLINES = (Facing.POS_X, Facing.NEG_X, Facing.POS_Y, Facing.NEG_Y)


class Rampifier:
    """
    Staircase detection and replacement over a merged placement set.

    Usage:
        rampifier = Rampifier()
        placements = rampifier.rampify(merged, mapped.shape)
    """

    def __init__(
        self,
        merger: Optional[GreedyMerger] = None,
        min_steps: int = 2,
        ceilings: bool = True
    ):
        """
        Initialize the rampifier.

        Args:
            merger: Merger used for the residual geometry (default settings
                if None). Its max_extent also caps ramp length and width.
            min_steps: Shortest staircase replaced by a ramp
            ceilings: Also look for staircases hanging from ceilings
        """
        if min_steps < 2:
            raise ValueError(f"min_steps must be at least 2, got {min_steps}")

        self.merger = merger or GreedyMerger()
        self.min_steps = min_steps
        self.ceilings = ceilings

    @property
    def max_extent(self) -> Optional[int]:
        return self.merger.max_extent

    def rampify(
        self,
        placements: Iterable[Placement],
        shape: Tuple[int, int, int]
    ) -> List[Placement]:
        """
        Replace staircases in a placement set with ramps.

        Args:
            placements: Non-overlapping placements (typically the merger's
                output)
            shape: Mapped grid extents (x, y, z)

        Returns:
            New placement list in scan order covering the same cells.
            Placements no ramp cuts into are passed through as they are.
        """
        pieces: Dict[int, Placement] = dict(enumerate(placements))

        cells = np.zeros(shape, dtype=np.uint8)
        owner = np.full(shape, -1, dtype=np.int64)
        claimed = np.zeros(shape, dtype=np.bool_)
        for key, placement in pieces.items():
            for cell in placement.cells():
                assert owner[cell] < 0, f"cell {cell} covered twice"
                cells[cell] = placement.color
                owner[cell] = key
                if placement.kind is PieceKind.RAMP:
                    claimed[cell] = True

        next_key = len(pieces)
        ramps = 0
        replaced = 0
        for x, y, z in scan_order(cells > 0):
            if claimed[x, y, z]:
                continue
            cell = (int(x), int(y), int(z))
            for ramp in self._candidates(cells, claimed, cell):
                result = self._replace(ramp, pieces, owner, next_key)
                if result is None:
                    continue
                removed, added = result
                for key in removed:
                    del pieces[key]
                for placement in added:
                    pieces[next_key] = placement
                    next_key += 1
                for ramp_cell in ramp.cells():
                    claimed[ramp_cell] = True
                ramps += 1
                replaced += len(removed)
                break

        if not ramps:
            logger.info("No staircases found")
        else:
            logger.info(
                "Generated %d ramps, replacing %d pieces", ramps, replaced
            )
        return sort_placements(pieces.values())

    def _replace(
        self,
        ramp: Placement,
        pieces: Dict[int, Placement],
        owner: np.ndarray,
        first_key: int
    ) -> Optional[Tuple[List[int], List[Placement]]]:
        """
        Work out the pieces a ramp replaces and the residual that remains.

        The pieces the ramp cuts into are re-merged without the ramp's cells,
        inside their bounding box only. When the ramp and that residual are
        not fewer than the pieces they replace, nothing changes and None is
        returned. Otherwise `owner` is updated, and the keys to drop plus
        the placements to add (keyed from `first_key` on) are returned.
        """
        ramp_cells = tuple(np.array(list(ramp.cells())).T)
        keys = [int(k) for k in np.unique(owner[ramp_cells])]

        lo = np.min([pieces[k].bounds[0] for k in keys], axis=0)
        hi = np.max([pieces[k].bounds[1] for k in keys], axis=0)
        box = tuple(slice(a, b) for a, b in zip(lo, hi))

        local_owner = owner[box]
        residual = np.zeros(local_owner.shape, dtype=np.uint8)
        for key in keys:
            residual[local_owner == key] = pieces[key].color
        residual[tuple(c - o for c, o in zip(ramp_cells, lo))] = 0

        ox, oy, oz = (int(v) for v in lo)
        remerged = [
            replace(p, origin=(p.origin[0] + ox, p.origin[1] + oy, p.origin[2] + oz))
            for p in self.merger.merge(residual)
        ]

        if 1 + len(remerged) >= len(keys):
            logger.debug(
                "Skipped ramp at %s: %d pieces would become %d",
                ramp.origin, len(keys), 1 + len(remerged)
            )
            return None

        added = [ramp] + remerged
        for offset, placement in enumerate(added):
            for cell in placement.cells():
                owner[cell] = first_key + offset
        return keys, added

    def _candidates(
        self,
        cells: np.ndarray,
        claimed: np.ndarray,
        cell: Tuple[int, int, int]
    ) -> Iterator[Placement]:
        """Ramps rooted at `cell`: floor directions, then ceiling ones."""
        for inverted in ((False, True) if self.ceilings else (False,)):
            for facing in _INCLINES:
                ramp = self._grow(cells, claimed, cell, facing, inverted)
                if ramp is not None:
                    yield ramp

    def _grow(
        self,
        cells: np.ndarray,
        claimed: np.ndarray,
        cell: Tuple[int, int, int],
        facing: Facing,
        inverted: bool
    ) -> Optional[Placement]:
        """
        Try to grow a ramp whose high column starts at `cell`.

        The step count is the unclaimed same-color run from the cell
        upward. Floor columns stand on the cell's level; ceiling columns
        hang from the top of the run. The profile must then repeat along
        the incline, and is widened along the transverse axis for as long
        as it keeps repeating.
        """
        x, y, z = cell
        color = cells[x, y, z]

        steps = 0
        sz = cells.shape[2]
        while (z + steps < sz and
               not claimed[x, y, z + steps] and
               cells[x, y, z + steps] == color):
            steps += 1

        if steps < self.min_steps:
            return None
        if self.max_extent is not None and steps > self.max_extent:
            return None

        if inverted:
            anchor, step = z + steps - 1, -1
        else:
            anchor, step = z, 1

        # A taller column uphill means this is the middle of a longer staircase
        if facing.axis == 0:
            ux, uy = x - facing.sign, y
        else:
            ux, uy = x, y - facing.sign
        if _column_matches(cells, claimed, ux, uy, anchor, steps + 1, color, step):
            return None

        if not self._profile_matches(cells, claimed, cell, facing, steps, 0, anchor, step):
            return None

        width = 1
        while ((self.max_extent is None or width < self.max_extent) and
               self._profile_matches(cells, claimed, cell, facing, steps, width, anchor, step)):
            width += 1

        axis = facing.axis
        start = cell[axis] if facing.sign > 0 else cell[axis] - (steps - 1)

        if axis == 0:
            origin = (start, y, z)
            extents = (steps, width, steps)
        else:
            origin = (x, start, z)
            extents = (width, steps, steps)

        return Placement(
            origin=origin,
            extents=extents,
            color=int(color),
            kind=PieceKind.RAMP,
            facing=facing,
            inverted=inverted,
        )

    def _profile_matches(
        self,
        cells: np.ndarray,
        claimed: np.ndarray,
        cell: Tuple[int, int, int],
        facing: Facing,
        steps: int,
        across: int,
        anchor: int,
        step: int
    ) -> bool:
        """Check every column of a staircase shifted `across` cells sideways."""
        x, y, z = cell
        color = cells[x, y, z]
        for i in range(steps):
            along = i * facing.sign
            if facing.axis == 0:
                cx, cy = x + along, y + across
            else:
                cx, cy = x + across, y + along
            if not _column_matches(cells, claimed, cx, cy, anchor, steps - i, color, step):
                return False
        return True


def _column_matches(
    cells: np.ndarray,
    claimed: np.ndarray,
    x: int, y: int,
    base: int,
    length: int,
    color: int,
    step: int
) -> bool:
    """
    Check a column holds `length` unclaimed cells of `color` from `base`
    in direction `step`, followed by an exposed face.
    """
    sx, sy, sz = cells.shape
    if not (0 <= x < sx and 0 <= y < sy):
        return False

    for k in range(length):
        z = base + step * k
        if not 0 <= z < sz or claimed[x, y, z] or cells[x, y, z] != color:
            return False

    cap = base + step * length
    return not 0 <= cap < sz or cells[x, y, cap] == 0
