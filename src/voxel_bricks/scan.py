"""
Shared Scan Order

The greedy merger and the rampifier both visit cells in ascending z, then
y, then x.
"""

from typing import Tuple
import numpy as np


def scan_order(mask: np.ndarray) -> np.ndarray:
    """
    Coordinates of the True cells of an (X, Y, Z) mask in scan order.

    Args:
        mask: Boolean array of shape (X, Y, Z)

    Returns:
        int64 array of shape (N, 3) with xyz rows sorted by (z, y, x)
    """
    # argwhere is lexicographic over the transposed (Z, Y, X) view
    zyx = np.argwhere(mask.transpose(2, 1, 0))
    return np.ascontiguousarray(zyx[:, ::-1], dtype=np.int64)


def scan_key(cell: Tuple[int, int, int]) -> Tuple[int, int, int]:
    """Sort key placing a cell in scan order."""
    x, y, z = cell
    return (z, y, x)
