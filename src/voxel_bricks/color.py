"""
Color Management Module

Handles:
- The 256-entry voxel palette (index 0 reserved for "empty")
- Gamma correction from MagicaVoxel sRGB to Brickadia's linear colors
- Deduplication of the colors a placement set actually references

Color Space Background:
- MagicaVoxel palettes are authored in sRGB (perceptual) space
- Brickadia save colors are interpreted as linear values
- Failure to convert causes "washed out" bricks in game
"""

from typing import Dict, Iterable, List, Tuple
import numpy as np

PALETTE_SIZE = 256


def srgb_to_linear_simple(colors: np.ndarray, gamma: float = 2.2) -> np.ndarray:
    """
    Simple gamma approximation for sRGB to Linear.

    Args:
        colors: uint8 color array
        gamma: Gamma value (default 2.2)

    Returns:
        float32 linear color array
    """
    normalized = colors.astype(np.float32) / 255.0
    return np.power(normalized, gamma)


def gamma_correct(rgb: np.ndarray, gamma: float = 2.2) -> np.ndarray:
    """
    Gamma correct uint8 RGB values and bring them back to 0-255.

    Values are truncated rather than rounded, which is what Brickadia
    converters have always produced for .vox palettes.

    Args:
        rgb: uint8 array of shape (N, 3)
        gamma: Gamma value (default 2.2)

    Returns:
        uint8 array of shape (N, 3)
    """
    linear = srgb_to_linear_simple(rgb, gamma)
    return (linear * 255.0).astype(np.uint8)


class Palette:
    """
    Ordered RGBA palette addressed by voxel palette index.

    Entry `i` is the color of voxels whose index is `i`. Entry 0 exists
    only so that indices line up; it is never referenced by a voxel.
    """

    def __init__(self, colors: np.ndarray):
        """
        Args:
            colors: Array of shape (N, 3) or (N, 4), N <= 256
        """
        colors = np.asarray(colors)
        if colors.ndim != 2 or colors.shape[1] not in (3, 4):
            raise ValueError("Palette colors must have shape (N, 3) or (N, 4)")
        if len(colors) > PALETTE_SIZE:
            raise ValueError(
                f"Palette holds at most {PALETTE_SIZE} colors, got {len(colors)}"
            )

        self._colors = np.zeros((len(colors), 4), dtype=np.uint8)
        self._colors[:, :colors.shape[1]] = colors
        if colors.shape[1] == 3:
            self._colors[:, 3] = 255

    @classmethod
    def from_vox_rgba(cls, rgba: np.ndarray) -> "Palette":
        """
        Build a palette from a .vox RGBA chunk.

        The chunk's entry k is the color of voxel index k + 1, so the
        table is shifted by one and its last entry dropped.

        Args:
            rgba: Array of shape (256, 4)
        """
        colors = np.zeros((PALETTE_SIZE, 4), dtype=np.uint8)
        colors[1:] = np.asarray(rgba, dtype=np.uint8)[:PALETTE_SIZE - 1]
        return cls(colors)

    @property
    def colors(self) -> np.ndarray:
        """Get the raw (N, 4) uint8 color table."""
        return self._colors

    def __len__(self) -> int:
        return len(self._colors)

    def __getitem__(self, index: int) -> Tuple[int, int, int, int]:
        r, g, b, a = self._colors[index]
        return (int(r), int(g), int(b), int(a))

    def validate(self, grid) -> None:
        """
        Check that every voxel index of `grid` resolves to a palette entry.

        Raises:
            ValueError: If an index is past the end of the palette
        """
        used = grid.used_indices()
        if len(used) and int(used[-1]) >= len(self):
            raise ValueError(
                f"Voxel palette index {int(used[-1])} is outside a palette "
                f"of {len(self)} colors"
            )


def dedupe_colors(
    palette: Palette,
    indices: Iterable[int],
    gamma: float = 2.2
) -> Tuple[List[Tuple[int, int, int, int]], Dict[int, int]]:
    """
    Build the dense save palette for a set of referenced indices.

    Indices are visited in ascending order; indices whose corrected colors
    are identical share one entry.

    Args:
        palette: Source palette
        indices: Palette indices referenced by at least one placement
        gamma: Gamma value used for correction

    Returns:
        Tuple of (colors, remap) where:
        - colors: List of (r, g, b, a) save colors, alpha forced to 255
        - remap: Dict from palette index to dense save color index
    """
    ordered = sorted(set(int(i) for i in indices))
    if not ordered:
        return [], {}

    rgb = palette.colors[ordered, :3]
    corrected = gamma_correct(rgb, gamma)

    colors: List[Tuple[int, int, int, int]] = []
    seen: Dict[Tuple[int, int, int, int], int] = {}
    remap: Dict[int, int] = {}

    for index, (r, g, b) in zip(ordered, corrected):
        color = (int(r), int(g), int(b), 255)
        if color not in seen:
            seen[color] = len(colors)
            colors.append(color)
        remap[index] = seen[color]

    return colors, remap
