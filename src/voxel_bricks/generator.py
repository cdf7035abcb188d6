"""
Main Conversion Pipeline

This is the primary interface for turning voxel models into saves.
It orchestrates:
1. Unit mapping (piece mode and footprint multipliers)
2. Greedy merging into cuboid pieces (simplify)
3. Ramp synthesis over the merged pieces (rampify)
4. Serialization to a Brickadia save document

Example Usage:
    generator = BrickGenerator(mode="plate", simplify=True)
    generator.load_vox("model.vox")
    generator.convert()
    generator.export_brs("model.brs")
"""

from pathlib import Path
from typing import List, Optional, Union
import logging
import time

from .color import Palette
from .errors import EmptyModel, ModelTooLarge
from .exporters import BrsExporter, SaveDocument
from .exporters.brs_exporter import MAX_COORDINATE
from .greedy_merge import GreedyMerger, unit_placements
from .ingestion import load_vox
from .placement import Placement
from .rampify import Rampifier
from .units import MappedGrid, PieceMode, UnitMapper
from .voxelizer import VoxelGrid

logger = logging.getLogger(__name__)


def _check_extents(mapped: MappedGrid):
    """Raise ModelTooLarge when the mapped model leaves the coordinate range."""
    for axis, (cells, half) in enumerate(zip(mapped.shape, mapped.unit_size)):
        if 2 * cells * half > MAX_COORDINATE:
            raise ModelTooLarge(
                f"Model spans {2 * cells * half} units along axis {'xyz'[axis]}, "
                f"the save format allows {MAX_COORDINATE}"
            )


def build_placements(
    mapped: MappedGrid,
    simplify: bool = False,
    rampify: bool = False,
    max_extent: Optional[int] = None
) -> List[Placement]:
    """
    Run the piece stages over a mapped grid.

    Args:
        mapped: Output of the unit mapper
        simplify: Merge cells into larger cuboids
        rampify: Replace staircases with ramps (implies simplify)
        max_extent: Optional cap on merged piece length per axis

    Returns:
        Final placement list in write order
    """
    if rampify or simplify:
        merger = GreedyMerger(max_extent=max_extent)
        placements = merger.merge(mapped.cells)
        logger.info(
            "Simplified %d cells into %d pieces",
            mapped.count_cells(), len(placements)
        )
        if rampify:
            placements = Rampifier(merger=merger).rampify(placements, mapped.shape)
    else:
        placements = unit_placements(mapped.cells)

    return placements


def convert(
    grid: VoxelGrid,
    palette: Palette,
    mode: Union[PieceMode, str] = PieceMode.BRICK,
    width_scale: int = 1,
    height_scale: int = 1,
    rampify: bool = False,
    simplify: bool = False,
    depth_scale: Optional[int] = None,
    max_extent: Optional[int] = None,
    source_name: Optional[str] = None,
    exporter: Optional[BrsExporter] = None
) -> SaveDocument:
    """
    Convert a voxel grid into a Brickadia save document.

    Args:
        grid: Voxel model (read-only)
        palette: Palette the voxel indices refer to
        mode: Piece mode or its name ("brick", "plate", "microbrick")
        width_scale: Voxels per piece along x
        height_scale: Voxels per piece along z
        rampify: Replace staircases with ramps (implies simplify)
        simplify: Merge voxels into larger pieces
        depth_scale: Voxels per piece along y (defaults to width_scale)
        max_extent: Optional cap on merged piece length per axis
        source_name: Model name recorded in the save description
        exporter: Exporter to build the document with

    Returns:
        SaveDocument

    Raises:
        InvalidScale: A multiplier is not a positive integer
        EmptyModel: The grid has no voxels
        ModelTooLarge: The mapped model exceeds the save coordinate range
        SerializationOverflow: A field cannot be encoded
    """
    start_time = time.time()

    if isinstance(mode, str):
        mode = PieceMode.from_name(mode)

    if rampify and mode is PieceMode.MICROBRICK:
        logger.warning("Ramps are not available for microbricks, using bricks")
        mode = PieceMode.BRICK

    simplify = simplify or rampify

    mapper = UnitMapper(mode, width_scale, depth_scale, height_scale)

    if grid.count_voxels() == 0:
        raise EmptyModel("The model has no voxels to convert")
    palette.validate(grid)

    logger.info("Converting %d voxels into %s pieces", grid.count_voxels(), mode.label)
    mapped = mapper.map(grid)
    _check_extents(mapped)

    placements = build_placements(mapped, simplify, rampify, max_extent)

    exporter = exporter or BrsExporter()
    document = exporter.build(placements, palette, mapped, source_name)
    # Encode once so overflow surfaces here rather than at write time
    document.to_bytes()

    logger.info(
        "Finished in %.3fs, created %d bricks",
        time.time() - start_time, document.brick_count
    )
    return document


class BrickGenerator:
    """
    High-level interface for voxel to brick conversion.

    Attributes:
        mode: Piece mode used for every piece
        width_scale, depth_scale, height_scale: Voxels per piece
        simplify: Merge voxels into larger pieces
        rampify: Replace staircases with ramps
    """

    def __init__(
        self,
        mode: Union[PieceMode, str] = PieceMode.BRICK,
        width_scale: int = 1,
        height_scale: int = 1,
        depth_scale: Optional[int] = None,
        simplify: bool = False,
        rampify: bool = False,
        max_extent: Optional[int] = None
    ):
        self.mode = PieceMode.from_name(mode) if isinstance(mode, str) else mode
        self.width_scale = width_scale
        self.height_scale = height_scale
        self.depth_scale = depth_scale
        self.simplify = simplify
        self.rampify = rampify
        self.max_extent = max_extent

        self._grid: Optional[VoxelGrid] = None
        self._palette: Optional[Palette] = None
        self._source_name: Optional[str] = None
        self._document: Optional[SaveDocument] = None

    def load_vox(self, vox_path: Union[str, Path]) -> "BrickGenerator":
        """
        Load a MagicaVoxel model.

        Returns:
            self for method chaining
        """
        vox_path = Path(vox_path)
        self._grid, self._palette = load_vox(vox_path)
        self._source_name = vox_path.name
        self._document = None
        return self

    def load_grid(
        self,
        grid: VoxelGrid,
        palette: Palette,
        source_name: Optional[str] = None
    ) -> "BrickGenerator":
        """
        Use an in-memory grid and palette.

        Returns:
            self for method chaining
        """
        self._grid = grid
        self._palette = palette
        self._source_name = source_name
        self._document = None
        return self

    def set_mode(self, mode: Union[PieceMode, str]) -> "BrickGenerator":
        """
        Change the piece mode.

        Returns:
            self for method chaining
        """
        self.mode = PieceMode.from_name(mode) if isinstance(mode, str) else mode
        self._document = None
        return self

    def convert(self) -> "BrickGenerator":
        """
        Run the pipeline on the loaded model.

        Returns:
            self for method chaining
        """
        if self._grid is None or self._palette is None:
            raise RuntimeError("No model loaded. Call load_vox() first.")

        self._document = convert(
            self._grid,
            self._palette,
            mode=self.mode,
            width_scale=self.width_scale,
            height_scale=self.height_scale,
            rampify=self.rampify,
            simplify=self.simplify,
            depth_scale=self.depth_scale,
            max_extent=self.max_extent,
            source_name=self._source_name,
        )
        return self

    def export_brs(self, output_path: Union[str, Path]) -> Path:
        """
        Write the converted save.

        Args:
            output_path: Destination .brs path

        Returns:
            The written path
        """
        if self._document is None:
            self.convert()
        return self._document.write(output_path)

    @property
    def grid(self) -> Optional[VoxelGrid]:
        return self._grid

    @property
    def document(self) -> Optional[SaveDocument]:
        return self._document

    @property
    def voxel_count(self) -> int:
        if self._grid is None:
            return 0
        return self._grid.count_voxels()

    @property
    def brick_count(self) -> int:
        if self._document is None:
            return 0
        return self._document.brick_count

    def get_stats(self) -> dict:
        """
        Get conversion statistics.

        Returns:
            Dictionary with conversion statistics
        """
        if self._document is None:
            return {"error": "Nothing converted"}

        assets = self._document.brick_assets
        per_asset = {name: 0 for name in assets}
        for brick in self._document.bricks:
            per_asset[assets[brick.asset_index]] += 1

        voxels = self.voxel_count
        bricks = self.brick_count
        return {
            "voxel_count": voxels,
            "grid_size": self._grid.shape,
            "brick_count": bricks,
            "color_count": len(self._document.colors),
            "bricks_per_asset": per_asset,
            "bounds": self._document.bounds,
            "reduction_percent": (1 - bricks / voxels) * 100 if voxels else 0,
        }
