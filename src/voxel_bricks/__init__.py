"""
Voxel Bricks
============

Converts MagicaVoxel voxel models into Brickadia save files.

This package maps every voxel (or block of voxels) onto a brick, plate or
microbrick, optionally merges neighbouring pieces of one color into larger
bricks, replaces staircases with ramp pieces, and writes the result as a
version 10 .brs save.

Key Features:
- MagicaVoxel .vox loading, including scene-graph translations and rotations
- Majority-vote downsampling for multi-voxel pieces
- Deterministic greedy merging with Numba JIT compilation
- Floor and ceiling ramp synthesis
- Byte-identical .brs output for identical inputs

Example Usage:
    from voxel_bricks import BrickGenerator

    generator = BrickGenerator(mode="plate", rampify=True)
    generator.load_vox("model.vox")
    generator.convert()
    generator.export_brs("model.brs")
"""

__version__ = "1.0.0"
__author__ = "Voxel Bricks Team"

from .generator import BrickGenerator, convert
from .errors import (
    ConversionError,
    InvalidScale,
    EmptyModel,
    ModelTooLarge,
    SerializationOverflow,
)
from .voxelizer import VoxelGrid
from .color import Palette
from .units import PieceMode, UnitMapper, MappedGrid
from .placement import Placement, PieceKind, Facing
from .greedy_merge import GreedyMerger
from .rampify import Rampifier
from .ingestion import load_vox
from .exporters import BrsExporter, SaveDocument, load_brs_header

__all__ = [
    "BrickGenerator",
    "convert",
    "ConversionError",
    "InvalidScale",
    "EmptyModel",
    "ModelTooLarge",
    "SerializationOverflow",
    "VoxelGrid",
    "Palette",
    "PieceMode",
    "UnitMapper",
    "MappedGrid",
    "Placement",
    "PieceKind",
    "Facing",
    "GreedyMerger",
    "Rampifier",
    "load_vox",
    "BrsExporter",
    "SaveDocument",
    "load_brs_header",
]
