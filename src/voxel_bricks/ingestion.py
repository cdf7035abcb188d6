"""
MagicaVoxel .vox Loader

Reads a .vox file into a VoxelGrid plus its Palette.

The .vox format is a RIFF-style chunk-based binary format:
- Header: "VOX " (4 bytes) + version (4 bytes, int32)
- MAIN chunk (container)
  - SIZE / XYZI pairs: one per model
  - nTRN / nGRP / nSHP: scene graph placing model instances
  - RGBA chunk: 256-color palette (optional)

Every model instance found in the scene graph is placed in one shared
grid. Instances are centred on their translation and rotated by their
transform node, and the combined model is shifted into the non-negative
octant. Later instances win where two overlap.
"""

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union
import logging
import struct
import numpy as np

from .color import Palette
from .voxelizer import VoxelGrid

logger = logging.getLogger(__name__)


# VOX format constants
VOX_MAGIC = b'VOX '

_CUBE_LEVELS = (0xff, 0xcc, 0x99, 0x66, 0x33, 0x00)
_RAMP_LEVELS = (0xee, 0xdd, 0xbb, 0xaa, 0x88, 0x77, 0x55, 0x44, 0x22, 0x11)


def default_palette() -> Palette:
    """
    MagicaVoxel's built-in palette, used when a file has no RGBA chunk.

    Index 0 is empty, then a 6-level color cube without black, then ten
    step ramps of red, green, blue and gray.
    """
    colors = [(0, 0, 0, 0)]
    cube = [(r, g, b, 255) for r in _CUBE_LEVELS for g in _CUBE_LEVELS for b in _CUBE_LEVELS]
    colors.extend(cube[:-1])
    colors.extend((v, 0, 0, 255) for v in _RAMP_LEVELS)
    colors.extend((0, v, 0, 255) for v in _RAMP_LEVELS)
    colors.extend((0, 0, v, 255) for v in _RAMP_LEVELS)
    colors.extend((v, v, v, 255) for v in _RAMP_LEVELS)
    return Palette(np.array(colors, dtype=np.uint8))


def rotation_matrix(rotation_byte: int) -> np.ndarray:
    """
    Decode a .vox `_r` rotation byte into a 3x3 integer matrix.

    Bits 0-1 hold the column of the non-zero entry in row 0, bits 2-3 the
    one in row 1 (row 2 takes the remaining column), and bits 4, 5 and 6
    make rows 0, 1 and 2 negative.
    """
    first = rotation_byte & 0b11
    second = (rotation_byte >> 2) & 0b11
    if first > 2 or second > 2 or first == second:
        raise ValueError(f"Invalid .vox rotation byte: {rotation_byte}")
    third = 3 - first - second

    matrix = np.zeros((3, 3), dtype=np.int64)
    for row, column in enumerate((first, second, third)):
        negative = (rotation_byte >> (4 + row)) & 1
        matrix[row, column] = -1 if negative else 1
    return matrix


class _ChunkReader:
    """Cursor over chunk content bytes."""

    def __init__(self, content: bytes):
        self._content = content
        self._pos = 0

    def i32(self) -> int:
        value = struct.unpack_from('<i', self._content, self._pos)[0]
        self._pos += 4
        return value

    def string(self) -> str:
        length = self.i32()
        value = self._content[self._pos:self._pos + length]
        self._pos += length
        return value.decode('utf-8', errors='replace')

    def dict(self) -> Dict[str, str]:
        return {self.string(): self.string() for _ in range(self.i32())}


def _iter_chunks(data: bytes, start: int, end: int) -> Iterator[Tuple[bytes, bytes]]:
    """Yield (chunk_id, content) for the chunks in data[start:end], depth first."""
    pos = start
    while pos + 12 <= end:
        chunk_id = data[pos:pos + 4]
        content_size, children_size = struct.unpack_from('<II', data, pos + 4)
        content_start = pos + 12
        content = data[content_start:content_start + content_size]
        yield chunk_id, content

        children_start = content_start + content_size
        if children_size:
            yield from _iter_chunks(data, children_start, children_start + children_size)
        pos = children_start + children_size


class VoxLoader:
    """
    Loader for MagicaVoxel .vox files.

    Usage:
        grid, palette = VoxLoader().load("model.vox")
    """

    def __init__(self):
        self.models: List[Tuple[Tuple[int, int, int], np.ndarray]] = []
        self._nodes: Dict[int, Tuple[bytes, dict]] = {}
        self._rgba: Optional[np.ndarray] = None

    def load(self, file_path: Union[str, Path]) -> Tuple[VoxelGrid, Palette]:
        """
        Load a .vox file.

        Args:
            file_path: Path to .vox file

        Returns:
            Tuple of (grid, palette)
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"VOX file not found: {file_path}")
        return self.load_bytes(file_path.read_bytes())

    def load_bytes(self, data: bytes) -> Tuple[VoxelGrid, Palette]:
        """Load .vox content already read into memory."""
        if data[:4] != VOX_MAGIC:
            raise ValueError(f"Invalid VOX file: bad magic {data[:4]}")
        version = struct.unpack_from('<i', data, 4)[0]

        chunks = _iter_chunks(data, 8, len(data))
        main_id, _ = next(chunks, (None, None))
        if main_id != b'MAIN':
            raise ValueError("Expected MAIN chunk")

        size = None
        for chunk_id, content in chunks:
            if chunk_id == b'SIZE':
                size = struct.unpack_from('<III', content)
            elif chunk_id == b'XYZI':
                if size is None:
                    raise ValueError("XYZI chunk without a preceding SIZE chunk")
                count = struct.unpack_from('<I', content)[0]
                voxels = np.frombuffer(content, dtype=np.uint8, count=count * 4, offset=4)
                self.models.append((size, voxels.reshape(count, 4)))
                size = None
            elif chunk_id == b'RGBA':
                self._rgba = np.frombuffer(content, dtype=np.uint8, count=1024).reshape(256, 4)
            elif chunk_id in (b'nTRN', b'nGRP', b'nSHP'):
                self._read_node(chunk_id, content)

        if not self.models:
            raise ValueError("VOX file contains no models")

        logger.info(
            "Read %d models (version %d, %d scene nodes)",
            len(self.models), version, len(self._nodes)
        )

        palette = default_palette() if self._rgba is None else Palette.from_vox_rgba(self._rgba)
        return self._build_grid(), palette

    def _read_node(self, chunk_id: bytes, content: bytes):
        reader = _ChunkReader(content)
        node_id = reader.i32()
        reader.dict()  # node attributes

        if chunk_id == b'nTRN':
            child = reader.i32()
            reader.i32()  # reserved
            reader.i32()  # layer
            frames = [reader.dict() for _ in range(reader.i32())]
            frame = frames[0] if frames else {}
            translation = np.array(
                [int(v) for v in frame.get('_t', '0 0 0').split()], dtype=np.int64
            )
            rotation = rotation_matrix(int(frame.get('_r', '4')))
            self._nodes[node_id] = (chunk_id, {
                "child": child, "translation": translation, "rotation": rotation
            })
        elif chunk_id == b'nGRP':
            children = [reader.i32() for _ in range(reader.i32())]
            self._nodes[node_id] = (chunk_id, {"children": children})
        else:
            models = []
            for _ in range(reader.i32()):
                models.append(reader.i32())
                reader.dict()  # model attributes
            self._nodes[node_id] = (chunk_id, {"models": models})

    def _instances(self) -> List[Tuple[int, np.ndarray, np.ndarray, bool]]:
        """(model_id, rotation, translation, centred) for every placed model."""
        if 0 not in self._nodes:
            identity = np.eye(3, dtype=np.int64)
            zero = np.zeros(3, dtype=np.int64)
            return [(i, identity, zero, False) for i in range(len(self.models))]

        instances = []
        stack = [(0, np.eye(3, dtype=np.int64), np.zeros(3, dtype=np.int64))]
        while stack:
            node_id, rotation, translation = stack.pop()
            kind, node = self._nodes[node_id]
            if kind == b'nTRN':
                stack.append((
                    node["child"],
                    rotation @ node["rotation"],
                    rotation @ node["translation"] + translation,
                ))
            elif kind == b'nGRP':
                for child in reversed(node["children"]):
                    stack.append((child, rotation, translation))
            else:
                for model_id in node["models"]:
                    instances.append((model_id, rotation, translation, True))
        return instances

    def _build_grid(self) -> VoxelGrid:
        placed_coords = []
        placed_indices = []

        for model_id, rotation, translation, centred in self._instances():
            size, voxels = self.models[model_id]
            coords = voxels[:, :3].astype(np.int64)
            if centred:
                coords = coords - np.array(size, dtype=np.int64) // 2
            coords = coords @ rotation.T + translation
            placed_coords.append(coords)
            placed_indices.append(voxels[:, 3])

        coords = np.concatenate(placed_coords)
        indices = np.concatenate(placed_indices)
        keep = indices != 0
        coords, indices = coords[keep], indices[keep]

        if len(coords) == 0:
            # Keep the declared extents of an empty model
            return VoxelGrid(*(max(1, int(s)) for s in self.models[0][0]))

        origin = coords.min(axis=0)
        coords = coords - origin
        shape = tuple(int(s) for s in coords.max(axis=0) + 1)

        grid = VoxelGrid(*shape)
        grid.data[coords[:, 0], coords[:, 1], coords[:, 2]] = indices
        return grid


def load_vox(file_path: Union[str, Path]) -> Tuple[VoxelGrid, Palette]:
    """
    Load a .vox file.

    Args:
        file_path: Path to .vox file

    Returns:
        Tuple of (grid, palette)
    """
    return VoxLoader().load(file_path)
