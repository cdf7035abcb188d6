"""
Brickadia .brs Format Exporter

The .brs format is Brickadia's save file. It is a small fixed header
followed by zlib-compressed sections; the brick section is a bit stream.

File Structure (version 10):
- Header: "BRS" (3 bytes) + version (uint16) + game version (int32)
- Header 1 section: map, author, description, host, save time, brick count
- Header 2 section: mods, brick assets, colors, materials, owners,
  physical materials
- Preview: type byte (0 = none)
- Bricks section: one byte-aligned bit record per brick
- Components section: component count (0)

Sections are (uncompressed size, compressed size, payload); a compressed
size of 0 means the payload is stored raw. All integers are little-endian
and bit streams are packed least-significant bit first.

Units: one stud is 10 units. Brick positions are box centres, brick
sizes are half extents.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union
import logging
import os
import struct
import tempfile
import uuid
import zlib
import numpy as np

from ..color import Palette, dedupe_colors
from ..errors import SerializationOverflow
from ..placement import PieceKind, Placement
from ..units import MappedGrid

logger = logging.getLogger(__name__)


# BRS format constants
BRS_MAGIC = b'BRS'
BRS_VERSION = 10
GAME_VERSION = 3642

MAX_COORDINATE = 2 ** 31 - 1
MAX_UINT = 2 ** 32 - 1

RAMP_ASSET = "PB_DefaultRamp"
ASSET_ORDER = ("PB_DefaultBrick", "PB_DefaultMicroBrick", RAMP_ASSET)

DEFAULT_MATERIAL = "BMC_Plastic"
DEFAULT_INTENSITY = 5
DEFAULT_DESCRIPTION = "Converted .vox file."

_TICKS_EPOCH = datetime(1, 1, 1)


class Direction(IntEnum):
    """Axis a brick's local +Z points along."""
    X_POSITIVE = 0
    X_NEGATIVE = 1
    Y_POSITIVE = 2
    Y_NEGATIVE = 3
    Z_POSITIVE = 4
    Z_NEGATIVE = 5


class Rotation(IntEnum):
    """Quarter turns about the brick's direction axis."""
    DEG_0 = 0
    DEG_90 = 1
    DEG_180 = 2
    DEG_270 = 3


@dataclass(frozen=True)
class User:
    """A Brickadia user: display name plus account UUID."""
    name: str
    id: str


PUBLIC_USER = User(name="voxel_bricks", id="a8033bee-6c37-4118-b4a6-cecc1d966133")


@dataclass(frozen=True)
class BrickRecord:
    """One brick as stored in the bricks section."""

    asset_index: int
    size: Tuple[int, int, int]
    position: Tuple[int, int, int]
    direction: Direction = Direction.Z_POSITIVE
    rotation: Rotation = Rotation.DEG_0
    color_index: int = 0
    owner_index: int = 1
    collision: Tuple[bool, bool, bool, bool] = (True, True, True, True)
    visible: bool = True
    material_index: int = 0
    physical_index: int = 0
    material_intensity: int = DEFAULT_INTENSITY


class ByteWriter:
    """Little-endian writer for the byte-oriented header sections."""

    def __init__(self):
        self._buffer = bytearray()

    def _pack(self, fmt: str, value):
        try:
            self._buffer += struct.pack(fmt, value)
        except struct.error as e:
            raise SerializationOverflow(f"Cannot encode {value!r} as {fmt}: {e}") from e

    def u8(self, value: int):
        self._pack('<B', value)

    def u16(self, value: int):
        self._pack('<H', value)

    def i32(self, value: int):
        self._pack('<i', value)

    def i64(self, value: int):
        self._pack('<q', value)

    def raw(self, data: bytes):
        self._buffer += data

    def string(self, text: str):
        """Length-prefixed, NUL-terminated ASCII or UTF-16LE string."""
        if text.isascii():
            encoded = text.encode('ascii') + b'\x00'
            self.i32(len(encoded))
        else:
            encoded = text.encode('utf-16-le') + b'\x00\x00'
            self.i32(-(len(encoded) // 2))
        self.raw(encoded)

    def uuid(self, value: str):
        """16 UUID bytes, each 4-byte group byte-reversed."""
        data = uuid.UUID(value).bytes
        for i in range(0, 16, 4):
            self.raw(data[i:i + 4][::-1])

    def color(self, rgba: Tuple[int, int, int, int]):
        r, g, b, a = rgba
        for channel in (b, g, r, a):
            self.u8(channel)

    def array(self, items: Sequence, write_item: Callable):
        self.i32(len(items))
        for item in items:
            write_item(item)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


class BitWriter:
    """
    LSB-first bit stream writer for the bricks section.

    Integer encodings follow Unreal's FBitWriter, which the save format
    inherits.
    """

    def __init__(self):
        self._bits: List[int] = []

    def bit(self, value: bool):
        self._bits.append(1 if value else 0)

    def bits(self, value: int, count: int):
        """Write the low `count` bits of `value`, least significant first."""
        for i in range(count):
            self._bits.append((value >> i) & 1)

    def align(self):
        """Pad with zero bits up to the next byte boundary."""
        while len(self._bits) % 8:
            self._bits.append(0)

    def uint(self, value: int, max_value: int):
        """
        Write `value` using just enough bits to express `max_value - 1`.

        Raises:
            SerializationOverflow: If value is not in [0, max_value)
        """
        if max_value < 2:
            raise ValueError(f"max_value must be at least 2, got {max_value}")
        if not 0 <= value < max_value:
            raise SerializationOverflow(
                f"Value {value} does not fit below {max_value}"
            )

        new_value = 0
        mask = 1
        while new_value + mask < max_value and mask:
            self.bit(value & mask)
            if value & mask:
                new_value |= mask
            mask <<= 1

    def uint_packed(self, value: int):
        """
        Variable-length unsigned int: 7-bit groups, each preceded by a
        "more follows" bit.

        Raises:
            SerializationOverflow: If value is not a uint32
        """
        if not 0 <= value <= MAX_UINT:
            raise SerializationOverflow(f"Value {value} is not a uint32")

        while True:
            chunk = value & 0x7F
            value >>= 7
            self.bit(value != 0)
            self.bits(chunk, 7)
            if value == 0:
                break

    def int_packed(self, value: int):
        """
        Variable-length signed int: magnitude shifted left, sign in bit 0
        (1 = non-negative).

        Raises:
            SerializationOverflow: If value is not an int32 magnitude
        """
        if abs(value) > MAX_COORDINATE:
            raise SerializationOverflow(f"Value {value} exceeds the int32 range")
        self.uint_packed((abs(value) << 1) | (1 if value >= 0 else 0))

    def getvalue(self) -> bytes:
        self.align()
        if not self._bits:
            return b''
        return np.packbits(
            np.array(self._bits, dtype=np.uint8), bitorder='little'
        ).tobytes()


def _write_section(writer: ByteWriter, payload: bytes):
    """Append a section, zlib-compressed when that makes it smaller."""
    compressed = zlib.compress(payload)
    writer.i32(len(payload))
    if len(compressed) < len(payload):
        writer.i32(len(compressed))
        writer.raw(compressed)
    else:
        writer.i32(0)
        writer.raw(payload)


def _save_ticks(save_time: Optional[datetime]) -> int:
    """.NET ticks (100 ns since 0001-01-01 UTC), 0 when unset."""
    if save_time is None:
        return 0
    if save_time.tzinfo is not None:
        save_time = save_time.astimezone(timezone.utc).replace(tzinfo=None)
    delta = save_time - _TICKS_EPOCH
    return (delta.days * 86400 + delta.seconds) * 10_000_000 + delta.microseconds * 10


@dataclass(frozen=True)
class SaveDocument:
    """
    A complete Brickadia save, ready to be serialized.

    Attributes:
        bricks: Brick records in write order
        brick_assets: Asset names referenced by BrickRecord.asset_index
        colors: Dense (r, g, b, a) palette referenced by color_index
        bounds: Stud-space bounding box (min_xyz, max_xyz) in save units
    """

    bricks: Tuple[BrickRecord, ...]
    brick_assets: Tuple[str, ...]
    colors: Tuple[Tuple[int, int, int, int], ...]
    bounds: Tuple[Tuple[int, int, int], Tuple[int, int, int]]
    description: str = DEFAULT_DESCRIPTION
    map: str = "Plate"
    author: User = PUBLIC_USER
    host: User = PUBLIC_USER
    save_time: Optional[datetime] = None
    game_version: int = GAME_VERSION
    mods: Tuple[str, ...] = ()
    materials: Tuple[str, ...] = (DEFAULT_MATERIAL,)
    physical_materials: Tuple[str, ...] = ()
    owners: Tuple[User, ...] = field(default=(PUBLIC_USER,))

    @property
    def brick_count(self) -> int:
        return len(self.bricks)

    def _header1(self) -> bytes:
        w = ByteWriter()
        w.string(self.map)
        w.string(self.author.name)
        w.string(self.description)
        w.uuid(self.author.id)
        w.string(self.host.name)
        w.uuid(self.host.id)
        w.i64(_save_ticks(self.save_time))
        w.i32(self.brick_count)
        return w.getvalue()

    def _header2(self) -> bytes:
        counts: Dict[int, int] = {}
        for brick in self.bricks:
            counts[brick.owner_index] = counts.get(brick.owner_index, 0) + 1

        def write_owner(item):
            index, owner = item
            w.uuid(owner.id)
            w.string(owner.name)
            w.i32(counts.get(index, 0))

        w = ByteWriter()
        w.array(self.mods, w.string)
        w.array(self.brick_assets, w.string)
        w.array(self.colors, w.color)
        w.array(self.materials, w.string)
        # Owner index 0 is "public"; list entries are 1-based
        w.array(list(enumerate(self.owners, start=1)), write_owner)
        w.array(self.physical_materials, w.string)
        return w.getvalue()

    def _bricks(self) -> bytes:
        bits = BitWriter()
        asset_max = max(len(self.brick_assets), 2)
        material_max = max(len(self.materials), 2)
        physical_max = max(len(self.physical_materials), 2)
        color_max = max(len(self.colors), 2)

        for brick in self.bricks:
            bits.align()
            bits.uint(brick.asset_index, asset_max)

            bits.bit(True)  # procedural size
            for half in brick.size:
                bits.uint_packed(half)

            for coord in brick.position:
                bits.int_packed(coord)

            bits.uint((int(brick.direction) << 2) | int(brick.rotation), 24)

            for flag in brick.collision:
                bits.bit(flag)
            bits.bit(brick.visible)

            bits.uint(brick.material_index, material_max)
            bits.uint(brick.physical_index, physical_max)
            bits.uint(brick.material_intensity, 11)

            bits.bit(False)  # indexed color
            bits.uint(brick.color_index, color_max)

            bits.uint_packed(brick.owner_index)

        return bits.getvalue()

    def to_bytes(self) -> bytes:
        """
        Serialize the document.

        Raises:
            SerializationOverflow: If any field is outside its encodable range
        """
        w = ByteWriter()
        w.raw(BRS_MAGIC)
        w.u16(BRS_VERSION)
        w.i32(self.game_version)

        _write_section(w, self._header1())
        _write_section(w, self._header2())

        w.u8(0)  # no preview

        _write_section(w, self._bricks())

        components = ByteWriter()
        components.i32(0)
        _write_section(w, components.getvalue())

        return w.getvalue()

    def write(self, output_path: Union[str, Path]) -> Path:
        """
        Serialize and write the document atomically.

        The bytes are produced in memory first and land in a temporary file
        next to the destination, which is then renamed over it. A failure
        at any point leaves the destination untouched.

        Args:
            output_path: Destination .brs path

        Returns:
            The destination path
        """
        output_path = Path(output_path)
        data = self.to_bytes()

        fd, tmp_name = tempfile.mkstemp(
            prefix=output_path.name + ".", suffix=".tmp",
            dir=output_path.parent
        )
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_name, output_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info("Save written to %s (%d bytes)", output_path, len(data))
        return output_path


# Quarter turn taking local +X onto each save-space direction [+X, +Y, -X, -Y].
# Upside-down bricks turn the other way around the flipped axis.
def _ramp_orientation(placement: Placement) -> Tuple[Direction, Rotation]:
    # Mirroring y swaps the two y facings
    save_facing = (-int(placement.facing)) % 4
    if placement.inverted:
        return Direction.Z_NEGATIVE, Rotation((-save_facing) % 4)
    return Direction.Z_POSITIVE, Rotation(save_facing)


class BrsExporter:
    """
    Build and write Brickadia saves from placement sets.

    Usage:
        exporter = BrsExporter()
        document = exporter.build(placements, palette, mapped)
        exporter.export(document, "output.brs")
    """

    def __init__(
        self,
        author: User = PUBLIC_USER,
        gamma: float = 2.2,
        save_time: Optional[datetime] = None
    ):
        """
        Initialize the exporter.

        Args:
            author: Author, host and owner of every brick
            gamma: Gamma used to correct palette colors
            save_time: Timestamp stored in the header (None = zero, which
                keeps output byte-identical across runs)
        """
        self.author = author
        self.gamma = gamma
        self.save_time = save_time

    def build(
        self,
        placements: Iterable[Placement],
        palette: Palette,
        mapped: MappedGrid,
        source_name: Optional[str] = None
    ) -> SaveDocument:
        """
        Translate placements into a save document.

        Args:
            placements: Final placement set, in write order
            palette: Palette the placement colors index into
            mapped: Mapped grid the placements were built on (mode and
                cell size)
            source_name: Optional model name for the description

        Returns:
            SaveDocument
        """
        placements = list(placements)
        hx, hy, hz = mapped.unit_size

        colors, color_remap = dedupe_colors(
            palette, (p.color for p in placements), self.gamma
        )

        wanted = {RAMP_ASSET if p.kind is PieceKind.RAMP else mapped.mode.asset
                  for p in placements}
        assets = tuple(name for name in ASSET_ORDER if name in wanted)
        asset_index = {name: i for i, name in enumerate(assets)}

        bricks = []
        lo = [MAX_COORDINATE] * 3
        hi = [-MAX_COORDINATE] * 3

        for p in placements:
            (x, y, z), (w, d, h) = p.origin, p.extents

            # MagicaVoxel is right-handed and Brickadia left-handed: flip y
            position = ((2 * x + w) * hx, -(2 * y + d) * hy, (2 * z + h) * hz)
            size = (w * hx, d * hy, h * hz)

            if p.kind is PieceKind.RAMP:
                asset = RAMP_ASSET
                direction, rotation = _ramp_orientation(p)
            else:
                asset = mapped.mode.asset
                direction, rotation = Direction.Z_POSITIVE, Rotation.DEG_0

            if rotation % 2:
                size = (size[1], size[0], size[2])

            bricks.append(BrickRecord(
                asset_index=asset_index[asset],
                size=size,
                position=position,
                direction=direction,
                rotation=rotation,
                color_index=color_remap[p.color],
            ))

            corner_lo = (2 * x * hx, -2 * (y + d) * hy, 2 * z * hz)
            corner_hi = (2 * (x + w) * hx, -2 * y * hy, 2 * (z + h) * hz)
            lo = [min(a, b) for a, b in zip(lo, corner_lo)]
            hi = [max(a, b) for a, b in zip(hi, corner_hi)]

        if not bricks:
            lo = hi = [0, 0, 0]

        extent = " x ".join(str(b - a) for a, b in zip(lo, hi))
        description = (
            f"Converted {source_name or '.vox file'}. "
            f"Extents {extent} units."
        )

        logger.info(
            "Built save with %d bricks, %d colors, %d assets",
            len(bricks), len(colors), len(assets)
        )
        return SaveDocument(
            bricks=tuple(bricks),
            brick_assets=assets,
            colors=tuple(colors),
            bounds=(tuple(lo), tuple(hi)),
            description=description,
            author=self.author,
            host=self.author,
            owners=(self.author,),
            save_time=self.save_time,
        )

    def export(
        self,
        document: SaveDocument,
        output_path: Union[str, Path]
    ) -> Path:
        """Write a document to disk (atomically)."""
        return document.write(output_path)


class _ByteReader:
    """Cursor over little-endian header bytes."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    def _unpack(self, fmt: str):
        value = struct.unpack_from(fmt, self._data, self._pos)[0]
        self._pos += struct.calcsize(fmt)
        return value

    def u8(self) -> int:
        return self._unpack('<B')

    def u16(self) -> int:
        return self._unpack('<H')

    def i32(self) -> int:
        return self._unpack('<i')

    def i64(self) -> int:
        return self._unpack('<q')

    def raw(self, count: int) -> bytes:
        data = self._data[self._pos:self._pos + count]
        if len(data) < count:
            raise ValueError("Unexpected end of BRS data")
        self._pos += count
        return data

    def string(self) -> str:
        length = self.i32()
        if length >= 0:
            return self.raw(length)[:-1].decode('ascii')
        return self.raw(-length * 2)[:-2].decode('utf-16-le')

    def uuid(self) -> str:
        data = b''.join(self.raw(4)[::-1] for _ in range(4))
        return str(uuid.UUID(bytes=data))

    def color(self) -> Tuple[int, int, int, int]:
        b, g, r, a = self.raw(4)
        return (r, g, b, a)

    def array(self, read_item: Callable) -> list:
        return [read_item() for _ in range(self.i32())]

    def section(self) -> "_ByteReader":
        uncompressed = self.i32()
        compressed = self.i32()
        if compressed == 0:
            return _ByteReader(self.raw(uncompressed))
        return _ByteReader(zlib.decompress(self.raw(compressed)))


def load_brs_header(data: Union[bytes, str, Path]) -> dict:
    """
    Read the header sections of a .brs file.

    Args:
        data: File contents or a path to the file

    Returns:
        Dictionary with version, game_version, map, author, description,
        host, save_ticks, brick_count, mods, brick_assets, colors,
        materials, owners and physical_materials
    """
    if not isinstance(data, (bytes, bytearray)):
        data = Path(data).read_bytes()

    reader = _ByteReader(bytes(data))
    magic = reader.raw(3)
    if magic != BRS_MAGIC:
        raise ValueError(f"Invalid BRS file: bad magic {magic}")

    version = reader.u16()
    if version != BRS_VERSION:
        raise ValueError(f"Unsupported BRS version {version}")
    game_version = reader.i32()

    h1 = reader.section()
    header = {
        "version": version,
        "game_version": game_version,
        "map": h1.string(),
    }
    author_name = h1.string()
    header["description"] = h1.string()
    header["author"] = User(name=author_name, id=h1.uuid())
    host_name = h1.string()
    header["host"] = User(name=host_name, id=h1.uuid())
    header["save_ticks"] = h1.i64()
    header["brick_count"] = h1.i32()

    h2 = reader.section()
    header["mods"] = h2.array(h2.string)
    header["brick_assets"] = h2.array(h2.string)
    header["colors"] = h2.array(h2.color)
    header["materials"] = h2.array(h2.string)

    def read_owner():
        owner_id = h2.uuid()
        name = h2.string()
        return (User(name=name, id=owner_id), h2.i32())

    header["owners"] = h2.array(read_owner)
    header["physical_materials"] = h2.array(h2.string)
    header["preview_type"] = reader.u8()

    return header
