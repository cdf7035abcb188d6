"""
Tests for the command-line interface.
"""

import struct
import sys
import tempfile
from pathlib import Path
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_bricks.cli import create_parser, main
from voxel_bricks.exporters import load_brs_header


def write_staircase_vox(path: Path):
    """Write a one-color three-step staircase as a .vox file."""
    voxels = [(0, y, z, 1) for y in range(3) for z in range(3 - y)]
    xyzi = struct.pack('<I', len(voxels)) + b''.join(bytes(v) for v in voxels)
    children = (
        b'SIZE' + struct.pack('<II', 12, 0) + struct.pack('<III', 1, 3, 3) +
        b'XYZI' + struct.pack('<II', len(xyzi), 0) + xyzi
    )
    main_chunk = b'MAIN' + struct.pack('<II', 0, len(children)) + children
    path.write_bytes(b'VOX ' + struct.pack('<i', 150) + main_chunk)


class TestCli(unittest.TestCase):
    """Tests for argument handling and exit codes."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.vox_path = self.tmpdir / "stairs.vox"
        write_staircase_vox(self.vox_path)

    def tearDown(self):
        self._tmp.cleanup()

    def test_defaults(self):
        """Test parser defaults."""
        args = create_parser().parse_args(["in.vox", "out.brs"])
        assert args.mode == "brick"
        assert args.width == 1
        assert args.depth is None
        assert args.height == 1
        assert not args.simplify
        assert not args.rampify
        assert args.max_brick_length == 64

    def test_convert(self):
        """Test a plain conversion."""
        out = self.tmpdir / "stairs.brs"
        assert main([str(self.vox_path), str(out)]) == 0
        assert load_brs_header(out)["brick_count"] == 6

    def test_rampify(self):
        """Test a conversion with ramps."""
        out = self.tmpdir / "stairs.brs"
        assert main([str(self.vox_path), str(out), "--rampify", "--stats"]) == 0

        header = load_brs_header(out)
        assert header["brick_count"] == 1
        assert header["brick_assets"] == ["PB_DefaultRamp"]

    def test_wrong_suffixes(self):
        """Test that input and output suffixes are checked."""
        assert main([str(self.vox_path), str(self.tmpdir / "out.txt")]) == 1
        assert main([str(self.tmpdir / "model.obj"), str(self.tmpdir / "out.brs")]) == 1
        assert not (self.tmpdir / "out.brs").exists()

    def test_missing_input(self):
        """Test a missing input file."""
        assert main([str(self.tmpdir / "missing.vox"), str(self.tmpdir / "out.brs")]) == 1

    def test_invalid_scale(self):
        """Test that conversion errors give exit code 1."""
        out = self.tmpdir / "stairs.brs"
        assert main([str(self.vox_path), str(out), "--width", "0"]) == 1
        assert not out.exists()


if __name__ == "__main__":
    unittest.main()
