"""
End-to-end tests for the conversion pipeline and the CLI.
"""

import sys
from pathlib import Path
import contextlib
import io
import json
import os
import tempfile
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from voxel_patterns import PatternGenerator, VoxelModel
from voxel_patterns.cli import create_parser, main, parse_model_indices
from voxel_patterns.errors import ConfigurationError, InputError
from voxel_patterns.exporters import PatternCodec
from vox_fixtures import fill_box, make_palette, write_vox


BLOCKS = {
    "#ff0000": "minecraft:red_concrete",
    "#0000ff": "minecraft:blue_concrete",
    "#ffffff": "minecraft:white_concrete",
}

COLORS = make_palette({0: (255, 0, 0), 1: (0, 0, 255), 2: (255, 255, 255)})


def cube_model(size=(16, 16, 16), slot=0):
    """A model completely filled with one color."""
    return VoxelModel(size, fill_box(0, 0, 0, *size, slot), COLORS)


class GeneratorTestCase(unittest.TestCase):
    """Shared temporary directory handling."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.codec = PatternCodec()

    def tearDown(self):
        self.tmp.cleanup()

    def written(self):
        return sorted(p.name for p in self.dir.rglob("*.cbsbp"))


class TestPatternGenerator(GeneratorTestCase):
    """Tests for PatternGenerator."""

    def test_single_chunk(self):
        """Test a 16³ single color model gives one pattern without suffix."""
        generator = PatternGenerator().load_models([cube_model()]).set_palette(BLOCKS)
        paths = generator.export(self.dir / "pattern")

        assert self.written() == ["pattern.cbsbp"]
        indices, materials, counts = self.codec.decode_chunk(paths[0].read_bytes())
        assert materials == ["minecraft:red_concrete", "minecraft:air"]
        assert counts == [4096, 0]
        assert np.all(indices == 0)

        document = self.codec.decode(paths[0].read_bytes())
        assert len(np.asarray(document["chiseledData"]["data"])) == 512

    def test_two_chunks_share_palette(self):
        """Test a 32×16×16 model gives _0 and _1 with the same palette."""
        voxels = fill_box(0, 0, 0, 16, 16, 16, 0) + fill_box(16, 0, 0, 32, 16, 16, 1)
        model = VoxelModel((32, 16, 16), voxels, COLORS)

        generator = PatternGenerator().load_models([model]).set_palette(BLOCKS)
        paths = generator.export(self.dir / "pattern")

        assert self.written() == ["pattern_0.cbsbp", "pattern_1.cbsbp"]
        first = self.codec.decode_chunk(paths[0].read_bytes())
        second = self.codec.decode_chunk(paths[1].read_bytes())

        expected = ["minecraft:red_concrete", "minecraft:blue_concrete", "minecraft:air"]
        assert first[1] == second[1] == expected
        assert first[2] == [4096, 0, 0]
        assert second[2] == [0, 4096, 0]

    def test_empty_chunks_skipped(self):
        """Test all-air chunks are skipped and numbering stays dense."""
        voxels = [(0, 0, 0, 0), (40, 0, 0, 2)]
        model = VoxelModel((48, 16, 16), voxels, COLORS)

        generator = PatternGenerator().load_models([model]).set_palette(BLOCKS)
        generator.export(self.dir / "pattern")

        assert self.written() == ["pattern_0.cbsbp", "pattern_1.cbsbp"]
        stats = generator.get_stats()
        assert stats["pattern_count"] == 2
        assert stats["skipped_chunks"] == 1

        model_stats = stats["models"][0]
        assert model_stats["slot_materials"] == {
            0: "minecraft:red_concrete", 2: "minecraft:white_concrete"
        }
        assert model_stats["air_positions"] == 2 * 4095

    def test_all_air_model(self):
        """Test a model without voxels writes nothing."""
        model = VoxelModel((16, 16, 16), [], COLORS)
        generator = PatternGenerator().load_models([model]).set_palette(BLOCKS)

        assert generator.export(self.dir / "pattern") == []
        assert self.written() == []

    def test_axis_mapping_in_file(self):
        """Test a voxel's position in the decoded stream."""
        model = VoxelModel((16, 16, 16), [(3, 5, 7, 2)], COLORS)
        generator = PatternGenerator().load_models([model]).set_palette(BLOCKS)
        paths = generator.export(self.dir / "pattern")

        indices, materials, _ = self.codec.decode_chunk(paths[0].read_bytes())
        assert materials == ["minecraft:white_concrete", "minecraft:air"]
        assert np.flatnonzero(indices == 0).tolist() == [5 * 256 + 7 * 16 + 3]

    def test_nested_output_directory(self):
        """Test prefixes may include directories that do not exist yet."""
        generator = PatternGenerator().load_models([cube_model()]).set_palette(BLOCKS)
        paths = generator.export(self.dir / "out" / "castle")

        assert paths == [self.dir / "out" / "castle.cbsbp"]
        assert paths[0].is_file()

    def test_missing_palette(self):
        """Test building without a palette."""
        generator = PatternGenerator().load_models([cube_model()])
        with self.assertRaises(RuntimeError):
            generator.build("pattern")


class TestModelSelection(GeneratorTestCase):
    """Tests for multi-model files."""

    def setUp(self):
        super().setUp()
        self.vox_path = self.dir / "scene.vox"
        self.vox_path.write_bytes(write_vox(
            [
                ((16, 16, 16), [(0, 0, 0, 1)]),
                ((16, 16, 16), [(1, 1, 1, 2)]),
                ((16, 16, 16), [(2, 2, 2, 3)]),
            ],
            palette=COLORS,
        ))
        self.generator = PatternGenerator().load_model(self.vox_path).set_palette(BLOCKS)

    def test_requires_selection(self):
        """Test several models without -a or -m is an input error."""
        with self.assertRaises(InputError):
            self.generator.export(self.dir / "pattern")
        assert self.written() == []

    def test_invalid_index(self):
        """Test an out of range index fails before anything is written."""
        with self.assertRaises(InputError) as ctx:
            self.generator.export(self.dir / "pattern", indices=[1, 5])

        assert "5" in str(ctx.exception)
        assert self.written() == []

        with self.assertRaises(InputError):
            self.generator.export(self.dir / "pattern", indices=[0])

    def test_all_models(self):
        """Test every model is exported with a per-model prefix."""
        self.generator.export(self.dir / "pattern", all_models=True)
        assert self.written() == ["pattern_0.cbsbp", "pattern_1.cbsbp", "pattern_2.cbsbp"]
        assert self.generator.get_stats()["model_count"] == 3

    def test_selected_models(self):
        """Test selected models are numbered in selection order."""
        paths = self.generator.export(self.dir / "pattern", indices=[3, 1])

        assert self.written() == ["pattern_0.cbsbp", "pattern_1.cbsbp"]
        first = self.codec.decode_chunk(paths[0].read_bytes())
        assert first[1][0] == "minecraft:white_concrete"

    def test_single_selection(self):
        """Test a single selected model keeps the plain prefix."""
        self.generator.export(self.dir / "pattern", indices=[2])
        assert self.written() == ["pattern.cbsbp"]

    def test_single_model_file_ignores_selection(self):
        """Test a one-model file always exports its model."""
        path = self.dir / "one.vox"
        path.write_bytes(write_vox([((16, 16, 16), [(0, 0, 0, 1)])], palette=COLORS))
        generator = PatternGenerator().load_model(path).set_palette(BLOCKS)

        generator.export(self.dir / "pattern", indices=[7])
        assert self.written() == ["pattern.cbsbp"]

    def test_multi_model_multi_chunk_names(self):
        """Test model and chunk suffixes combine."""
        path = self.dir / "big.vox"
        path.write_bytes(write_vox(
            [
                ((32, 16, 16), [(0, 0, 0, 1), (20, 0, 0, 1)]),
                ((16, 16, 16), [(0, 0, 0, 2)]),
            ],
            palette=COLORS,
        ))
        generator = PatternGenerator().load_model(path).set_palette(BLOCKS)
        generator.export(self.dir / "pattern", all_models=True)

        assert self.written() == [
            "pattern_0_0.cbsbp", "pattern_0_1.cbsbp", "pattern_1.cbsbp"
        ]


class TestCLI(GeneratorTestCase):
    """Tests for the command-line interface."""

    def setUp(self):
        super().setUp()
        self.palette_path = self.dir / "blocks.json"
        self.palette_path.write_text(json.dumps(BLOCKS), encoding="utf-8")

        self.vox_path = self.dir / "model.vox"
        self.vox_path.write_bytes(write_vox(
            [((32, 16, 16), fill_box(0, 0, 0, 20, 4, 4, 3))], palette=COLORS
        ))

    def run_main(self, *argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            code = main([str(a) for a in argv])
        return code, stdout.getvalue(), stderr.getvalue()

    def test_parse_model_indices(self):
        """Test comma separated index lists."""
        assert parse_model_indices("1,3") == [1, 3]
        assert parse_model_indices("2") == [2]

    def test_convert(self):
        """Test a model converts with default naming."""
        code, out, err = self.run_main(
            self.vox_path, "-o", self.dir / "castle", "-p", self.palette_path, "--stats"
        )

        assert code == 0, err
        assert self.written() == ["castle_0.cbsbp", "castle_1.cbsbp"]
        assert "Total patterns: 2" in out

    def test_missing_palette_file(self):
        """Test a missing palette reports an error and writes nothing."""
        code, _, err = self.run_main(
            self.vox_path, "-o", self.dir / "castle", "-p", self.dir / "nope.json"
        )

        assert code == 1
        assert err.startswith("Error:")
        assert self.written() == []

    def test_missing_model(self):
        """Test no model argument."""
        code, _, err = self.run_main("-p", self.palette_path)
        assert code == 1
        assert "No model file" in err

    def test_selection_flags_exclusive(self):
        """Test -a and -m cannot be combined."""
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                main([str(self.vox_path), "-a", "-m", "1"])

    def test_verbose_output(self):
        """Test verbose mode reports the model count and slot materials."""
        code, out, err = self.run_main(
            self.vox_path, "-o", self.dir / "castle", "-p", self.palette_path, "-v"
        )

        assert code == 0, err
        assert "Models in file: 1" in out
        assert "slot 2 -> minecraft:white_concrete" in out
        assert "Air positions: 7872" in out

    def test_models_option_default_prefix(self):
        """Test -m with the default output prefix names files pattern_<n>."""
        scene = self.dir / "scene.vox"
        scene.write_bytes(write_vox(
            [
                ((16, 16, 16), [(0, 0, 0, 1)]),
                ((16, 16, 16), [(0, 0, 0, 2)]),
                ((16, 16, 16), [(0, 0, 0, 3)]),
            ],
            palette=COLORS,
        ))

        cwd = os.getcwd()
        os.chdir(self.dir)
        try:
            code, _, err = self.run_main(scene, "-m", "1,3", "-p", self.palette_path)
        finally:
            os.chdir(cwd)

        assert code == 0, err
        assert self.written() == ["pattern_0.cbsbp", "pattern_1.cbsbp"]
        assert "(pattern_0*, pattern_1*)" in create_parser().epilog

    def test_inspect(self):
        """Test decoding a written pattern."""
        self.run_main(self.vox_path, "-o", self.dir / "castle", "-p", self.palette_path)

        code, out, _ = self.run_main("--inspect", self.dir / "castle_0.cbsbp")
        assert code == 0
        assert "Palette entries: 2 (1 bit)" in out
        assert "minecraft:white_concrete: 256" in out
        assert "minecraft:air: 3840" in out

    def test_inspect_corrupt(self):
        """Test inspecting a corrupt file fails cleanly."""
        path = self.dir / "bad.cbsbp"
        path.write_bytes(b"not a pattern")

        code, _, err = self.run_main("--inspect", path)
        assert code == 1
        assert "Malformed" in err


class TestErrors(unittest.TestCase):
    """Tests for the error taxonomy."""

    def test_palette_errors(self):
        """Test bad palettes fail at set_palette."""
        with self.assertRaises(ConfigurationError):
            PatternGenerator().set_palette({})
        with self.assertRaises(ConfigurationError):
            PatternGenerator().set_palette({"#zzzzzz": "minecraft:stone"})


if __name__ == "__main__":
    unittest.main(verbosity=2)
