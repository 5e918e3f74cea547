"""
Voxel Patterns
==============

Conversion of MagicaVoxel models into Chisels & Bits pattern files.

Each 16x16x16 chunk of a model becomes one pattern (.cbsbp). Voxel colors
are matched to the closest block of a user supplied material palette
with the CIEDE2000 color difference.

Key Features:
- Perceptual color matching (CIE LCh, CIEDE2000)
- Minimal-width bit packing with Numba JIT compilation
- Byte-compatible pattern encoding (NBT, LZ4, base64, JSON, zlib)
- Multi-model .vox files

Example Usage:
    from voxel_patterns import PatternGenerator

    generator = PatternGenerator()
    generator.load_model("castle.vox")
    generator.load_palette("blocks.json")
    generator.export("castle")
"""

__version__ = "1.0.0"
__author__ = "Voxel Patterns Team"

from .generator import PatternGenerator, select_models
from .color import ColorMatcher, parse_hex_color, srgb_to_linear
from .voxel_index import VoxelIndex, VoxelModel
from .chunks import ChunkPlanner
from .encoder import ChunkEncoder, EncodedChunk, SharedChunkPalette, build_shared_palette
from .errors import ConfigurationError, EncodingError, InputError, PatternError

__all__ = [
    "PatternGenerator",
    "select_models",
    "ColorMatcher",
    "parse_hex_color",
    "srgb_to_linear",
    "VoxelIndex",
    "VoxelModel",
    "ChunkPlanner",
    "ChunkEncoder",
    "EncodedChunk",
    "SharedChunkPalette",
    "build_shared_palette",
    "ConfigurationError",
    "EncodingError",
    "InputError",
    "PatternError",
]
