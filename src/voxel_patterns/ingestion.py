"""
Input Loading Module

This module handles:
- Reading MagicaVoxel .vox files (one or more models, shared palette)
- Loading the material palette JSON (hex color -> material id)

The .vox format is a RIFF-style chunk-based binary format:
- Header: "VOX " (4 bytes) + version (4 bytes, int32)
- MAIN chunk (container)
  - PACK chunk (optional): model count
  - SIZE + XYZI chunk pair per model
  - RGBA chunk (optional): 256-color palette
  - Scene graph / material chunks (nTRN, nGRP, MATL, ...): skipped

Color index i (1-255) of an XYZI voxel refers to RGBA entry i - 1, so
models carry color slot i - 1 and palette lookups are direct.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union
import json
import struct
import numpy as np

from .errors import ConfigurationError, InputError
from .voxel_index import VoxelModel


# VOX format constants
VOX_MAGIC = b'VOX '
CHUNK_HEADER = struct.Struct('<4sII')


def default_palette() -> np.ndarray:
    """
    MagicaVoxel's built-in palette, used when a file has no RGBA chunk.

    Returns:
        Array of shape (256, 4), indexed by color slot
    """
    steps = [0xff, 0xcc, 0x99, 0x66, 0x33, 0x00]
    colors = [(r, g, b) for r in steps for g in steps for b in steps][:-1]  # no black

    ramp = [0xee, 0xdd, 0xbb, 0xaa, 0x88, 0x77, 0x55, 0x44, 0x22, 0x11]
    colors += [(v, 0, 0) for v in ramp]
    colors += [(0, v, 0) for v in ramp]
    colors += [(0, 0, v) for v in ramp]
    colors += [(v, v, v) for v in ramp]
    colors.append((0, 0, 0))

    palette = np.full((256, 4), 255, dtype=np.uint8)
    palette[:, :3] = colors
    return palette


@dataclass
class VoxFile:
    """
    Contents of a .vox file.

    Attributes:
        version: File format version (150 or 200 in practice)
        models: Models in file order
        palette: Array of shape (256, 4) shared by all models
    """

    version: int
    models: List[VoxelModel] = field(default_factory=list)
    palette: np.ndarray = field(default_factory=default_palette, repr=False)

    @property
    def model_count(self) -> int:
        return len(self.models)


def parse_vox(data: bytes) -> VoxFile:
    """
    Parse the bytes of a .vox file.

    Raises:
        InputError: if the data is not a well-formed .vox file
    """
    if data[:4] != VOX_MAGIC:
        raise InputError(f"Invalid VOX file: bad magic {data[:4]!r}")

    try:
        version = struct.unpack_from('<I', data, 4)[0]

        main_id, main_content_size, main_children_size = CHUNK_HEADER.unpack_from(data, 8)
        if main_id != b'MAIN':
            raise InputError("Expected MAIN chunk")

        pos = 8 + CHUNK_HEADER.size + main_content_size
        end = pos + main_children_size
        if end > len(data):
            raise InputError("VOX file is truncated")

        sizes = []
        voxel_lists = []
        rgba = None

        # Read child chunks
        while pos < end:
            chunk_id, content_size, children_size = CHUNK_HEADER.unpack_from(data, pos)
            content = data[pos + CHUNK_HEADER.size:pos + CHUNK_HEADER.size + content_size]
            if len(content) < content_size:
                raise InputError(f"VOX chunk {chunk_id!r} is truncated")
            pos += CHUNK_HEADER.size + content_size + children_size

            if chunk_id == b'SIZE':
                sizes.append(struct.unpack_from('<III', content))

            elif chunk_id == b'XYZI':
                num_voxels = struct.unpack_from('<I', content)[0]
                raw = np.frombuffer(content, dtype=np.uint8, count=num_voxels * 4, offset=4)
                voxels = raw.reshape(-1, 4).astype(np.int64)
                # MagicaVoxel never writes index 0; clamp it like slot 1
                voxels[:, 3] = np.maximum(voxels[:, 3], 1) - 1
                voxel_lists.append(voxels)

            elif chunk_id == b'RGBA':
                rgba = np.frombuffer(content, dtype=np.uint8, count=1024).reshape(256, 4)
    except InputError:
        raise
    except (struct.error, ValueError) as e:
        raise InputError(f"Malformed VOX file: {e}") from e

    if len(sizes) != len(voxel_lists):
        raise InputError(
            f"VOX file has {len(sizes)} SIZE chunks but {len(voxel_lists)} XYZI chunks"
        )

    palette = default_palette() if rgba is None else rgba.copy()
    models = [
        VoxelModel(size=size, voxels=voxels, palette=palette)
        for size, voxels in zip(sizes, voxel_lists)
    ]

    return VoxFile(version=version, models=models, palette=palette)


def load_vox(file_path: Union[str, Path]) -> VoxFile:
    """
    Load a .vox file.

    Args:
        file_path: Path to .vox file

    Returns:
        VoxFile with every model of the file

    Raises:
        InputError: if the file is missing or malformed
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise InputError(f"Voxel model not found: {file_path}")

    vox_file = parse_vox(file_path.read_bytes())
    if not vox_file.models:
        raise InputError(f"No models inside {file_path}")
    return vox_file


def load_material_palette(file_path: Union[str, Path]) -> Dict[str, str]:
    """
    Load a material palette.

    The file is a flat JSON object mapping hex color codes to material
    identifiers, e.g. {"#f9fffe": "minecraft:white_concrete"}.

    Raises:
        ConfigurationError: if the file is missing, not JSON or not an object
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise ConfigurationError(f"Material palette not found: {file_path}")

    try:
        mapping = json.loads(file_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Invalid JSON in palette {file_path}: {e}") from e

    if not isinstance(mapping, dict):
        raise ConfigurationError(
            f"Palette {file_path} must be a JSON object of color -> material"
        )
    if not mapping:
        raise ConfigurationError(f"Palette {file_path} is empty")

    return mapping
