"""
Chunk Encoding with Numba Bit Packing

Turns one 16×16×16 chunk of a model into the packed block-state array
of a pattern.

Algorithm Overview:
1. Shared palette: every color slot used anywhere in the model is mapped
   to its closest material once; air is appended last
2. Axis remap: pattern positions are read from the model through a fixed
   axis permutation (see pattern_to_model)
3. Bit packing: each position stores its palette index in
   ceil(log2(len(palette))) bits, least significant bit first
4. Statistics: per palette entry occurrence counts

A chunk that resolves to nothing but air produces no pattern.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import math
import numpy as np
from numba import njit

from .chunks import CHUNK_SIDE, CHUNK_VOLUME, ChunkCoord
from .color import ColorMatcher
from .voxel_index import VoxelIndex, VoxelModel, EMPTY

AIR_STATE = "minecraft:air"


@njit(cache=True)
def pack_indices(values: np.ndarray, width: int) -> np.ndarray:
    """
    Pack integers into a little-endian bit stream.

    Value i occupies bits [i*width, (i+1)*width); bit k of the stream is
    bit (k % 8) of byte k // 8.

    Args:
        values: 1D array of non-negative integers < 2**width
        width: Bits per value

    Returns:
        uint8 array of ceil(len(values) * width / 8) bytes
    """
    n_bytes = (values.shape[0] * width + 7) // 8
    out = np.zeros(n_bytes, dtype=np.uint8)

    bit = 0
    for i in range(values.shape[0]):
        v = values[i]
        for b in range(width):
            if (v >> b) & 1:
                out[bit >> 3] |= np.uint8(1 << (bit & 7))
            bit += 1

    return out


@njit(cache=True)
def unpack_indices(data: np.ndarray, width: int, count: int) -> np.ndarray:
    """Inverse of pack_indices."""
    out = np.zeros(count, dtype=np.int64)

    bit = 0
    for i in range(count):
        v = 0
        for b in range(width):
            if (data[bit >> 3] >> (bit & 7)) & 1:
                v |= 1 << b
            bit += 1
        out[i] = v

    return out


def bit_width(palette_length: int) -> int:
    """Bits needed per entry for a palette of the given length."""
    if palette_length < 1:
        raise ValueError("Palette must contain at least the air entry")
    return math.ceil(math.log2(palette_length))


def packed_length(width: int, count: int = CHUNK_VOLUME) -> int:
    """Byte length of count packed entries."""
    return (count * width + 7) // 8


def pattern_to_model(
    a: int,
    b: int,
    c: int,
    offset: Tuple[int, int, int] = (0, 0, 0)
) -> Tuple[int, int, int]:
    """
    Map a pattern-local position to the model coordinate it reads.

    Pattern positions are stored a-major (index = a*256 + b*16 + c).
    The pattern is Y-up while MagicaVoxel is Z-up, giving:
        pattern a -> model Y
        pattern b -> model Z
        pattern c -> model X

    Args:
        a, b, c: Pattern-local position (0-15 each)
        offset: Chunk base offset in model space (x, y, z)

    Returns:
        Model (x, y, z)
    """
    ox, oy, oz = offset
    return (c + ox, a + oy, b + oz)


def region_to_pattern_order(region: np.ndarray) -> np.ndarray:
    """
    Reorder a model-axis region [x, y, z] into pattern order [a, b, c].

    Vectorised form of pattern_to_model: out[a, b, c] = region[c, a, b].
    """
    return region.transpose(1, 2, 0)


@dataclass(frozen=True, eq=False)
class SharedChunkPalette:
    """
    Block palette shared by every chunk of a model.

    Attributes:
        materials: Material ids, one per used color slot, air last
        slot_mapping: Array of 256 entries, color slot -> palette index
                      (unused slots point at air)
    """

    materials: Tuple[str, ...]
    slot_mapping: np.ndarray = field(repr=False)

    def __len__(self) -> int:
        return len(self.materials)

    @property
    def air_index(self) -> int:
        return len(self.materials) - 1

    @property
    def bit_width(self) -> int:
        return bit_width(len(self.materials))

    def as_dict(self) -> Dict[int, int]:
        """Used color slot -> palette index."""
        return {
            int(slot): int(index)
            for slot, index in enumerate(self.slot_mapping)
            if index != self.air_index
        }


def build_shared_palette(
    model: VoxelModel,
    matcher: ColorMatcher,
    air_state: str = AIR_STATE
) -> SharedChunkPalette:
    """
    Build the model-wide palette.

    Color slots are assigned in ascending slot order, so the result does
    not depend on voxel order.

    Args:
        model: Source model
        matcher: Material matcher
        air_state: Material id of the trailing empty entry

    Returns:
        SharedChunkPalette with len = distinct used slots + 1
    """
    used = model.used_slots()

    materials = [matcher.closest(model.color_of(int(slot))) for slot in used]
    materials.append(air_state)

    slot_mapping = np.full(len(model.palette), len(materials) - 1, dtype=np.int64)
    slot_mapping[used] = np.arange(len(used), dtype=np.int64)
    slot_mapping.setflags(write=False)

    return SharedChunkPalette(tuple(materials), slot_mapping)


@dataclass(frozen=True, eq=False)
class EncodedChunk:
    """
    Packed block states of one chunk.

    Attributes:
        data: Packed palette indices (pattern order)
        bit_width: Bits per entry
        palette: Material ids, shared by all chunks of the model
        counts: Occurrences of each palette entry in this chunk
        coord: Chunk coordinate in the chunk grid
        offset: Base offset in model space
    """

    data: bytes
    bit_width: int
    palette: Tuple[str, ...]
    counts: np.ndarray = field(repr=False)
    coord: ChunkCoord = (0, 0, 0)
    offset: Tuple[int, int, int] = (0, 0, 0)

    @property
    def primary_state(self) -> str:
        """First palette entry, not the most frequent material of the chunk."""
        return self.palette[0]

    @property
    def air_count(self) -> int:
        return int(self.counts[-1])

    def indices(self) -> np.ndarray:
        """Unpack the palette indices in pattern order."""
        return unpack_indices(
            np.frombuffer(self.data, dtype=np.uint8), self.bit_width, CHUNK_VOLUME
        )


class ChunkEncoder:
    """
    Encode chunks of one model against its shared palette.

    Usage:
        encoder = ChunkEncoder(VoxelIndex.from_model(model), palette)
        chunk = encoder.encode((16, 0, 0))
    """

    def __init__(self, index: VoxelIndex, palette: SharedChunkPalette):
        """
        Initialize the encoder.

        Args:
            index: Voxel lookup for the model
            palette: Shared palette built for the same model
        """
        self.index = index
        self.palette = palette
        self.width = palette.bit_width

    def resolve(self, offset: Tuple[int, int, int]) -> np.ndarray:
        """
        Palette index of every position of a chunk.

        Args:
            offset: Chunk base offset in model space

        Returns:
            int64 array of CHUNK_VOLUME entries in pattern order
        """
        region = self.index.region(offset, CHUNK_SIDE)
        slots = region_to_pattern_order(region).ravel()

        mapping = self.palette.slot_mapping
        return np.where(
            slots == EMPTY,
            self.palette.air_index,
            mapping[np.clip(slots, 0, len(mapping) - 1)],
        ).astype(np.int64)

    def encode(
        self,
        offset: Tuple[int, int, int],
        coord: ChunkCoord = (0, 0, 0)
    ) -> Optional[EncodedChunk]:
        """
        Encode one chunk.

        Args:
            offset: Chunk base offset in model space
            coord: Chunk coordinate, recorded on the result

        Returns:
            EncodedChunk, or None if every position is air
        """
        values = self.resolve(offset)
        if np.all(values == self.palette.air_index):
            return None

        packed = pack_indices(values, self.width)
        counts = np.bincount(values, minlength=len(self.palette))

        return EncodedChunk(
            data=packed.tobytes(),
            bit_width=self.width,
            palette=self.palette.materials,
            counts=counts,
            coord=tuple(coord),
            offset=tuple(offset),
        )
