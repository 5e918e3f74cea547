"""
Voxel Data Structures

This module provides:
- VoxelModel: Immutable voxel model as loaded from a .vox file
- VoxelIndex: Dense 3D lookup table from coordinates to color slots

Memory consideration: the index always covers the full .vox coordinate
range, 256³ × int16 ≈ 32 MB, independent of the model size.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple
import numpy as np

from .errors import InputError


# .vox coordinates are uint8, so no model can exceed 256 per axis
VOXEL_MAX_SIDE = 256

# Marker for positions without a voxel
EMPTY = -1


@dataclass(frozen=True, eq=False)
class VoxelModel:
    """
    A single voxel model.

    Coordinate system: X-right, Y-back, Z-up (MagicaVoxel)

    Attributes:
        size: Bounding dimensions (size_x, size_y, size_z)
        voxels: Array of shape (N, 4) with (x, y, z, color_slot) rows
        palette: Array of shape (256, 4) with RGBA colors indexed by color_slot
    """

    size: Tuple[int, int, int]
    voxels: np.ndarray = field(repr=False)
    palette: np.ndarray = field(repr=False)

    def __post_init__(self):
        """Validate dimensions and freeze the arrays."""
        size = tuple(int(s) for s in self.size)
        if len(size) != 3 or any(s < 0 or s > VOXEL_MAX_SIDE for s in size):
            raise InputError(
                f"Model size must be within 0..{VOXEL_MAX_SIDE} per axis, got {self.size}"
            )
        object.__setattr__(self, "size", size)

        voxels = np.array(self.voxels, dtype=np.int64).reshape(-1, 4)
        palette = np.array(self.palette, dtype=np.uint8)
        if palette.ndim != 2 or palette.shape[1] < 3:
            raise InputError(f"Palette must have shape (N, 3|4), got {palette.shape}")
        bad_slots = (voxels[:, 3] < 0) | (voxels[:, 3] >= len(palette))
        if np.any(bad_slots):
            raise InputError(
                f"Voxel color slot {int(voxels[np.argmax(bad_slots), 3])} is outside the palette"
            )

        voxels.setflags(write=False)
        palette.setflags(write=False)
        object.__setattr__(self, "voxels", voxels)
        object.__setattr__(self, "palette", palette)

    @property
    def voxel_count(self) -> int:
        """Number of voxels in the model."""
        return len(self.voxels)

    def used_slots(self) -> np.ndarray:
        """Sorted distinct color slots used by the model's voxels."""
        return np.unique(self.voxels[:, 3])

    def color_of(self, slot: int) -> np.ndarray:
        """RGB color of a color slot."""
        return self.palette[slot, :3]


class VoxelIndex:
    """
    Dense O(1) lookup from a coordinate to an optional color slot.

    The table is sized to the maximum .vox coordinate range on each axis
    rather than to the model, so every chunk offset a model can produce
    is addressable.
    """

    def __init__(self, slots: np.ndarray):
        """
        Wrap a prebuilt slot table.

        Args:
            slots: int16 array of shape (256, 256, 256), EMPTY where no voxel
        """
        expected = (VOXEL_MAX_SIDE,) * 3
        if slots.shape != expected:
            raise ValueError(f"Slot table must have shape {expected}, got {slots.shape}")
        self._slots = slots

    @classmethod
    def from_voxels(cls, voxels: np.ndarray) -> "VoxelIndex":
        """
        Build the index from (x, y, z, color_slot) rows.

        Raises:
            InputError: if any coordinate is outside 0..255
        """
        voxels = np.asarray(voxels, dtype=np.int64).reshape(-1, 4)
        coords = voxels[:, :3]

        outside = np.any((coords < 0) | (coords >= VOXEL_MAX_SIDE), axis=1)
        if np.any(outside):
            x, y, z = coords[np.argmax(outside)]
            raise InputError(
                f"Voxel at ({x}, {y}, {z}) is outside the supported range "
                f"0..{VOXEL_MAX_SIDE - 1}"
            )

        slots = np.full((VOXEL_MAX_SIDE,) * 3, EMPTY, dtype=np.int16)
        slots[coords[:, 0], coords[:, 1], coords[:, 2]] = voxels[:, 3]
        return cls(slots)

    @classmethod
    def from_model(cls, model: VoxelModel) -> "VoxelIndex":
        """Build the index for a VoxelModel."""
        return cls.from_voxels(model.voxels)

    def slot_at(self, x: int, y: int, z: int) -> Optional[int]:
        """
        Get the color slot at a coordinate.

        Returns:
            Color slot, or None if empty or outside the supported range
        """
        if not (0 <= x < VOXEL_MAX_SIDE and 0 <= y < VOXEL_MAX_SIDE
                and 0 <= z < VOXEL_MAX_SIDE):
            return None
        slot = self._slots[x, y, z]
        return None if slot == EMPTY else int(slot)

    def region(self, offset: Tuple[int, int, int], side: int) -> np.ndarray:
        """
        Copy a cubic region in model axes.

        Args:
            offset: Minimum (x, y, z) corner
            side: Edge length of the cube

        Returns:
            int16 array of shape (side, side, side); positions outside
            the supported range read as EMPTY
        """
        out = np.full((side, side, side), EMPTY, dtype=np.int16)

        lo = [max(o, 0) for o in offset]
        hi = [min(o + side, VOXEL_MAX_SIDE) for o in offset]
        if any(h <= l for l, h in zip(lo, hi)):
            return out

        ox, oy, oz = offset
        out[lo[0] - ox:hi[0] - ox, lo[1] - oy:hi[1] - oy, lo[2] - oz:hi[2] - oz] = \
            self._slots[lo[0]:hi[0], lo[1]:hi[1], lo[2]:hi[2]]
        return out

    def count_voxels(self) -> int:
        """Number of occupied positions."""
        return int(np.count_nonzero(self._slots != EMPTY))
