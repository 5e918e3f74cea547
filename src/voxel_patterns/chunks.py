"""
Chunk Planning

Splits a model's bounding box into 16×16×16 chunks, the unit of one
pattern file, and names the resulting patterns.

Chunks are enumerated with the first model axis outermost and the
third innermost; that order also numbers the output files.
"""

from typing import Iterator, Tuple
import math

CHUNK_SIDE = 16
CHUNK_VOLUME = CHUNK_SIDE ** 3

ChunkCoord = Tuple[int, int, int]


class ChunkPlanner:
    """
    Chunk grid for a model of a given size.

    Usage:
        planner = ChunkPlanner((32, 16, 16))
        for coord in planner.chunk_coordinates():
            offset = planner.base_offset(coord)
    """

    def __init__(self, size: Tuple[int, int, int], side: int = CHUNK_SIDE):
        """
        Initialize the planner.

        Args:
            size: Model dimensions (size_x, size_y, size_z)
            side: Chunk edge length
        """
        self.size = tuple(int(s) for s in size)
        self.side = side
        self.counts = tuple(math.ceil(s / side) for s in self.size)

    @property
    def chunk_count(self) -> int:
        """Total number of chunks in the grid (empty ones included)."""
        return self.counts[0] * self.counts[1] * self.counts[2]

    @property
    def single_chunk(self) -> bool:
        """True if the whole model fits into exactly one chunk."""
        return self.counts == (1, 1, 1)

    def chunk_coordinates(self) -> Iterator[ChunkCoord]:
        """Yield chunk coordinates, first axis outermost."""
        length, width, height = self.counts
        for x in range(length):
            for y in range(width):
                for z in range(height):
                    yield (x, y, z)

    def base_offset(self, coord: ChunkCoord) -> Tuple[int, int, int]:
        """Model-space corner of a chunk."""
        return (coord[0] * self.side, coord[1] * self.side, coord[2] * self.side)

    def pattern_name(self, prefix: str, index: int) -> str:
        """
        Name of the pattern for the index-th emitted chunk.

        Args:
            prefix: Output prefix
            index: 0-based position among emitted (non-empty) chunks

        Returns:
            prefix alone for a single-chunk model, else prefix_index
        """
        if self.single_chunk:
            return prefix
        return f"{prefix}_{index}"
