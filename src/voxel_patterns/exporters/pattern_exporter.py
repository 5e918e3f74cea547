"""
Chisels & Bits Pattern (.cbsbp) Exporter

A pattern file is a chain of wrappers around a single NBT document.

File Structure (outermost first):
- zlib stream (level 6) of
  - base64 text of
    - JSON {"chiselData": <text>, "version": "1.0"} where <text> is
      - base64 of an NBT compound {version: Int 0, data: {data, compressed: Byte 1}}
        where data.data is
        - an LZ4 frame of the chisel NBT compound:
          {chiseledData: {data: ByteArray, palette: [{state}]},
           statistics: {primaryState: {state}, blockStates: [{block_information: {state}, count}]}}

Block states are JSON text, e.g. {"Name":"minecraft:stone"}.

Limitations:
- Only version 1.0 patterns
- NBT is written big endian with an unnamed root compound
"""

from pathlib import Path
from typing import Iterable, List, NamedTuple, Tuple, Union
import base64
import binascii
import io
import json
import os
import tempfile
import zlib

import numpy as np
import lz4.frame
from nbtlib import Byte, ByteArray, Compound, File, Int, List as NBTList, String

from ..chunks import CHUNK_VOLUME
from ..encoder import EncodedChunk, bit_width, packed_length, unpack_indices
from ..errors import EncodingError


PATTERN_EXTENSION = ".cbsbp"
PATTERN_VERSION = "1.0"
CONTAINER_VERSION = 0
ZLIB_LEVEL = 6

# Errors any decoding layer may raise on corrupt input
_DECODE_ERRORS = (
    zlib.error, binascii.Error, ValueError, KeyError, TypeError,
    IndexError, RuntimeError, EOFError,
)


class PatternFile(NamedTuple):
    """An encoded pattern and the name it is written under."""
    name: str
    data: bytes


def state_json(material: str) -> str:
    """Block state descriptor for a material id."""
    return json.dumps({"Name": material}, separators=(",", ":"))


def material_of(state: str) -> str:
    """Material id of a block state descriptor."""
    return json.loads(state)["Name"]


def write_nbt(document: Compound) -> bytes:
    """Serialize a compound as an unnamed root tag."""
    buff = io.BytesIO()
    File(document, root_name="").write(buff)
    return buff.getvalue()


def read_nbt(data: bytes) -> File:
    """Parse a root compound; its name is kept as root_name."""
    return File.parse(io.BytesIO(data))


def chunk_document(chunk: EncodedChunk) -> Compound:
    """
    Build the chisel NBT document for a chunk.

    Args:
        chunk: Encoded chunk

    Returns:
        Compound {chiseledData, statistics}
    """
    states = [state_json(material) for material in chunk.palette]

    palette = NBTList[Compound]([
        Compound({"state": String(state)}) for state in states
    ])
    block_states = NBTList[Compound]([
        Compound({
            "block_information": Compound({"state": String(state)}),
            "count": Int(int(count)),
        })
        for state, count in zip(states, chunk.counts)
    ])

    return Compound({
        "chiseledData": Compound({
            "data": ByteArray(np.frombuffer(chunk.data, dtype=np.int8)),
            "palette": palette,
        }),
        "statistics": Compound({
            "primaryState": Compound({"state": String(states[0])}),
            "blockStates": block_states,
        }),
    })


class PatternCodec:
    """
    Encode chunks to pattern file bytes and back.

    Usage:
        data = PatternCodec().encode(chunk)
        document = PatternCodec().decode(data)
    """

    def __init__(self, zlib_level: int = ZLIB_LEVEL):
        """
        Initialize the codec.

        Args:
            zlib_level: Compression level of the outermost zlib layer
        """
        self.zlib_level = zlib_level

    def encode(self, chunk: EncodedChunk) -> bytes:
        """
        Serialize one chunk into pattern file bytes.

        Raises:
            EncodingError: if any layer fails
        """
        try:
            return self.encode_document(chunk_document(chunk))
        except EncodingError:
            raise
        except (ValueError, TypeError, OverflowError, RuntimeError) as e:
            raise EncodingError(f"Failed to encode chunk {chunk.coord}: {e}") from e

    def encode_document(self, document: Compound) -> bytes:
        """Wrap an already built chisel document."""
        chisel_nbt = write_nbt(document)

        compressed = lz4.frame.compress(
            chisel_nbt,
            block_size=lz4.frame.BLOCKSIZE_MAX64KB,
            block_linked=False,
            content_checksum=False,
            store_size=False,
        )

        container = Compound({
            "version": Int(CONTAINER_VERSION),
            "data": Compound({
                "data": ByteArray(np.frombuffer(compressed, dtype=np.int8)),
                "compressed": Byte(1),
            }),
        })
        nbt_base64 = base64.b64encode(write_nbt(container)).decode("ascii")

        pattern = json.dumps(
            {"chiselData": nbt_base64, "version": PATTERN_VERSION},
            separators=(",", ":"),
        )
        pattern_base64 = base64.b64encode(pattern.encode("utf-8"))

        return zlib.compress(pattern_base64, self.zlib_level)

    def decode(self, data: bytes) -> Compound:
        """
        Recover the chisel document from pattern file bytes.

        Raises:
            EncodingError: if any layer is malformed
        """
        try:
            pattern_base64 = zlib.decompress(data)
            pattern = json.loads(base64.b64decode(pattern_base64, validate=True))

            version = pattern["version"]
            if version != PATTERN_VERSION:
                raise ValueError(f"Unsupported pattern version {version!r}")

            container = read_nbt(base64.b64decode(pattern["chiselData"], validate=True))
            payload = container["data"]
            raw = np.asarray(payload["data"]).tobytes()
            if int(payload["compressed"]):
                raw = lz4.frame.decompress(raw)

            return read_nbt(raw)
        except _DECODE_ERRORS as e:
            raise EncodingError(f"Malformed pattern file: {e}") from e

    def decode_chunk(self, data: bytes) -> Tuple[np.ndarray, List[str], List[int]]:
        """
        Decode a pattern down to its block states.

        Returns:
            Tuple of (indices, materials, counts) where:
            - indices: CHUNK_VOLUME palette indices in pattern order
            - materials: Material id per palette entry
            - counts: Occurrences per palette entry
        """
        document = self.decode(data)
        try:
            chiseled = document["chiseledData"]
            materials = [material_of(entry["state"]) for entry in chiseled["palette"]]
            counts = [int(entry["count"]) for entry in document["statistics"]["blockStates"]]

            width = bit_width(len(materials))
            packed = np.ascontiguousarray(np.asarray(chiseled["data"]).view(np.uint8))
            if len(packed) < packed_length(width):
                raise ValueError(
                    f"Expected {packed_length(width)} bytes of block data, got {len(packed)}"
                )
            indices = unpack_indices(packed, width, CHUNK_VOLUME)
        except _DECODE_ERRORS as e:
            raise EncodingError(f"Malformed chisel data: {e}") from e

        return indices, materials, counts


class PatternExporter:
    """
    Write pattern files.

    A batch is written in two steps: every pattern goes to a temporary
    sibling of its destination first, and only when all of them are on
    disk are they moved into place with os.replace. If staging fails,
    the temporary files are removed and existing files keep their old
    contents.

    Usage:
        exporter = PatternExporter()
        exporter.export(patterns)
    """

    def __init__(self, extension: str = PATTERN_EXTENSION):
        """
        Initialize the exporter.

        Args:
            extension: File name extension appended to every pattern name
        """
        self.extension = extension

    def path_for(self, name: str) -> Path:
        """Output path of a pattern name."""
        return Path(f"{name}{self.extension}")

    def export(self, patterns: Iterable[PatternFile]) -> List[Path]:
        """
        Write all patterns.

        Args:
            patterns: Encoded patterns

        Returns:
            Written paths, in input order
        """
        staged: List[Tuple[str, Path]] = []
        try:
            for pattern in patterns:
                path = self.path_for(pattern.name)
                staged.append((write_temporary(path, pattern.data), path))
        except BaseException:
            for tmp_name, _ in staged:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
            raise

        # A failing rename leaves earlier destinations already replaced
        for i, (tmp_name, path) in enumerate(staged):
            try:
                os.replace(tmp_name, path)
            except OSError:
                for rest, _ in staged[i:]:
                    if os.path.exists(rest):
                        os.unlink(rest)
                raise

        return [path for _, path in staged]


def write_temporary(path: Union[str, Path], data: bytes) -> str:
    """
    Write bytes to a new temporary file next to path.

    Args:
        path: Final destination, its parent directory is created
        data: File contents

    Returns:
        Name of the temporary file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_name, 0o644)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return tmp_name

