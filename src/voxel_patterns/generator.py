"""
Main PatternGenerator Class

This is the primary interface for the conversion pipeline.
It orchestrates:
1. Model and material palette loading
2. Model selection
3. Shared palette construction (color matching)
4. Chunk planning and encoding
5. Pattern serialization and writing

Every pattern of a run is encoded in memory before the first file is
written, so an invalid input or a failing chunk leaves no output behind.

Example Usage:
    generator = PatternGenerator()
    generator.load_model("castle.vox")
    generator.load_palette("blocks.json")
    generator.export("castle")
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .chunks import ChunkPlanner
from .color import ColorMatcher
from .encoder import AIR_STATE, ChunkEncoder, build_shared_palette
from .errors import InputError
from .exporters import PatternCodec, PatternExporter, PatternFile
from .exporters.pattern_exporter import PATTERN_EXTENSION, ZLIB_LEVEL
from .ingestion import VoxFile, load_material_palette, load_vox
from .voxel_index import VoxelIndex, VoxelModel


def select_models(
    vox_file: VoxFile,
    all_models: bool = False,
    indices: Optional[Sequence[int]] = None
) -> List[VoxelModel]:
    """
    Pick the models to export.

    Args:
        vox_file: Loaded .vox file
        all_models: Export every model
        indices: 1-based model indices to export

    Returns:
        Selected models in selection order

    Raises:
        InputError: if an index is not present, or the file holds several
            models and no selection was made
    """
    models = vox_file.models
    count = len(models)

    if count == 1 or all_models:
        return list(models)

    if indices:
        selected = []
        for index in indices:
            if not 1 <= index <= count:
                raise InputError(
                    f"Invalid model index {index}, file contains {count} model(s)"
                )
            selected.append(models[index - 1])
        return selected

    raise InputError(
        f"Multiple models inside file ({count}), pass -a to export all models "
        f"or -m to export specific models"
    )


class PatternGenerator:
    """
    High-level interface for voxel model to pattern conversion.

    Attributes:
        codec: Pattern serializer
        exporter: Pattern file writer
        air_state: Material id of empty positions
    """

    def __init__(
        self,
        extension: str = PATTERN_EXTENSION,
        air_state: str = AIR_STATE,
        zlib_level: int = ZLIB_LEVEL
    ):
        """
        Initialize the PatternGenerator.

        Args:
            extension: File extension of written patterns
            air_state: Material id used for empty positions
            zlib_level: Compression level of the outer zlib layer
        """
        self.air_state = air_state
        self.codec = PatternCodec(zlib_level=zlib_level)
        self.exporter = PatternExporter(extension=extension)

        self._vox_file: Optional[VoxFile] = None
        self._matcher: Optional[ColorMatcher] = None
        self._stats: Dict = {}

    def load_model(self, model_path: Union[str, Path]) -> "PatternGenerator":
        """
        Load a MagicaVoxel .vox file.

        Args:
            model_path: Path to the .vox file

        Returns:
            self for method chaining
        """
        self._vox_file = load_vox(model_path)
        return self

    def load_models(self, models: Sequence[VoxelModel]) -> "PatternGenerator":
        """
        Use in-memory models instead of a file.

        Args:
            models: One or more models

        Returns:
            self for method chaining
        """
        if not models:
            raise InputError("At least one model is required")
        self._vox_file = VoxFile(version=0, models=list(models), palette=models[0].palette)
        return self

    def load_palette(self, palette_path: Union[str, Path]) -> "PatternGenerator":
        """
        Load the material palette JSON.

        Args:
            palette_path: Path to the color -> material mapping

        Returns:
            self for method chaining
        """
        return self.set_palette(load_material_palette(palette_path))

    def set_palette(self, mapping: Dict[str, str]) -> "PatternGenerator":
        """
        Set the material palette from a mapping.

        Args:
            mapping: Hex color code -> material id

        Returns:
            self for method chaining
        """
        self._matcher = ColorMatcher(mapping)
        return self

    def select_models(
        self,
        all_models: bool = False,
        indices: Optional[Sequence[int]] = None
    ) -> List[VoxelModel]:
        """Pick models from the loaded file, see select_models()."""
        if self._vox_file is None:
            raise RuntimeError("No model loaded. Call load_model() first.")
        return select_models(self._vox_file, all_models, indices)

    def encode_model(self, model: VoxelModel, prefix: str) -> List[PatternFile]:
        """
        Encode every non-empty chunk of one model.

        Args:
            model: Model to convert
            prefix: Name prefix of the model's patterns

        Returns:
            Patterns in chunk enumeration order
        """
        if self._matcher is None:
            raise RuntimeError("No material palette. Call load_palette() first.")

        index = VoxelIndex.from_model(model)
        palette = build_shared_palette(model, self._matcher, self.air_state)
        encoder = ChunkEncoder(index, palette)
        planner = ChunkPlanner(model.size)

        patterns = []
        skipped = 0
        air_positions = 0
        for coord in planner.chunk_coordinates():
            chunk = encoder.encode(planner.base_offset(coord), coord)
            if chunk is None:
                skipped += 1
                continue

            air_positions += chunk.air_count
            name = planner.pattern_name(prefix, len(patterns))
            patterns.append(PatternFile(name, self.codec.encode(chunk)))

        self._stats.setdefault("models", []).append({
            "prefix": prefix,
            "size": model.size,
            "voxel_count": model.voxel_count,
            "palette_entries": len(palette),
            "slot_materials": {
                slot: palette.materials[entry] for slot, entry in palette.as_dict().items()
            },
            "bit_width": palette.bit_width,
            "chunk_grid": planner.counts,
            "patterns": len(patterns),
            "skipped_chunks": skipped,
            "air_positions": air_positions,
        })

        return patterns

    def build(
        self,
        output_prefix: str,
        all_models: bool = False,
        indices: Optional[Sequence[int]] = None
    ) -> List[PatternFile]:
        """
        Encode the selected models without writing anything.

        Args:
            output_prefix: Name prefix; gains _<n> per model when several
                models are exported
            all_models: Export every model
            indices: 1-based model indices to export

        Returns:
            All patterns of the run
        """
        models = self.select_models(all_models, indices)
        if self._matcher is None:
            raise RuntimeError("No material palette. Call load_palette() first.")

        self._stats = {"models": []}

        patterns = []
        for i, model in enumerate(models):
            prefix = output_prefix if len(models) == 1 else f"{output_prefix}_{i}"
            patterns.extend(self.encode_model(model, prefix))

        return patterns

    def export(
        self,
        output_prefix: Union[str, Path],
        all_models: bool = False,
        indices: Optional[Sequence[int]] = None
    ) -> List[Path]:
        """
        Encode the selected models and write their pattern files.

        Args:
            output_prefix: Name prefix (may include directories)
            all_models: Export every model
            indices: 1-based model indices to export

        Returns:
            Written file paths
        """
        patterns = self.build(str(output_prefix), all_models, indices)
        return self.exporter.export(patterns)

    @property
    def model_count(self) -> int:
        """Number of models in the loaded file."""
        if self._vox_file is None:
            return 0
        return self._vox_file.model_count

    def get_stats(self) -> dict:
        """
        Get statistics of the last build.

        Returns:
            Dictionary with per-model and total statistics
        """
        if not self._stats:
            return {"error": "Nothing built"}

        models = self._stats["models"]
        return {
            "models": models,
            "model_count": len(models),
            "voxel_count": sum(m["voxel_count"] for m in models),
            "pattern_count": sum(m["patterns"] for m in models),
            "skipped_chunks": sum(m["skipped_chunks"] for m in models),
        }
