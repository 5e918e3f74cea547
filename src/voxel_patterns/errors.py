"""
Error Taxonomy

Three families of failures can stop a conversion run:
- ConfigurationError: the material palette file is missing or unusable
- InputError: the voxel model or the model selection is invalid
- EncodingError: the pattern serialization pipeline failed

Configuration and input errors are raised before any chunk is encoded.
"""


class PatternError(Exception):
    """Base class for all conversion failures."""


class ConfigurationError(PatternError, ValueError):
    """Invalid material palette (missing file, bad JSON, bad color code, empty)."""


class InputError(PatternError, ValueError):
    """Invalid voxel model, coordinates out of range or bad model selection."""


class EncodingError(PatternError, RuntimeError):
    """A layer of the pattern encoding pipeline failed."""
