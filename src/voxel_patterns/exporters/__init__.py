"""
Export modules for the pattern format.

Supported formats:
- Chisels & Bits pattern (.cbsbp) - One 16x16x16 block per file
"""

from .pattern_exporter import PatternCodec, PatternExporter, PatternFile

__all__ = ["PatternCodec", "PatternExporter", "PatternFile"]
