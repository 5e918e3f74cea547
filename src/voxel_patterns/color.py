"""
Color Matching Module

Handles:
- Parsing hex color codes from the material palette file
- sRGB to Linear conversion (Numba kernel)
- Linear RGB to CIE LCh, the perceptual space used for matching
- Nearest material lookup with the CIEDE2000 color difference

Color Space Background:
- .vox palettes and palette files store sRGB (perceptual) 8-bit colors
- Distances are measured in CIE LCh (D65), not in RGB
- CIEDE2000 weights lightness, chroma and hue differences separately,
  so e.g. two dark blues are "closer" than plain RGB distance suggests
"""

from typing import Dict, Tuple, Union
import re

import numpy as np
from numba import njit, prange
import colour

from .errors import ConfigurationError


_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

RGB = Tuple[int, int, int]


@njit(cache=True)
def _srgb_to_linear_component(c: float) -> float:
    """
    Convert a single sRGB component to Linear.

    The sRGB standard uses a piecewise function:
    - Linear below threshold (0.04045)
    - Gamma curve above threshold

    Args:
        c: sRGB value normalized to [0, 1]

    Returns:
        Linear value
    """
    if c <= 0.04045:
        return c / 12.92
    else:
        return ((c + 0.055) / 1.055) ** 2.4


@njit(cache=True, parallel=True)
def srgb_to_linear(colors: np.ndarray) -> np.ndarray:
    """
    Convert 8-bit sRGB colors to Linear color space.

    Args:
        colors: Array of shape (N, 3) or (N, 4) with uint8 sRGB values

    Returns:
        Array of shape (N, 3) with float64 Linear values [0, 1]
    """
    n = colors.shape[0]
    result = np.empty((n, 3), dtype=np.float64)

    for i in prange(n):
        for c in range(3):  # Alpha is irrelevant for matching
            result[i, c] = _srgb_to_linear_component(colors[i, c] / 255.0)

    return result


def parse_hex_color(code: str) -> RGB:
    """
    Parse a hex color code.

    Accepts "#rrggbb", "rrggbb", "#rgb" and "rgb" (case-insensitive).

    Raises:
        ConfigurationError: if the code is not a valid color
    """
    match = _HEX_COLOR.match(code.strip()) if isinstance(code, str) else None
    if match is None:
        raise ConfigurationError(f"Invalid color code in palette: {code!r}")

    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(d * 2 for d in digits)

    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def to_perceptual(colors: np.ndarray) -> np.ndarray:
    """
    Convert 8-bit sRGB colors to CIE LCh.

    Args:
        colors: Array of shape (N, 3) or (N, 4) with uint8 sRGB values

    Returns:
        Array of shape (N, 3) with (lightness, chroma, hue) rows
    """
    colors = np.ascontiguousarray(np.atleast_2d(colors), dtype=np.uint8)
    linear = srgb_to_linear(colors)
    xyz = colour.sRGB_to_XYZ(linear, apply_cctf_decoding=False)
    return colour.Lab_to_LCHab(colour.XYZ_to_Lab(xyz))


class ColorMatcher:
    """
    Nearest material lookup over a material palette.

    The palette (hex color -> material id) is converted to LCh exactly
    once; each query converts its color the same way and returns the
    material with the smallest CIEDE2000 difference.

    Usage:
        matcher = ColorMatcher({"#ffffff": "minecraft:white_wool"})
        matcher.closest((250, 250, 250))
    """

    def __init__(self, mapping: Dict[str, str]):
        """
        Initialize the matcher.

        Args:
            mapping: Hex color code -> material identifier

        Raises:
            ConfigurationError: if the mapping is empty or malformed
        """
        if not mapping:
            raise ConfigurationError("Material palette is empty")

        colors = []
        materials = []
        for code, material in mapping.items():
            if not isinstance(material, str) or not material:
                raise ConfigurationError(
                    f"Material for color {code!r} must be a non-empty string"
                )
            colors.append(parse_hex_color(code))
            materials.append(material)

        self._materials = tuple(materials)
        self._colors = np.array(colors, dtype=np.uint8)
        self._lch = to_perceptual(self._colors)
        self._lab = colour.LCHab_to_Lab(self._lch)

    def __len__(self) -> int:
        return len(self._materials)

    @property
    def materials(self) -> Tuple[str, ...]:
        """Material identifiers in palette order."""
        return self._materials

    def distances(self, color: Union[RGB, np.ndarray]) -> np.ndarray:
        """
        CIEDE2000 difference between a color and every palette entry.

        Args:
            color: 8-bit sRGB color (alpha ignored)

        Returns:
            Array of shape (N,) in palette order
        """
        lab = colour.LCHab_to_Lab(to_perceptual(np.asarray(color)[:3])[0])
        return np.atleast_1d(colour.delta_E(self._lab, lab, method="CIE 2000"))

    def closest(self, color: Union[RGB, np.ndarray]) -> str:
        """
        Find the material whose color is perceptually closest.

        Exact ties resolve to the earliest palette entry; since palette
        order comes from the JSON file this is not a stable contract.

        Args:
            color: 8-bit sRGB color (alpha ignored)

        Returns:
            Material identifier
        """
        return self._materials[int(np.argmin(self.distances(color)))]
