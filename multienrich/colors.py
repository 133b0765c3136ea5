"""
Color encoding module for multienrich.

Handles:
- Numeric values -> color ramp from blank to a base color
- Incidence matrix -> color matrix, one base color per source
- HCL/alpha decomposition and blank-color detection
- Default source palette
"""

import logging
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

import matplotlib
import numpy as np
import pandas as pd
from matplotlib.colors import Colormap, LinearSegmentedColormap, to_hex, to_rgba

from .config import (
    BLANK_ALPHA_MAX,
    BLANK_C_MAX,
    BLANK_COLOR,
    BLANK_COLORS,
    BLANK_L_MIN,
    SOURCE_COLORMAP,
)
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# sRGB (D65) -> CIE XYZ
_RGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
])
_WHITE_XYZ = np.array([0.95047, 1.0, 1.08883])
_WHITE_UV = np.array([
    4 * _WHITE_XYZ[0] / (_WHITE_XYZ @ [1, 15, 3]),
    9 * _WHITE_XYZ[1] / (_WHITE_XYZ @ [1, 15, 3]),
])


# ============================================================================
# VALUE -> COLOR
# ============================================================================

def color_ramp(base_color: str) -> Colormap:
    """
    Colormap for a base color.

    A registered matplotlib colormap name (e.g. 'Reds') is used directly,
    any other color becomes a ramp from white to that color.
    """
    if isinstance(base_color, str) and base_color in matplotlib.colormaps:
        return matplotlib.colormaps[base_color]
    try:
        to_rgba(base_color)
    except ValueError as exc:
        raise ConfigurationError(
            f"Unrecognized color {base_color!r}", component="ColorEncoder"
        ) from exc
    return LinearSegmentedColormap.from_list(f"blank_{base_color}", [BLANK_COLOR, base_color])


def apply_lens(fraction: np.ndarray, lens: float) -> np.ndarray:
    """
    Warp ramp positions in [0, 1].

    Positive lens saturates faster at low values, negative lens slower,
    zero is linear.
    """
    if lens > 0:
        return fraction ** (1.0 / (1.0 + lens))
    if lens < 0:
        return fraction ** (1.0 - lens)
    return fraction


def values_to_colors(
    values: Iterable[float],
    base_color: str,
    baseline: float = 0,
    limit: float = 4,
    lens: float = 0,
    blank_color: str = BLANK_COLOR,
) -> List[str]:
    """
    Map numeric values onto a ramp from blank to ``base_color``.

    Args:
        values: Numeric values (already transformed, e.g. -log10 P)
        base_color: Color or matplotlib colormap name at full saturation
        baseline: Values at or below this are blank
        limit: Values at or above this get the full color
        lens: Ramp nonlinearity, see apply_lens()
        blank_color: Color used at or below baseline and for missing values

    Returns:
        List of hex colors, one per value
    """
    if limit <= baseline:
        raise ConfigurationError(
            f"Color limit ({limit}) must be above baseline ({baseline})",
            component="ColorEncoder",
        )
    values = np.asarray(list(values), dtype=float)
    cmap = color_ramp(base_color)

    fraction = np.clip((values - baseline) / (limit - baseline), 0, 1)
    fraction = apply_lens(np.nan_to_num(fraction, nan=0.0), lens)
    blank = np.isnan(values) | (values <= baseline)

    colors = []
    for is_blank, rgba in zip(blank, cmap(fraction)):
        colors.append(blank_color if is_blank else to_hex(rgba, keep_alpha=False).upper())
    return colors


def matrix_to_heat_colors(
    matrix: pd.DataFrame,
    colors: Mapping[str, str],
    transform: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    baseline: float = 0,
    limit: float = 4,
    lens: float = 0,
) -> pd.DataFrame:
    """
    Convert an incidence matrix to a color matrix.

    Args:
        matrix: Entity x source matrix
        colors: Base color per source column
        transform: Optional function applied to the values first
        baseline: Passed to values_to_colors()
        limit: Passed to values_to_colors()
        lens: Passed to values_to_colors()

    Returns:
        DataFrame of hex colors with the same shape, index and columns
    """
    missing = [column for column in matrix.columns if column not in colors]
    if missing:
        raise ConfigurationError(
            f"No base color for source(s): {missing}", component="ColorEncoder"
        )

    values = matrix.to_numpy(dtype=float)
    if transform is not None:
        with np.errstate(divide="ignore"):
            values = transform(values)

    color_matrix = pd.DataFrame(index=matrix.index, columns=matrix.columns, dtype=object)
    for j, column in enumerate(matrix.columns):
        color_matrix[column] = values_to_colors(
            values[:, j],
            colors[column],
            baseline=baseline,
            limit=limit,
            lens=lens,
        )
    return color_matrix


def neg_log10(values: np.ndarray) -> np.ndarray:
    return -np.log10(values)


def rainbow_colors(n: int, cmap: str = SOURCE_COLORMAP) -> List[str]:
    """Evenly spaced hex colors from a matplotlib colormap."""
    if n <= 0:
        return []
    positions = np.linspace(0, 1, n) if n > 1 else np.array([0.0])
    return [to_hex(rgba).upper() for rgba in matplotlib.colormaps[cmap](positions)]


# ============================================================================
# COLOR -> HCL / ALPHA
# ============================================================================

def _parse_rgba(colors: Sequence) -> np.ndarray:
    rgba = np.full((len(colors), 4), np.nan)
    for i, color in enumerate(colors):
        if color is None or (isinstance(color, float) and np.isnan(color)):
            continue
        try:
            rgba[i] = to_rgba(color)
        except ValueError:
            continue
    return rgba


def color_to_hcl(colors: Sequence) -> np.ndarray:
    """
    Decompose colors into polar CIE Luv (hue, chroma, luminance).

    Args:
        colors: Matplotlib color specifications

    Returns:
        Array (N x 3) of H (degrees), C (0-~180), L (0-100); NaN rows for
        colors that cannot be parsed
    """
    rgb = _parse_rgba(list(colors))[:, :3]
    linear = np.where(rgb <= 0.04045, rgb / 12.92, ((rgb + 0.055) / 1.055) ** 2.4)
    xyz = linear @ _RGB_TO_XYZ.T

    y = xyz[:, 1] / _WHITE_XYZ[1]
    luminance = np.where(y > (6 / 29) ** 3, 116 * np.cbrt(y) - 16, (29 / 3) ** 3 * y)

    denom = xyz @ np.array([1, 15, 3])
    with np.errstate(invalid="ignore", divide="ignore"):
        u_prime = np.where(denom > 0, 4 * xyz[:, 0] / denom, _WHITE_UV[0])
        v_prime = np.where(denom > 0, 9 * xyz[:, 1] / denom, _WHITE_UV[1])
    u = 13 * luminance * (u_prime - _WHITE_UV[0])
    v = 13 * luminance * (v_prime - _WHITE_UV[1])

    chroma = np.hypot(u, v)
    hue = np.degrees(np.arctan2(v, u)) % 360
    return np.column_stack([hue, chroma, luminance])


def is_color_blank(
    colors: Sequence,
    blank_colors: Sequence[str] = BLANK_COLORS,
    c_max: float = BLANK_C_MAX,
    l_min: float = BLANK_L_MIN,
    alpha_max: float = BLANK_ALPHA_MAX,
) -> np.ndarray:
    """
    Flag colors that carry no signal.

    A color is blank when it is missing, matches ``blank_colors``
    (case-insensitive), is a pale grey (chroma <= c_max and luminance >=
    l_min), or is nearly transparent (alpha <= alpha_max).

    Args:
        colors: Colors to test
        blank_colors: Literal colors always treated as blank
        c_max: Maximum HCL chroma of a blank color
        l_min: Minimum HCL luminance of a blank color
        alpha_max: Maximum alpha of a blank color

    Returns:
        Boolean array, one entry per color
    """
    colors = list(colors)
    if not colors:
        return np.zeros(0, dtype=bool)

    literal = {str(color).lower() for color in blank_colors}
    is_literal = np.array(
        [isinstance(color, str) and color.lower() in literal for color in colors]
    )
    rgba = _parse_rgba(colors)
    missing = np.isnan(rgba[:, 3])

    hcl = color_to_hcl(colors)
    with np.errstate(invalid="ignore"):
        pale = (hcl[:, 1] <= c_max) & (hcl[:, 2] >= l_min)
        transparent = rgba[:, 3] <= alpha_max
    return is_literal | missing | pale | transparent
