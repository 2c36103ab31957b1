"""Numeric helper functions used across DSP logic."""

import numpy as np


def round_half_up(x: float) -> int:
    """Round a non-negative value to the nearest integer, ties away from zero."""
    return int(np.floor(float(x) + 0.5))


def log10_amplitude(x: np.ndarray) -> np.ndarray:
    """Return log10(|x|); zero magnitudes map to -inf without a warning."""
    with np.errstate(divide="ignore"):
        return np.log10(np.abs(x))
