"""Sliding-window helpers built on numpy stride tricks."""

from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy.signal import windows as sp_windows  # type: ignore

from specslope.errors import InsufficientSignalLength, InvalidWindowParameters
from specslope.util.math import round_half_up


def window_geometry(window_size: float, step: float, sampling_rate: float) -> Tuple[int, int]:
    """Return (window_samples, step_samples) for window/step given in seconds.

    The overlap between consecutive windows is ``window_samples - step_samples``.
    """
    window_size = float(window_size)
    step = float(step)
    if not window_size > 0 or not step > 0:
        raise InvalidWindowParameters(f"window size and step must be > 0 (got window={window_size}, step={step})")
    if step > window_size:
        raise InvalidWindowParameters(f"step {step}s exceeds window size {window_size}s")
    win = round_half_up(window_size * sampling_rate)
    hop = round_half_up(step * sampling_rate)
    if hop < 1 or win < 1:
        raise InvalidWindowParameters(
            f"window={window_size}s step={step}s resolve to {win}/{hop} samples at {sampling_rate} Hz"
        )
    return win, hop


def n_windows(n_samples: int, window_samples: int, step_samples: int) -> int:
    """Number of complete windows fitting in ``n_samples``."""
    if n_samples < window_samples:
        return 0
    return (n_samples - window_samples) // step_samples + 1


def segment_windows(x: np.ndarray, window_samples: int, step_samples: int) -> np.ndarray:
    """Return a read-only (n_windows, window_samples) view of complete segments."""
    x = np.asarray(x)
    if x.ndim != 1:
        raise ValueError("segment_windows only supports 1D arrays")
    if x.size < window_samples:
        raise InsufficientSignalLength(
            f"signal has {x.size} samples, fewer than one window of {window_samples}"
        )
    view = np.lib.stride_tricks.sliding_window_view(x, window_samples)
    return view[::step_samples]


def analysis_window(window_samples: int) -> np.ndarray:
    """Symmetric Hamming taper applied to every segment before the transform."""
    return sp_windows.hamming(window_samples, sym=True)
