"""Short-time spectra evaluated on a logarithmic frequency grid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from specslope.errors import InvalidFrequencyRange
from specslope.util.logging import get_logger
from specslope.util.math import log10_amplitude

from .windowing import analysis_window, n_windows, segment_windows, window_geometry

N_FREQS = 200

# Segments transformed per matrix product; bounds the windowed copy.
_BLOCK_WINDOWS = 256

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class Spectrogram:
    """Complex spectrogram (freq x time) plus its log10 amplitude.

    ``times`` holds the centre of each analysis window in seconds.
    """

    freqs: np.ndarray
    times: np.ndarray
    data: np.ndarray
    log_amplitude: np.ndarray


def log_frequency_grid(low: float, high: float, n: int = N_FREQS) -> np.ndarray:
    """Return ``n`` geometrically spaced frequencies from ``low`` to ``high`` Hz."""
    low = float(low)
    high = float(high)
    if not (np.isfinite(low) and np.isfinite(high)) or low <= 0 or high <= low:
        raise InvalidFrequencyRange(f"frequency range must satisfy 0 < low < high (got {low}, {high})")
    return np.logspace(np.log10(low), np.log10(high), int(n))


def _transform_kernel(freqs: np.ndarray, window_samples: int, sampling_rate: float) -> np.ndarray:
    """(window_samples, n_freqs) matrix of exp(-2*pi*i*f*n/fs), tapered."""
    n = np.arange(window_samples, dtype=np.float64)
    kernel = np.exp(-2j * np.pi * np.outer(n, freqs) / sampling_rate)
    return kernel * analysis_window(window_samples)[:, None]


def compute_spectrogram(
    signal: np.ndarray,
    sampling_rate: float,
    window_size: float,
    step: float,
    freq_range: Tuple[float, float],
    *,
    t0: float = 0.0,
) -> Spectrogram:
    """Evaluate the windowed transform of ``signal`` at the log-spaced grid.

    Window and step are given in seconds. The transform is computed directly
    at each requested frequency, so the frequency axis does not depend on the
    window length.
    """
    sampling_rate = float(sampling_rate)
    win, hop = window_geometry(window_size, step, sampling_rate)
    low, high = freq_range
    freqs = log_frequency_grid(low, high)
    if high > sampling_rate / 2.0:
        logger.warning("Upper frequency %.3f Hz exceeds Nyquist (%.3f Hz)", high, sampling_rate / 2.0)

    x = np.ascontiguousarray(np.asarray(signal, dtype=np.float64).reshape(-1))
    segments = segment_windows(x, win, hop)
    count = n_windows(x.size, win, hop)

    kernel = _transform_kernel(freqs, win, sampling_rate)
    data = np.empty((freqs.size, count), dtype=np.complex128)
    for start in range(0, count, _BLOCK_WINDOWS):
        stop = min(start + _BLOCK_WINDOWS, count)
        data[:, start:stop] = (segments[start:stop] @ kernel).T

    times = float(t0) + (np.arange(count) * hop + win / 2.0) / sampling_rate
    logger.debug(
        "spectrogram: %d windows of %d samples, step %d",
        count,
        win,
        hop,
        extra={"n_windows": count},
    )
    return Spectrogram(freqs=freqs, times=times, data=data, log_amplitude=log10_amplitude(data))
