"""Per-window line fits in log-frequency / log-amplitude space."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from specslope.util.logging import get_logger

from .spectrogram import Spectrogram

logger = get_logger(__name__)


@dataclass
class SlopeFit:
    slope: float
    intercept: float
    r_squared: float
    residual: np.ndarray


@dataclass
class SpectrogramFit:
    """Fits for every time bin of one spectrogram, indexed by time bin."""

    slope: np.ndarray
    intercept: np.ndarray
    r_squared: np.ndarray
    residual: np.ndarray


def fit_slope(x: np.ndarray, y: np.ndarray) -> SlopeFit:
    """Ordinary least-squares fit of ``y = slope * x + intercept``.

    R² is ``1 - SSresid / SStotal`` with ``SStotal = (n - 1) * var(y, ddof=1)``.
    A flat ``y`` (all values equal) or a non-finite ``y`` leaves R² undefined
    and it is returned as NaN.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    # -inf log amplitudes (silent windows) propagate as NaN
    with np.errstate(invalid="ignore"):
        x_mean = x.mean()
        y_mean = y.mean()
        dx = x - x_mean
        slope = float(np.sum(dx * (y - y_mean)) / np.sum(dx * dx))
        intercept = float(y_mean - slope * x_mean)

        residual = y - (slope * x + intercept)
        ss_resid = np.sum(residual ** 2)
        ss_total = (y.size - 1) * np.var(y, ddof=1)
    if not np.all(np.isfinite(y)) or np.ptp(y) == 0 or ss_total == 0:
        r_squared = float("nan")
    else:
        r_squared = float(1 - ss_resid / ss_total)
    return SlopeFit(slope=slope, intercept=intercept, r_squared=r_squared, residual=residual)


def fit_spectrogram_slopes(spec: Spectrogram) -> SpectrogramFit:
    """Fit one line per time bin of ``spec.log_amplitude`` against log10(freqs)."""
    x = np.log10(spec.freqs)
    n_times = spec.log_amplitude.shape[1]
    slope = np.zeros(n_times)
    intercept = np.zeros(n_times)
    r_squared = np.zeros(n_times)
    residual = np.zeros((n_times, x.size))

    for tt in range(n_times):
        fit = fit_slope(x, spec.log_amplitude[:, tt])
        slope[tt] = fit.slope
        intercept[tt] = fit.intercept
        r_squared[tt] = fit.r_squared
        residual[tt] = fit.residual

    degenerate = int(np.count_nonzero(np.isnan(r_squared)))
    if degenerate:
        logger.warning(
            "%d of %d windows have an undefined R² (flat spectrum)",
            degenerate,
            n_times,
            extra={"n_windows": n_times},
        )
    return SpectrogramFit(slope=slope, intercept=intercept, r_squared=r_squared, residual=residual)
