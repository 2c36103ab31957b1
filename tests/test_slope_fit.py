import numpy as np
import pytest

from specslope.dsp.fit import fit_slope, fit_spectrogram_slopes
from specslope.dsp.spectrogram import compute_spectrogram, log_frequency_grid


def _log_freqs() -> np.ndarray:
    return np.log10(log_frequency_grid(4.0, 100.0))


def test_exact_line_is_recovered() -> None:
    x = _log_freqs()
    fit = fit_slope(x, -1.5 * x + 2.0)
    assert fit.slope == pytest.approx(-1.5)
    assert fit.intercept == pytest.approx(2.0)
    assert fit.r_squared == pytest.approx(1.0)
    np.testing.assert_allclose(fit.residual, 0.0, atol=1e-12)


def test_matches_numpy_polyfit() -> None:
    x = _log_freqs()
    y = np.random.default_rng(11).standard_normal(x.size) - 0.8 * x
    fit = fit_slope(x, y)
    slope, intercept = np.polyfit(x, y, 1)
    assert fit.slope == pytest.approx(slope, rel=1e-9, abs=1e-9)
    assert fit.intercept == pytest.approx(intercept, rel=1e-9, abs=1e-9)


def test_r_squared_identity_holds_exactly() -> None:
    x = _log_freqs()
    y = np.random.default_rng(5).standard_normal(x.size)
    fit = fit_slope(x, y)
    np.testing.assert_array_equal(fit.residual, y - (fit.slope * x + fit.intercept))
    expected = 1 - np.sum(fit.residual ** 2) / ((y.size - 1) * np.var(y, ddof=1))
    assert fit.r_squared == expected


@pytest.mark.parametrize("level", [0.5, 0.3, 1.7, -2.3, 2.2, 0.1, 3.14159])
def test_flat_spectrum_gives_nan_r_squared(level) -> None:
    x = _log_freqs()
    fit = fit_slope(x, np.full(x.size, level))
    assert np.isnan(fit.r_squared)
    assert fit.slope == pytest.approx(0.0, abs=1e-12)
    assert fit.intercept == pytest.approx(level)
    np.testing.assert_allclose(fit.residual, 0.0, atol=1e-12)


def test_non_finite_spectrum_gives_nan_r_squared() -> None:
    x = _log_freqs()
    y = np.linspace(0.0, 1.0, x.size)
    y[10] = -np.inf
    assert np.isnan(fit_slope(x, y).r_squared)


def test_spectrogram_fit_shapes_and_identity_per_bin() -> None:
    signal = np.random.default_rng(2).standard_normal(5000)
    spec = compute_spectrogram(signal, 250.0, 2.0, 0.5, (4.0, 100.0))
    fit = fit_spectrogram_slopes(spec)
    n_times = spec.times.size
    assert fit.slope.shape == fit.intercept.shape == fit.r_squared.shape == (n_times,)
    assert fit.residual.shape == (n_times, 200)
    for tt in range(n_times):
        y = spec.log_amplitude[:, tt]
        expected = 1 - np.sum(fit.residual[tt] ** 2) / ((y.size - 1) * np.var(y, ddof=1))
        assert fit.r_squared[tt] == expected


def test_white_noise_slope_is_near_zero() -> None:
    signal = np.random.default_rng(0).standard_normal(500 * 60)
    spec = compute_spectrogram(signal, 500.0, 2.0, 1.0, (4.0, 100.0))
    slopes = fit_spectrogram_slopes(spec).slope
    assert np.mean(np.abs(slopes) < 0.3) > 0.9
    assert abs(np.median(slopes)) < 0.1


def _power_law_signal(fs: float, seconds: float, seed: int) -> np.ndarray:
    n = int(fs * seconds)
    freqs = np.fft.rfftfreq(n, 1.0 / fs)
    amp = np.zeros_like(freqs)
    band = freqs >= 0.5
    amp[band] = 1.0 / freqs[band]
    phases = np.random.default_rng(seed).uniform(0, 2 * np.pi, freqs.size)
    return np.fft.irfft(amp * np.exp(1j * phases), n=n)


def test_inverse_frequency_amplitude_gives_slope_near_minus_one() -> None:
    fs = 500.0
    signal = _power_law_signal(fs, 120.0, seed=4)
    long_fit = fit_spectrogram_slopes(compute_spectrogram(signal, fs, 4.0, 2.0, (4.0, 100.0)))
    short_fit = fit_spectrogram_slopes(compute_spectrogram(signal, fs, 0.5, 0.5, (4.0, 100.0)))
    long_err = abs(np.mean(long_fit.slope) + 1.0)
    short_err = abs(np.mean(short_fit.slope) + 1.0)
    assert long_err < 0.1
    assert long_err <= short_err + 0.05
