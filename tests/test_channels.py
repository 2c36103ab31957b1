import numpy as np
import pytest

from specslope.errors import ChannelMismatch, EmptyChannelSelection, InvalidFrequencyRange, InvalidWindowParameters
from specslope.slope import orchestrator
from specslope.slope.orchestrator import compute_channel_slope, power_spectrum_slope, select_channels
from specslope.slope.params import SlopeParams
from specslope.slope.types import TimeSeries

FS = 250.0


def _series(n_channels: int = 3, seconds: float = 20.0, channels=None, seed: int = 0) -> TimeSeries:
    rng = np.random.default_rng(seed)
    data = rng.standard_normal((int(FS * seconds), n_channels))
    if channels is None:
        channels = [10 + i for i in range(n_channels)]
    return TimeSeries.from_array(data, FS, channels=channels)


def test_selection_keeps_series_column_order() -> None:
    series = _series(channels=[3, 1, 2])
    assert select_channels(series, [2, 3]) == [(0, 3), (2, 2)]
    assert select_channels(series, None) == [(0, 3), (1, 1), (2, 2)]


def test_empty_request_selects_every_channel() -> None:
    series = _series(channels=[3, 1, 2])
    assert select_channels(series, []) == select_channels(series)
    assert power_spectrum_slope(series, 2.0, 1.0, channels=[]).channels == (3, 1, 2)


def test_unlabeled_series_is_one_unknown_channel() -> None:
    series = TimeSeries.from_array(np.zeros(100), FS)
    assert select_channels(series) == [(0, "unknown")]


def test_missing_channel_fails() -> None:
    series = _series()
    with pytest.raises(EmptyChannelSelection):
        power_spectrum_slope(series, 2.0, 1.0, channels=[99])


def test_invalid_parameters_fail_before_any_work() -> None:
    series = _series(n_channels=1)
    with pytest.raises(InvalidWindowParameters):
        power_spectrum_slope(series, 1.0, 2.0)
    with pytest.raises(InvalidFrequencyRange):
        power_spectrum_slope(series, 2.0, 1.0, freq_range=(100.0, 4.0))


def test_single_channel_run_keeps_residuals_and_spectrogram() -> None:
    series = _series(n_channels=1, channels=["ch0"])
    result = power_spectrum_slope(series, 2.0, 0.5)
    n_times = (int(FS * 20.0) - 500) // 125 + 1
    assert result.channels == ("ch0",)
    assert result.slope.shape == result.intercept.shape == result.r_squared.shape == (n_times, 1)
    assert result.timestamps.size == n_times
    assert result.residual.shape == (n_times, 200)
    assert result.log_amplitude.shape == (200, n_times, 1)
    assert result.spectrogram is not None
    assert result.spectrogram.data.shape == (200, n_times)
    assert result.sampling_rate == pytest.approx(2.0)
    assert result.detection_params.window_size == 2.0
    assert result.detection_params.freq_range == (4.0, 100.0)


def test_r_squared_identity_holds_for_reported_values() -> None:
    result = power_spectrum_slope(_series(n_channels=1), 2.0, 1.0)
    spec = result.spectrogram
    for tt in range(result.n_times):
        y = spec.log_amplitude[:, tt]
        expected = 1 - np.sum(result.residual[tt] ** 2) / ((y.size - 1) * np.var(y, ddof=1))
        assert result.r_squared[tt, 0] == expected


def test_multi_channel_columns_equal_single_channel_runs() -> None:
    series = _series(n_channels=3)
    combined = power_spectrum_slope(series, 2.0, 1.0)
    assert combined.channels == (10, 11, 12)
    assert combined.residual is None
    assert combined.spectrogram is None
    assert combined.log_amplitude.shape[::2] == (200, 3)
    for i, cid in enumerate(combined.channels):
        single = power_spectrum_slope(series, 2.0, 1.0, channels=[cid])
        np.testing.assert_array_equal(combined.slope[:, i], single.slope[:, 0])
        np.testing.assert_array_equal(combined.intercept[:, i], single.intercept[:, 0])
        np.testing.assert_array_equal(combined.r_squared[:, i], single.r_squared[:, 0])
        np.testing.assert_array_equal(combined.log_amplitude[:, :, i], single.log_amplitude[:, :, 0])
        np.testing.assert_array_equal(combined.timestamps, single.timestamps)


def test_timestamps_follow_series_start_time() -> None:
    data = np.random.default_rng(1).standard_normal(int(FS * 10))
    series = TimeSeries.from_array(data, FS, start_time=100.0)
    result = power_spectrum_slope(series, 2.0, 1.0)
    np.testing.assert_allclose(result.timestamps, 101.0 + np.arange(result.n_times))


def test_results_are_read_only() -> None:
    result = power_spectrum_slope(_series(n_channels=2), 2.0, 1.0)
    with pytest.raises(ValueError):
        result.slope[0, 0] = 1.0


def test_merge_rejects_channels_with_different_time_bins() -> None:
    params = SlopeParams(window_size=2.0, step=1.0)
    rng = np.random.default_rng(2)
    a = compute_channel_slope(rng.standard_normal(2500), FS, params, channel="a")
    b = compute_channel_slope(rng.standard_normal(3000), FS, params, channel="b")
    with pytest.raises(ChannelMismatch):
        orchestrator._merge_channels([a, b], params)


def test_silent_channel_gives_nan_fit_without_raising() -> None:
    params = SlopeParams(window_size=2.0, step=1.0)
    silent = np.zeros(2500)
    result = compute_channel_slope(silent, FS, params, channel="flat")
    assert np.all(np.isnan(result.r_squared))
