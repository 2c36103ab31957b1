"""Power spectrum slope over sliding windows, per channel, with optional caching."""

from __future__ import annotations

import time
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from specslope.dsp.fit import fit_spectrogram_slopes
from specslope.dsp.spectrogram import compute_spectrogram
from specslope.errors import ChannelMismatch, EmptyChannelSelection
from specslope.slope.cache import ResultCache
from specslope.slope.params import DEFAULT_FREQ_RANGE, PROGRESS_EVERY, SlopeParams
from specslope.slope.types import SlopeSeries, TimeSeries
from specslope.util.logging import get_logger

logger = get_logger(__name__)


def select_channels(series: TimeSeries, channels: Optional[Iterable[Any]] = None) -> List[Tuple[int, Any]]:
    """Return (column, channel id) pairs in the series' column order.

    An omitted or empty request selects every column. Unlabeled series expose
    a single ``"unknown"`` channel.
    """
    ids = series.channel_ids
    wanted = set(channels) if channels is not None else set()
    if not wanted:
        return list(enumerate(ids))
    selected = [(col, cid) for col, cid in enumerate(ids) if cid in wanted]
    if not selected:
        raise EmptyChannelSelection(f"none of the requested channels {sorted(map(str, wanted))} are present")
    return selected


def compute_channel_slope(
    signal: np.ndarray,
    sampling_rate: float,
    params: SlopeParams,
    *,
    channel: Any,
    t0: float = 0.0,
) -> SlopeSeries:
    """Single-channel path: keeps the residual matrix and complex spectrogram."""
    spec = compute_spectrogram(
        signal,
        sampling_rate,
        params.window_size,
        params.step,
        params.freq_range,
        t0=t0,
    )
    fit = fit_spectrogram_slopes(spec)
    return SlopeSeries(
        slope=fit.slope[:, None],
        intercept=fit.intercept[:, None],
        r_squared=fit.r_squared[:, None],
        timestamps=spec.times,
        sampling_rate=params.output_sampling_rate,
        detection_params=params.detection_params,
        freqs=spec.freqs,
        channels=(channel,),
        log_amplitude=spec.log_amplitude[:, :, None],
        residual=fit.residual,
        spectrogram=spec,
    )


def _merge_channels(results: Sequence[SlopeSeries], params: SlopeParams) -> SlopeSeries:
    first = results[0]
    for res in results[1:]:
        if not np.array_equal(res.timestamps, first.timestamps):
            raise ChannelMismatch(f"channel {res.channels[0]!r} has different time bins than {first.channels[0]!r}")
        if not np.array_equal(res.freqs, first.freqs):
            raise ChannelMismatch(f"channel {res.channels[0]!r} has a different frequency grid")
    return SlopeSeries(
        slope=np.concatenate([r.slope for r in results], axis=1),
        intercept=np.concatenate([r.intercept for r in results], axis=1),
        r_squared=np.concatenate([r.r_squared for r in results], axis=1),
        timestamps=first.timestamps,
        sampling_rate=params.output_sampling_rate,
        detection_params=params.detection_params,
        freqs=first.freqs,
        channels=tuple(r.channels[0] for r in results),
        log_amplitude=np.concatenate([r.log_amplitude for r in results], axis=2),
    )


def run_channels(
    series: TimeSeries,
    params: SlopeParams,
    channels: Optional[Iterable[Any]] = None,
) -> SlopeSeries:
    """Run the single-channel path on each selected column and aggregate.

    Residuals and the complex spectrogram are only returned when exactly one
    channel is selected.
    """
    params.validate()
    selected = select_channels(series, channels)
    t0 = float(series.timestamps[0]) if series.timestamps.size else 0.0

    results: List[SlopeSeries] = []
    total = len(selected)
    for k, (col, cid) in enumerate(selected, start=1):
        signal = np.ascontiguousarray(series.data[:, col])
        results.append(compute_channel_slope(signal, series.sampling_rate, params, channel=cid, t0=t0))
        if total > 1 and (k % PROGRESS_EVERY == 0 or k == total):
            logger.info("%d of %d channels complete", k, total, extra={"channel": cid})

    if len(results) == 1:
        return results[0]
    return _merge_channels(results, params)


def _cached_matches(cached: SlopeSeries, params: SlopeParams) -> bool:
    return cached.detection_params == params.detection_params and bool(
        np.isclose(cached.sampling_rate, params.output_sampling_rate)
    )


def power_spectrum_slope(
    series: TimeSeries,
    window_size: float,
    step: float,
    *,
    freq_range: Tuple[float, float] = DEFAULT_FREQ_RANGE,
    channels: Optional[Iterable[Any]] = None,
    cache: Optional[ResultCache] = None,
    force_redetect: bool = False,
    validate_cached_params: bool = False,
) -> SlopeSeries:
    """Sliding-window power spectrum slope of ``series``.

    Args:
        series: Samples x channels signal.
        window_size: Window length in seconds.
        step: Hop between windows in seconds (0 < step <= window_size).
        freq_range: (low, high) Hz bounds of the 200-point log-spaced grid.
        channels: Channel ids to process; all columns when omitted.
        cache: Optional result cache. A stored result is returned as-is,
            whatever parameters it was computed with, unless
            ``validate_cached_params`` is set.
        force_redetect: Recompute even when the cache holds a result.
        validate_cached_params: Recompute when the cached window size,
            frequency range or step differ from this call.

    Returns:
        The aggregated SlopeSeries.
    """
    params = SlopeParams(window_size=window_size, step=step, freq_range=freq_range).validate()

    if cache is not None and not force_redetect:
        cached = cache.load()
        if cached is not None:
            if not validate_cached_params or _cached_matches(cached, params):
                logger.info("Loaded cached slopes from %s", cache.path, extra={"cache_path": str(cache.path)})
                return cached
            logger.warning(
                "Cached slopes at %s were computed with different parameters, recomputing",
                cache.path,
                extra={"cache_path": str(cache.path)},
            )

    started = time.perf_counter()
    result = run_channels(series, params, channels)
    duration_ms = int((time.perf_counter() - started) * 1000)
    logger.info(
        "Computed slopes for %d channel(s), %d windows",
        result.n_channels,
        result.n_times,
        extra={"n_windows": result.n_times, "duration_ms": duration_ms},
    )

    if cache is not None:
        cache.store(result)
    return result
