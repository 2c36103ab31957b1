"""Dataclasses shared across the orchestrator, cache and callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from specslope.dsp.spectrogram import Spectrogram
from specslope.errors import InvalidTimeSeries

UNKNOWN_CHANNEL = "unknown"

# Allowed relative disagreement between sampling_rate and 1 / median(dt).
_RATE_RTOL = 1e-3


def _frozen(arr: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if arr is None:
        return None
    arr = np.asarray(arr).view()
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class TimeSeries:
    """Multichannel signal: ``data`` is samples x channels."""

    data: np.ndarray
    timestamps: np.ndarray
    sampling_rate: float
    channels: Optional[Tuple[Any, ...]] = None

    def __post_init__(self) -> None:
        data = np.asarray(self.data)
        if data.ndim == 1:
            data = data.reshape(-1, 1)
        if data.ndim != 2:
            raise InvalidTimeSeries(f"data must be samples x channels, got shape {data.shape}")
        timestamps = np.asarray(self.timestamps, dtype=np.float64).reshape(-1)
        if timestamps.size != data.shape[0]:
            raise InvalidTimeSeries(f"{timestamps.size} timestamps for {data.shape[0]} samples")
        rate = float(self.sampling_rate)
        if not rate > 0:
            raise InvalidTimeSeries(f"sampling rate must be > 0, got {rate}")
        if timestamps.size > 1:
            dt = np.diff(timestamps)
            if np.any(dt <= 0):
                raise InvalidTimeSeries("timestamps must be strictly increasing")
            implied = 1.0 / float(np.median(dt))
            if abs(implied - rate) > _RATE_RTOL * rate:
                raise InvalidTimeSeries(f"sampling rate {rate} Hz disagrees with timestamps ({implied:.6g} Hz)")
        channels = self.channels
        if channels is not None:
            channels = tuple(channels)
            if len(channels) != data.shape[1]:
                raise InvalidTimeSeries(f"{len(channels)} channel ids for {data.shape[1]} columns")
        object.__setattr__(self, "data", _frozen(data))
        object.__setattr__(self, "timestamps", _frozen(timestamps))
        object.__setattr__(self, "sampling_rate", rate)
        object.__setattr__(self, "channels", channels)

    @classmethod
    def from_array(
        cls,
        data: np.ndarray,
        sampling_rate: float,
        channels: Optional[Sequence[Any]] = None,
        start_time: float = 0.0,
    ) -> "TimeSeries":
        n_samples = np.asarray(data).shape[0]
        timestamps = float(start_time) + np.arange(n_samples) / float(sampling_rate)
        return cls(data=data, timestamps=timestamps, sampling_rate=sampling_rate, channels=channels)

    @property
    def n_channels(self) -> int:
        return int(self.data.shape[1])

    @property
    def channel_ids(self) -> Tuple[Any, ...]:
        """Channel identifiers, or a single ``"unknown"`` id for unlabeled input."""
        if self.channels is None:
            return (UNKNOWN_CHANNEL,)
        return self.channels


@dataclass(frozen=True)
class DetectionParams:
    window_size: float
    freq_range: Tuple[float, float]


@dataclass(frozen=True, eq=False)
class SlopeSeries:
    """Slope / intercept / R² streams (time x channel) plus shared metadata.

    ``residual`` and ``spectrogram`` are only kept for single-channel runs.
    ``log_amplitude`` is freq x time x channel.
    """

    slope: np.ndarray
    intercept: np.ndarray
    r_squared: np.ndarray
    timestamps: np.ndarray
    sampling_rate: float
    detection_params: DetectionParams
    freqs: np.ndarray
    channels: Tuple[Any, ...]
    log_amplitude: np.ndarray
    residual: Optional[np.ndarray] = None
    spectrogram: Optional[Spectrogram] = None

    def __post_init__(self) -> None:
        for name in ("slope", "intercept", "r_squared", "timestamps", "freqs", "log_amplitude", "residual"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))
        object.__setattr__(self, "channels", tuple(self.channels))

    @property
    def n_channels(self) -> int:
        return len(self.channels)

    @property
    def n_times(self) -> int:
        return int(self.timestamps.size)
