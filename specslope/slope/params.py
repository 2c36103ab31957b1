"""Estimator parameter dataclass and defaults."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple

from specslope.errors import InvalidFrequencyRange, InvalidWindowParameters
from specslope.slope.types import DetectionParams

DEFAULT_FREQ_RANGE: Tuple[float, float] = (4.0, 100.0)

# Log a progress line every this many channels in multi-channel runs.
PROGRESS_EVERY = 4


@dataclass(frozen=True)
class SlopeParams:
    """Sliding-window settings in seconds; 2-4 s windows are typical for LFP."""

    window_size: float
    step: float
    freq_range: Tuple[float, float] = DEFAULT_FREQ_RANGE

    def __post_init__(self) -> None:
        low, high = self.freq_range
        object.__setattr__(self, "window_size", float(self.window_size))
        object.__setattr__(self, "step", float(self.step))
        object.__setattr__(self, "freq_range", (float(low), float(high)))

    def validate(self) -> "SlopeParams":
        if not self.window_size > 0 or not self.step > 0:
            raise InvalidWindowParameters(
                f"window size and step must be > 0 (got window={self.window_size}, step={self.step})"
            )
        if self.step > self.window_size:
            raise InvalidWindowParameters(f"step {self.step}s exceeds window size {self.window_size}s")
        low, high = self.freq_range
        if not low > 0 or not high > low:
            raise InvalidFrequencyRange(f"frequency range must satisfy 0 < low < high (got {low}, {high})")
        return self

    @property
    def detection_params(self) -> DetectionParams:
        return DetectionParams(window_size=self.window_size, freq_range=self.freq_range)

    @property
    def output_sampling_rate(self) -> float:
        return 1.0 / self.step

    def serialize(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["freq_range"] = list(self.freq_range)
        return payload
