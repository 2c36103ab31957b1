"""On-disk cache of SlopeSeries results (one compressed .npz per key)."""

from __future__ import annotations

import json
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from specslope.dsp.spectrogram import Spectrogram
from specslope.errors import CacheIOError
from specslope.slope.types import DetectionParams, SlopeSeries
from specslope.util.logging import get_logger, log_exception

CACHE_SUFFIX = ".PowerSpectrumSlope.lfp.npz"

logger = get_logger(__name__)


class ResultCache:
    """Load/store one SlopeSeries at a caller-supplied path.

    Records carry no parameter fingerprint: whatever is stored at the path is
    what ``load`` returns.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    @classmethod
    def from_base_path(cls, base_path: Union[str, Path]) -> "ResultCache":
        """Cache at ``<base_path>/<basename>.PowerSpectrumSlope.lfp.npz``."""
        base = Path(base_path).expanduser().absolute()
        return cls(base / f"{base.name}{CACHE_SUFFIX}")

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Optional[SlopeSeries]:
        if not self.exists():
            return None
        try:
            with np.load(self.path, allow_pickle=False) as npz:
                return _decode(npz)
        except (OSError, ValueError, KeyError, zipfile.BadZipFile) as exc:
            log_exception(logger, f"Failed to read cached slopes from {self.path}", error_type="cache_read")
            raise CacheIOError(f"cannot read cached result {self.path}: {exc}") from exc

    def store(self, series: SlopeSeries) -> None:
        """Write ``series`` to a temp file beside the target, then rename over it."""
        payload = _encode(series)
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp", delete=False
            ) as fh:
                tmp_name = fh.name
                np.savez_compressed(fh, **payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            log_exception(logger, f"Failed to write cached slopes to {self.path}", error_type="cache_write")
            raise CacheIOError(f"cannot write cached result {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        logger.debug("Stored slopes at %s", self.path, extra={"cache_path": str(self.path)})


# Channel ids are stored as a JSON list so ints, strings and None keep their type.
_CHANNEL_TYPES = (str, int, float, bool, type(None))


def _encode_channels(channels: Sequence[Any]) -> str:
    ids: List[Any] = []
    for cid in channels:
        if isinstance(cid, np.generic):
            cid = cid.item()
        if not isinstance(cid, _CHANNEL_TYPES):
            raise CacheIOError(f"channel id {cid!r} of type {type(cid).__name__} cannot be cached")
        ids.append(cid)
    return json.dumps(ids)


def _decode_channels(raw: np.ndarray) -> Tuple[Any, ...]:
    ids = json.loads(str(raw[()]))
    if not isinstance(ids, list):
        raise ValueError(f"channel ids must be a JSON list, got {type(ids).__name__}")
    return tuple(ids)


def _encode(series: SlopeSeries) -> Dict[str, np.ndarray]:
    payload: Dict[str, np.ndarray] = {
        "slope": series.slope,
        "intercept": series.intercept,
        "r_squared": series.r_squared,
        "timestamps": series.timestamps,
        "sampling_rate": np.asarray(series.sampling_rate),
        "window_size": np.asarray(series.detection_params.window_size),
        "freq_range": np.asarray(series.detection_params.freq_range, dtype=np.float64),
        "freqs": series.freqs,
        "channels": np.asarray(_encode_channels(series.channels)),
        "log_amplitude": series.log_amplitude,
    }
    if series.residual is not None:
        payload["residual"] = series.residual
    if series.spectrogram is not None:
        payload["spec_data"] = series.spectrogram.data
        payload["spec_times"] = series.spectrogram.times
    return payload


def _decode(npz) -> SlopeSeries:
    low, high = (float(v) for v in npz["freq_range"])
    freqs = npz["freqs"]
    log_amplitude = npz["log_amplitude"]
    spectrogram = None
    if "spec_data" in npz.files:
        spectrogram = Spectrogram(
            freqs=freqs,
            times=npz["spec_times"],
            data=npz["spec_data"],
            log_amplitude=log_amplitude[:, :, 0],
        )
    return SlopeSeries(
        slope=npz["slope"],
        intercept=npz["intercept"],
        r_squared=npz["r_squared"],
        timestamps=npz["timestamps"],
        sampling_rate=float(npz["sampling_rate"]),
        detection_params=DetectionParams(window_size=float(npz["window_size"]), freq_range=(low, high)),
        freqs=freqs,
        channels=_decode_channels(npz["channels"]),
        log_amplitude=log_amplitude,
        residual=npz["residual"] if "residual" in npz.files else None,
        spectrogram=spectrogram,
    )
