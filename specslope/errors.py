"""Exceptions raised by the slope estimator.

Every error derives from :class:`SlopeError` and from the builtin exception
that best describes it, so callers can catch either. Degenerate windows
(flat log-amplitude spectra) are not errors: they surface as NaN R² values.
"""

from __future__ import annotations


class SlopeError(Exception):
    """Base class for all specslope failures."""


class InvalidWindowParameters(SlopeError, ValueError):
    """Window size / step are non-positive, or the step exceeds the window."""


class InvalidFrequencyRange(SlopeError, ValueError):
    """Frequency bounds are not 0 < low < high."""


class InvalidTimeSeries(SlopeError, ValueError):
    """Sample matrix, timestamps, sampling rate or channel ids are inconsistent."""


class InsufficientSignalLength(SlopeError, ValueError):
    """The signal is shorter than a single analysis window."""


class EmptyChannelSelection(SlopeError, LookupError):
    """The requested channel filter matched no column."""


class ChannelMismatch(SlopeError, RuntimeError):
    """Per-channel results disagree on timestamps or frequency grid."""


class CacheIOError(SlopeError, OSError):
    """Reading or writing a cached result failed."""
