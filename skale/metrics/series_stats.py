"""Statistics over normalized signal samples used by readiness checks."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable, Optional, Sequence

from skale.metrics.signals import Sample, SignalSeries, Window

_ZERO = timedelta(0)


@dataclass(frozen=True)
class SeriesStats:
    """Coverage, spacing and consistency figures for one signal series."""

    samples: list[Sample] = field(default_factory=list)
    coverage: timedelta = _ZERO
    lookback: timedelta = _ZERO
    missing_fraction: float = 0.0
    median_resolution: timedelta = _ZERO
    max_gap: timedelta = _ZERO
    label_count: int = 0


def _window_span(window: Window) -> Optional[timedelta]:
    if window.start is not None and window.end is not None and window.end > window.start:
        return window.end - window.start
    return None


def analyze_series(
    series: SignalSeries, window: Window, expected_resolution: timedelta
) -> SeriesStats:
    """Compute coverage, lookback, gaps and missing fraction for a series."""
    samples = normalize_samples(series.samples)
    coverage = coverage_duration(samples)
    span = _window_span(window)
    lookback = span if span is not None else coverage

    return SeriesStats(
        samples=samples,
        coverage=coverage,
        lookback=lookback,
        missing_fraction=missing_fraction(samples, lookback, expected_resolution),
        median_resolution=median_sample_resolution(samples),
        max_gap=max_sample_gap(samples, window),
        label_count=unique_non_empty_count(series.observed_label_signatures),
    )


def normalize_samples(samples: Iterable[Sample]) -> list[Sample]:
    """Sort samples by time; for equal timestamps the later sample wins."""
    deduped: list[Sample] = []
    for sample in sorted(samples, key=lambda item: item.timestamp):
        if deduped and sample.timestamp == deduped[-1].timestamp:
            deduped[-1] = sample
        else:
            deduped.append(sample)
    return deduped


def median_sample_resolution(samples: Sequence[Sample]) -> timedelta:
    """Median spacing between consecutive samples, or zero below two samples."""
    if len(samples) < 2:
        return _ZERO
    intervals = sorted(
        current.timestamp - previous.timestamp
        for previous, current in zip(samples, samples[1:])
    )
    mid = len(intervals) // 2
    if len(intervals) % 2 == 1:
        return intervals[mid]
    return (intervals[mid - 1] + intervals[mid]) // 2


def max_sample_gap(samples: Sequence[Sample], window: Window) -> timedelta:
    """Largest gap between samples, including the head and tail of the window."""
    if not samples:
        span = _window_span(window)
        return span if span is not None else _ZERO

    max_gap = _ZERO
    first = samples[0].timestamp
    if window.start is not None and first > window.start:
        max_gap = first - window.start
    for previous, current in zip(samples, samples[1:]):
        max_gap = max(max_gap, current.timestamp - previous.timestamp)
    last = samples[-1].timestamp
    if window.end is not None and window.end > last:
        max_gap = max(max_gap, window.end - last)
    return max_gap


def missing_fraction(
    samples: Sequence[Sample], lookback: timedelta, expected_resolution: timedelta
) -> float:
    """Fraction of expected samples absent over the lookback."""
    if lookback <= _ZERO or expected_resolution <= _ZERO:
        return 0.0
    expected = int(math.floor(lookback / expected_resolution)) + 1
    if expected <= 0:
        return 0.0
    missing = expected - len(samples)
    if missing <= 0:
        return 0.0
    return missing / expected


def unique_non_empty_count(values: Iterable[str]) -> int:
    """Number of distinct non-empty strings."""
    return len({value for value in values if value})


def positive_sample_values(series: Optional[SignalSeries]) -> list[float]:
    """Positive values of the series in time order."""
    if series is None:
        return []
    return [sample.value for sample in normalize_samples(series.samples) if sample.value > 0]


def coverage_duration(samples: Sequence[Sample]) -> timedelta:
    """Time between the first and last sample."""
    if len(samples) < 2:
        return _ZERO
    return samples[-1].timestamp - samples[0].timestamp


def median_float(values: Sequence[float]) -> float:
    """Median of the values, or zero when empty."""
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def mean_float(values: Sequence[float]) -> float:
    """Arithmetic mean of the values, or zero when empty."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def dedupe_strings(values: Iterable[str]) -> list[str]:
    """Drop empty and repeated strings, keeping first occurrences in order."""
    return list(dict.fromkeys(value for value in values if value))


def format_duration(duration: timedelta) -> str:
    """Render a duration such as 1h2m3.5s; non-positive durations are 0s."""
    if duration <= _ZERO:
        return "0s"
    total_us = duration // timedelta(microseconds=1)
    if total_us < 1_000:
        return f"{total_us}µs"
    if total_us < 1_000_000:
        whole, frac = divmod(total_us, 1_000)
        text = str(whole)
        if frac:
            text += "." + f"{frac:03d}".rstrip("0")
        return f"{text}ms"

    seconds, frac = divmod(total_us, 1_000_000)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    sec_text = str(secs)
    if frac:
        sec_text += "." + f"{frac:06d}".rstrip("0")
    if hours:
        return f"{hours}h{minutes}m{sec_text}s"
    if minutes:
        return f"{minutes}m{sec_text}s"
    return f"{sec_text}s"