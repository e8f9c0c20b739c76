"""Telemetry readiness checks for replay and recommendation evaluation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Protocol, Sequence, runtime_checkable

from skale.metrics.series_stats import (
    analyze_series,
    coverage_duration,
    dedupe_strings,
    format_duration,
    mean_float,
    median_float,
    normalize_samples,
    positive_sample_values,
    unique_non_empty_count,
)
from skale.metrics.signals import Sample, SignalName, SignalSeries, Snapshot, Window

_ZERO = timedelta(0)
_SECOND = timedelta(seconds=1)


class InvalidReadinessInputError(ValueError):
    """Raised when readiness options or input are inconsistent."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"invalid telemetry readiness input: {detail}")


class ReadinessLevel(str, Enum):
    SUPPORTED = "supported"
    DEGRADED = "degraded"
    UNSUPPORTED = "unsupported"

    def __str__(self) -> str:
        return self.value


class SignalLevel(str, Enum):
    SUPPORTED = "supported"
    DEGRADED = "degraded"
    UNSUPPORTED = "unsupported"
    MISSING = "missing"

    def __str__(self) -> str:
        return self.value


_SIGNAL_LEVEL_ORDER = {
    SignalLevel.SUPPORTED: 0,
    SignalLevel.DEGRADED: 1,
    SignalLevel.UNSUPPORTED: 2,
    SignalLevel.MISSING: 3,
}


@dataclass(frozen=True)
class ReadinessOptions:
    """Thresholds for telemetry validation; zero values take the defaults."""

    minimum_lookback: timedelta = _ZERO
    expected_resolution: timedelta = _ZERO
    degraded_missing_fraction: float = 0.0
    unsupported_missing_fraction: float = 0.0
    degraded_resolution_multiplier: float = 0.0
    unsupported_resolution_multiplier: float = 0.0
    degraded_gap_multiplier: float = 0.0
    unsupported_gap_multiplier: float = 0.0
    minimum_warmup_samples_to_estimate: int = 0
    demand_step_change_threshold: float = 0.0
    degraded_demand_unstable_fraction: float = 0.0
    unsupported_demand_unstable_fraction: float = 0.0

    def with_defaults(self) -> "ReadinessOptions":
        """Return a copy with every zero field replaced by its default."""
        defaults = default_readiness_options()
        changes = {
            name: getattr(defaults, name)
            for name in self.__dataclass_fields__
            if not getattr(self, name)
        }
        return replace(self, **changes)


def default_readiness_options() -> ReadinessOptions:
    """Conservative defaults for supported workloads."""
    return ReadinessOptions(
        minimum_lookback=timedelta(minutes=30),
        expected_resolution=timedelta(seconds=30),
        degraded_missing_fraction=0.10,
        unsupported_missing_fraction=0.25,
        degraded_resolution_multiplier=2,
        unsupported_resolution_multiplier=4,
        degraded_gap_multiplier=4,
        unsupported_gap_multiplier=8,
        minimum_warmup_samples_to_estimate=5,
        demand_step_change_threshold=1.5,
        degraded_demand_unstable_fraction=0.35,
        unsupported_demand_unstable_fraction=0.60,
    )


@dataclass
class ReadinessInput:
    """Normalized telemetry to evaluate."""

    snapshot: Snapshot = field(default_factory=Snapshot)
    evaluated_at: Optional[datetime] = None
    known_warmup: Optional[timedelta] = None
    options: ReadinessOptions = field(default_factory=ReadinessOptions)


@dataclass
class SignalReport:
    """Health of one normalized signal."""

    name: Optional[SignalName] = None
    required: bool = False
    level: Optional[SignalLevel] = None
    message: str = ""
    issues: list[str] = field(default_factory=list)
    sample_count: int = 0
    requested_lookback_seconds: int = 0
    observed_coverage_seconds: int = 0
    missing_fraction: float = 0.0
    median_resolution_seconds: int = 0
    max_gap_seconds: int = 0
    label_signature_count: int = 0
    warmup_known: bool = False
    warmup_estimable: bool = False
    estimated_warmup_seconds: Optional[int] = None
    demand_unstable_fraction: Optional[float] = None


@dataclass
class ReadinessReport:
    """Structured telemetry readiness result."""

    level: Optional[ReadinessLevel] = None
    checked_at: Optional[datetime] = None
    summary: str = ""
    reasons: list[str] = field(default_factory=list)
    blocking_reasons: list[str] = field(default_factory=list)
    signals: list[SignalReport] = field(default_factory=list)


@runtime_checkable
class Evaluator(Protocol):
    """Checks whether telemetry is sufficient for evaluation."""

    def evaluate(self, input: ReadinessInput) -> ReadinessReport: ...


@dataclass
class _SignalEvaluation:
    report: SignalReport
    degraded: list[str] = field(default_factory=list)
    blocking: list[str] = field(default_factory=list)


def _seconds(duration: timedelta) -> int:
    return duration // _SECOND


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class DefaultEvaluator:
    """The default telemetry readiness checks."""

    def evaluate(self, input: ReadinessInput) -> ReadinessReport:
        """Evaluate signal availability and quality; raise on invalid options."""
        options = input.options.with_defaults()
        validate_readiness_input(input, options)

        snapshot = input.snapshot
        window = snapshot.window
        evaluations = [
            _evaluate_standard_signal(name, snapshot.signal(name), True, window, options)
            for name in (SignalName.DEMAND, SignalName.REPLICAS, SignalName.CPU, SignalName.MEMORY)
        ]
        evaluations.append(_evaluate_warmup(input, options))

        headroom = snapshot.signal(SignalName.NODE_HEADROOM)
        if headroom is not None:
            evaluations.append(
                _evaluate_standard_signal(SignalName.NODE_HEADROOM, headroom, False, window, options)
            )

        report = ReadinessReport(checked_at=_evaluated_at(input))
        reasons: list[str] = []
        blocking: list[str] = []
        for evaluation in evaluations:
            report.signals.append(evaluation.report)
            reasons.extend(evaluation.degraded)
            blocking.extend(evaluation.blocking)

        report.blocking_reasons = dedupe_strings(blocking)
        report.reasons = dedupe_strings([*reasons, *report.blocking_reasons])
        if report.blocking_reasons:
            report.level = ReadinessLevel.UNSUPPORTED
        elif report.reasons:
            report.level = ReadinessLevel.DEGRADED
        else:
            report.level = ReadinessLevel.SUPPORTED
        report.summary = build_readiness_summary(report)
        return report


def _evaluate_standard_signal(
    name: SignalName,
    series: Optional[SignalSeries],
    required: bool,
    window: Window,
    options: ReadinessOptions,
) -> _SignalEvaluation:
    label = name.value
    report = SignalReport(name=name, required=required)
    result = _SignalEvaluation(report=report)

    if series is None or not series.samples:
        report.level = SignalLevel.MISSING
        report.message = _signal_missing_message(name, required)
        if required:
            result.blocking.append(report.message)
        return result

    stats = analyze_series(series, window, options.expected_resolution)
    report.sample_count = len(stats.samples)
    report.requested_lookback_seconds = _seconds(stats.lookback)
    report.observed_coverage_seconds = _seconds(stats.coverage)
    report.missing_fraction = stats.missing_fraction
    report.median_resolution_seconds = _seconds(stats.median_resolution)
    report.max_gap_seconds = _seconds(stats.max_gap)
    report.label_signature_count = stats.label_count

    severity = SignalLevel.SUPPORTED
    issues: list[str] = []

    if stats.lookback < options.minimum_lookback:
        issues.append(
            f"{label} lookback covers {format_duration(stats.lookback)}; "
            f"need at least {format_duration(options.minimum_lookback)}"
        )
        if stats.lookback < options.minimum_lookback / 2:
            severity = worsen_signal_level(severity, SignalLevel.UNSUPPORTED)
        else:
            severity = worsen_signal_level(severity, SignalLevel.DEGRADED)

    missing_message = f"{label} is missing {stats.missing_fraction * 100:.0f}% of expected samples"
    if stats.missing_fraction > options.unsupported_missing_fraction:
        issues.append(missing_message)
        severity = worsen_signal_level(severity, SignalLevel.UNSUPPORTED)
    elif stats.missing_fraction > options.degraded_missing_fraction:
        issues.append(missing_message)
        severity = worsen_signal_level(severity, SignalLevel.DEGRADED)

    resolution = options.expected_resolution
    resolution_message = (
        f"{label} median scrape resolution is {format_duration(stats.median_resolution)}; "
        f"target is {format_duration(resolution)}"
    )
    if stats.median_resolution > resolution * options.unsupported_resolution_multiplier:
        issues.append(resolution_message)
        severity = worsen_signal_level(severity, SignalLevel.UNSUPPORTED)
    elif stats.median_resolution > resolution * options.degraded_resolution_multiplier:
        issues.append(resolution_message)
        severity = worsen_signal_level(severity, SignalLevel.DEGRADED)

    gap_message = f"{label} has a maximum telemetry gap of {format_duration(stats.max_gap)}"
    if stats.max_gap > resolution * options.unsupported_gap_multiplier:
        issues.append(gap_message)
        severity = worsen_signal_level(severity, SignalLevel.UNSUPPORTED)
    elif stats.max_gap > resolution * options.degraded_gap_multiplier:
        issues.append(gap_message)
        severity = worsen_signal_level(severity, SignalLevel.DEGRADED)

    if stats.label_count > 1:
        issues.append(
            f"{label} observed {stats.label_count} label signatures across the lookback window"
        )
        severity = worsen_signal_level(severity, SignalLevel.UNSUPPORTED)

    if name == SignalName.DEMAND:
        severity, report.demand_unstable_fraction = _evaluate_demand_stability(
            stats.samples, issues, severity, options
        )

    report.level = severity
    if not issues:
        report.message = (
            f"{label} signal is available with {report.sample_count} samples "
            f"over {format_duration(stats.lookback)}"
        )
        return result

    report.issues = issues
    report.message = "; ".join(issues)
    if required:
        if severity in (SignalLevel.UNSUPPORTED, SignalLevel.MISSING):
            result.blocking.append(report.message)
        elif severity == SignalLevel.DEGRADED:
            result.degraded.append(report.message)
    return result


def _evaluate_warmup(input: ReadinessInput, options: ReadinessOptions) -> _SignalEvaluation:
    known = input.known_warmup
    if known is not None:
        if known <= _ZERO:
            message = "warmup lag is configured but not positive"
            return _SignalEvaluation(
                report=SignalReport(
                    name=SignalName.WARMUP,
                    required=True,
                    level=SignalLevel.UNSUPPORTED,
                    message=message,
                    issues=[message],
                ),
                blocking=[message],
            )
        return _SignalEvaluation(
            report=SignalReport(
                name=SignalName.WARMUP,
                required=True,
                level=SignalLevel.SUPPORTED,
                message=f"warmup lag is explicitly known at {format_duration(known)}",
                warmup_known=True,
                estimated_warmup_seconds=_seconds(known),
            )
        )

    series = input.snapshot.signal(SignalName.WARMUP)
    if series is None or not series.samples:
        message = "warmup lag is not known and no warmup observations are available to estimate it"
        return _SignalEvaluation(
            report=SignalReport(
                name=SignalName.WARMUP,
                required=True,
                level=SignalLevel.MISSING,
                message=message,
                issues=[message],
            ),
            blocking=[message],
        )

    samples = normalize_samples(series.samples)
    report = SignalReport(
        name=SignalName.WARMUP,
        required=True,
        sample_count=len(samples),
        label_signature_count=unique_non_empty_count(series.observed_label_signatures),
        observed_coverage_seconds=_seconds(coverage_duration(samples)),
    )

    def blocked(message: str) -> _SignalEvaluation:
        report.level = SignalLevel.UNSUPPORTED
        report.message = message
        report.issues = [message]
        return _SignalEvaluation(report=report, blocking=[message])

    if report.label_signature_count > 1:
        return blocked(
            f"warmup observations use {report.label_signature_count} label signatures "
            "across the lookback window"
        )

    values = positive_sample_values(series)
    if len(values) < options.minimum_warmup_samples_to_estimate:
        return blocked(
            "warmup lag cannot be estimated reliably; only "
            f"{len(values)} positive warmup samples are available"
        )

    estimate = median_float(values)
    if estimate <= 0:
        return blocked("warmup lag estimate is not positive")

    estimated_seconds = _round_half_away(estimate)
    message = (
        f"warmup lag can be estimated from {len(values)} samples; median estimated warmup is "
        f"{format_duration(timedelta(seconds=estimated_seconds))}"
    )
    report.warmup_estimable = True
    report.estimated_warmup_seconds = estimated_seconds
    report.level = SignalLevel.DEGRADED
    report.issues = [message]
    report.message = message
    return _SignalEvaluation(report=report, degraded=[message])


def validate_readiness_input(input: ReadinessInput, options: ReadinessOptions) -> None:
    """Raise InvalidReadinessInputError when options or input are inconsistent."""
    checks = [
        (options.minimum_lookback <= _ZERO, "minimum lookback must be positive"),
        (options.expected_resolution <= _ZERO, "expected resolution must be positive"),
        (
            not 0 <= options.degraded_missing_fraction <= 1,
            "degraded missing fraction must be between 0 and 1",
        ),
        (
            not 0 <= options.unsupported_missing_fraction <= 1,
            "unsupported missing fraction must be between 0 and 1",
        ),
        (
            options.degraded_missing_fraction > options.unsupported_missing_fraction,
            "degraded missing fraction must not exceed unsupported missing fraction",
        ),
        (
            options.degraded_resolution_multiplier <= 0
            or options.unsupported_resolution_multiplier <= 0,
            "resolution multipliers must be positive",
        ),
        (
            options.degraded_gap_multiplier <= 0 or options.unsupported_gap_multiplier <= 0,
            "gap multipliers must be positive",
        ),
        (
            options.degraded_resolution_multiplier > options.unsupported_resolution_multiplier,
            "degraded resolution multiplier must not exceed unsupported resolution multiplier",
        ),
        (
            options.degraded_gap_multiplier > options.unsupported_gap_multiplier,
            "degraded gap multiplier must not exceed unsupported gap multiplier",
        ),
        (
            options.minimum_warmup_samples_to_estimate < 1,
            "minimum warmup samples must be at least 1",
        ),
        (
            options.demand_step_change_threshold <= 0,
            "demand step change threshold must be positive",
        ),
        (
            not 0 <= options.degraded_demand_unstable_fraction <= 1,
            "degraded demand unstable fraction must be between 0 and 1",
        ),
        (
            not 0 <= options.unsupported_demand_unstable_fraction <= 1,
            "unsupported demand unstable fraction must be between 0 and 1",
        ),
        (
            options.degraded_demand_unstable_fraction
            > options.unsupported_demand_unstable_fraction,
            "degraded demand unstable fraction must not exceed unsupported demand unstable fraction",
        ),
        (
            input.known_warmup is not None and input.known_warmup < _ZERO,
            "known warmup must be non-negative",
        ),
    ]
    for failed, message in checks:
        if failed:
            raise InvalidReadinessInputError(message)


def _evaluate_demand_stability(
    samples: Sequence[Sample],
    issues: list[str],
    severity: SignalLevel,
    options: ReadinessOptions,
) -> tuple[SignalLevel, Optional[float]]:
    if len(samples) < 2:
        issues.append("demand signal has fewer than two samples in the lookback window")
        return worsen_signal_level(severity, SignalLevel.UNSUPPORTED), None

    if mean_float([sample.value for sample in samples]) <= 0:
        issues.append("demand signal has no sustained activity in the lookback window")
        return worsen_signal_level(severity, SignalLevel.UNSUPPORTED), None

    threshold = options.demand_step_change_threshold
    ratios = [
        abs(current.value - previous.value)
        / max((abs(previous.value) + abs(current.value)) / 2, 1.0)
        for previous, current in zip(samples, samples[1:])
    ]
    unstable_fraction = sum(1 for ratio in ratios if ratio > threshold) / len(ratios)

    detail = f"({unstable_fraction * 100:.0f}% of steps exceed {threshold:.2f}x relative change)"
    if unstable_fraction > options.unsupported_demand_unstable_fraction:
        issues.append(f"demand signal changes too abruptly between scrapes {detail}")
        severity = worsen_signal_level(severity, SignalLevel.UNSUPPORTED)
    elif unstable_fraction > options.degraded_demand_unstable_fraction:
        issues.append(f"demand signal is noisy between scrapes {detail}")
        severity = worsen_signal_level(severity, SignalLevel.DEGRADED)
    return severity, unstable_fraction


def _evaluated_at(input: ReadinessInput) -> Optional[datetime]:
    if input.evaluated_at is not None:
        return input.evaluated_at
    return input.snapshot.window.end


def build_readiness_summary(report: ReadinessReport) -> str:
    """Operator-facing one-line summary of a readiness report."""
    if report.level == ReadinessLevel.SUPPORTED:
        return "Telemetry is sufficient for replay and recommendation evaluation."
    if report.level == ReadinessLevel.DEGRADED:
        return f"Telemetry is usable but degraded: {'; '.join(report.reasons)}."
    return (
        "Telemetry is not sufficient for replay or recommendation evaluation: "
        f"{'; '.join(report.blocking_reasons)}."
    )


def _signal_missing_message(name: SignalName, required: bool) -> str:
    kind = "required" if required else "optional"
    return f"{kind} signal {name.value} is missing"


def worsen_signal_level(current: SignalLevel, next: SignalLevel) -> SignalLevel:
    """Return whichever level is worse."""
    if _SIGNAL_LEVEL_ORDER[next] > _SIGNAL_LEVEL_ORDER[current]:
        return next
    return current