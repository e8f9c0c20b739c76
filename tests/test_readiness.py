from datetime import datetime, timedelta, timezone

import pytest

from skale.metrics.readiness import (
    DefaultEvaluator,
    InvalidReadinessInputError,
    ReadinessInput,
    ReadinessLevel,
    ReadinessOptions,
    ReadinessReport,
    SignalLevel,
    build_readiness_summary,
    default_readiness_options,
    validate_readiness_input,
    worsen_signal_level,
)
from skale.metrics.signals import Sample, SignalName, SignalSeries, Snapshot, Window

NOW = datetime(2026, 4, 2, 12, 0, 0, tzinfo=timezone.utc)
HALF_MINUTE = timedelta(seconds=30)
KNOWN_WARMUP = timedelta(seconds=45)


def series(name, start, count, step, generator):
    return SignalSeries(
        name=name,
        samples=[Sample(start + step * i, generator(i)) for i in range(count)],
        observed_label_signatures=["service=checkout"],
    )


def stable_demand(i):
    return 180 + (i % 5) * 10


def constant(value):
    return lambda _i: value


def alternating(a, b):
    return lambda i: a if i % 2 == 0 else b


def warmup_values(*values):
    return lambda i: values[min(i, len(values) - 1)]


def standard_snapshot(**overrides):
    start = NOW - timedelta(minutes=30)
    fields = dict(
        window=Window(start=start, end=NOW),
        demand=series(SignalName.DEMAND, start, 61, HALF_MINUTE, stable_demand),
        replicas=series(SignalName.REPLICAS, start, 61, HALF_MINUTE, constant(4)),
        cpu=series(SignalName.CPU, start, 61, HALF_MINUTE, alternating(0.55, 0.60)),
        memory=series(SignalName.MEMORY, start, 61, HALF_MINUTE, alternating(0.65, 0.68)),
    )
    fields.update(overrides)
    return Snapshot(**fields)


def signal_report(report, name):
    for signal in report.signals:
        if signal.name == name:
            return signal
    raise AssertionError(f"signal {name} not found in report")


def contains_substring(values, substring):
    return any(substring in value for value in values)


def test_supported_telemetry():
    report = DefaultEvaluator().evaluate(
        ReadinessInput(evaluated_at=NOW, snapshot=standard_snapshot(), known_warmup=KNOWN_WARMUP)
    )
    assert report.level == ReadinessLevel.SUPPORTED
    assert report.blocking_reasons == []
    assert "sufficient" in report.summary
    assert signal_report(report, SignalName.DEMAND).level == SignalLevel.SUPPORTED
    warmup = signal_report(report, SignalName.WARMUP)
    assert warmup.level == SignalLevel.SUPPORTED
    assert warmup.estimated_warmup_seconds == 45
    assert report.checked_at == NOW
    assert len(report.signals) == 5


def test_degraded_when_warmup_must_be_estimated():
    snapshot = standard_snapshot(
        warmup=series(
            SignalName.WARMUP,
            NOW - timedelta(minutes=5),
            6,
            timedelta(minutes=1),
            warmup_values(40, 41, 43, 45, 44, 46),
        )
    )
    report = DefaultEvaluator().evaluate(ReadinessInput(evaluated_at=NOW, snapshot=snapshot))
    assert report.level == ReadinessLevel.DEGRADED
    assert report.blocking_reasons == []
    warmup = signal_report(report, SignalName.WARMUP)
    assert warmup.level == SignalLevel.DEGRADED
    assert warmup.warmup_estimable is True
    assert warmup.estimated_warmup_seconds == 44
    assert "degraded" in report.summary


def test_unsupported_when_required_signal_missing():
    snapshot = standard_snapshot(demand=SignalSeries())
    report = DefaultEvaluator().evaluate(
        ReadinessInput(evaluated_at=NOW, snapshot=snapshot, known_warmup=KNOWN_WARMUP)
    )
    assert report.level == ReadinessLevel.UNSUPPORTED
    assert signal_report(report, SignalName.DEMAND).level == SignalLevel.MISSING
    assert report.blocking_reasons
    assert "required signal demand is missing" in report.blocking_reasons[0]


def test_unsupported_for_label_inconsistency():
    demand = series(
        SignalName.DEMAND, NOW - timedelta(minutes=30), 61, HALF_MINUTE, stable_demand
    )
    demand.observed_label_signatures = ["service=checkout", "service=checkout,pod=checkout-1"]
    report = DefaultEvaluator().evaluate(
        ReadinessInput(
            evaluated_at=NOW, snapshot=standard_snapshot(demand=demand), known_warmup=KNOWN_WARMUP
        )
    )
    assert report.level == ReadinessLevel.UNSUPPORTED
    assert signal_report(report, SignalName.DEMAND).level == SignalLevel.UNSUPPORTED
    assert contains_substring(report.blocking_reasons, "label signatures")


def test_unsupported_for_coarse_resolution_and_gaps():
    start = NOW - timedelta(minutes=30)
    step = timedelta(minutes=5)
    snapshot = standard_snapshot(
        demand=series(SignalName.DEMAND, start, 7, step, stable_demand),
        replicas=series(SignalName.REPLICAS, start, 7, step, constant(4)),
        cpu=series(SignalName.CPU, start, 7, step, alternating(0.55, 0.60)),
        memory=series(SignalName.MEMORY, start, 7, step, alternating(0.65, 0.68)),
    )
    report = DefaultEvaluator().evaluate(
        ReadinessInput(evaluated_at=NOW, snapshot=snapshot, known_warmup=KNOWN_WARMUP)
    )
    assert report.level == ReadinessLevel.UNSUPPORTED
    assert contains_substring(report.blocking_reasons, "median scrape resolution")


def test_unsupported_for_unstable_demand_signal():
    snapshot = standard_snapshot(
        demand=series(
            SignalName.DEMAND, NOW - timedelta(minutes=30), 61, HALF_MINUTE, alternating(0, 1000)
        )
    )
    report = DefaultEvaluator().evaluate(
        ReadinessInput(evaluated_at=NOW, snapshot=snapshot, known_warmup=KNOWN_WARMUP)
    )
    assert report.level == ReadinessLevel.UNSUPPORTED
    demand = signal_report(report, SignalName.DEMAND)
    assert demand.level == SignalLevel.UNSUPPORTED
    assert demand.demand_unstable_fraction == 1.0
    assert contains_substring(report.blocking_reasons, "changes too abruptly")


def test_short_lookback_is_degraded():
    start = NOW - timedelta(minutes=20)
    snapshot = Snapshot(
        window=Window(start=start, end=NOW),
        demand=series(SignalName.DEMAND, start, 41, HALF_MINUTE, stable_demand),
        replicas=series(SignalName.REPLICAS, start, 41, HALF_MINUTE, constant(4)),
        cpu=series(SignalName.CPU, start, 41, HALF_MINUTE, alternating(0.55, 0.60)),
        memory=series(SignalName.MEMORY, start, 41, HALF_MINUTE, alternating(0.65, 0.68)),
    )
    report = DefaultEvaluator().evaluate(
        ReadinessInput(evaluated_at=NOW, snapshot=snapshot, known_warmup=KNOWN_WARMUP)
    )
    assert report.level == ReadinessLevel.DEGRADED
    demand = signal_report(report, SignalName.DEMAND)
    assert demand.level == SignalLevel.DEGRADED
    assert demand.message == "demand lookback covers 20m0s; need at least 30m0s"
    assert demand.requested_lookback_seconds == 1200


def test_zero_known_warmup_is_unsupported():
    report = DefaultEvaluator().evaluate(
        ReadinessInput(evaluated_at=NOW, snapshot=standard_snapshot(), known_warmup=timedelta(0))
    )
    assert report.level == ReadinessLevel.UNSUPPORTED
    assert report.blocking_reasons == ["warmup lag is configured but not positive"]


def test_missing_warmup_observations_block():
    report = DefaultEvaluator().evaluate(
        ReadinessInput(evaluated_at=NOW, snapshot=standard_snapshot())
    )
    assert signal_report(report, SignalName.WARMUP).level == SignalLevel.MISSING
    assert contains_substring(report.blocking_reasons, "no warmup observations")


def test_optional_node_headroom_is_reported_when_present():
    headroom = series(
        SignalName.NODE_HEADROOM, NOW - timedelta(minutes=30), 61, HALF_MINUTE, constant(6)
    )
    report = DefaultEvaluator().evaluate(
        ReadinessInput(
            snapshot=standard_snapshot(node_headroom=headroom), known_warmup=KNOWN_WARMUP
        )
    )
    assert len(report.signals) == 6
    headroom_report = signal_report(report, SignalName.NODE_HEADROOM)
    assert headroom_report.required is False
    assert headroom_report.level == SignalLevel.SUPPORTED
    assert report.checked_at == NOW


def test_negative_known_warmup_raises():
    with pytest.raises(InvalidReadinessInputError, match="known warmup must be non-negative"):
        DefaultEvaluator().evaluate(
            ReadinessInput(snapshot=standard_snapshot(), known_warmup=timedelta(seconds=-1))
        )


def test_inconsistent_missing_fractions_raise():
    options = ReadinessOptions(degraded_missing_fraction=0.5)
    with pytest.raises(InvalidReadinessInputError, match="must not exceed"):
        DefaultEvaluator().evaluate(
            ReadinessInput(snapshot=standard_snapshot(), options=options)
        )


def test_validate_rejects_negative_lookback():
    options = default_readiness_options()
    options = ReadinessOptions(
        **{**options.__dict__, "minimum_lookback": timedelta(minutes=-1)}
    )
    with pytest.raises(InvalidReadinessInputError, match="minimum lookback must be positive"):
        validate_readiness_input(ReadinessInput(), options)


def test_with_defaults_keeps_explicit_values():
    options = ReadinessOptions(expected_resolution=timedelta(minutes=15)).with_defaults()
    assert options.expected_resolution == timedelta(minutes=15)
    assert options.minimum_lookback == timedelta(minutes=30)
    assert options.unsupported_gap_multiplier == 8
    assert options.minimum_warmup_samples_to_estimate == 5


def test_worsen_signal_level_keeps_worst():
    assert worsen_signal_level(SignalLevel.SUPPORTED, SignalLevel.DEGRADED) == SignalLevel.DEGRADED
    assert worsen_signal_level(SignalLevel.UNSUPPORTED, SignalLevel.DEGRADED) == SignalLevel.UNSUPPORTED
    assert worsen_signal_level(SignalLevel.UNSUPPORTED, SignalLevel.MISSING) == SignalLevel.MISSING


def test_build_readiness_summary_texts():
    degraded = ReadinessReport(level=ReadinessLevel.DEGRADED, reasons=["a", "b"])
    assert build_readiness_summary(degraded) == "Telemetry is usable but degraded: a; b."
    unsupported = ReadinessReport(level=ReadinessLevel.UNSUPPORTED, blocking_reasons=["x"])
    assert build_readiness_summary(unsupported) == (
        "Telemetry is not sufficient for replay or recommendation evaluation: x."
    )