"""Shared forecast types, validation and scoring helpers."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Sequence

ADVISORY_IMPLICIT_PERSISTENCE = "implicit_persistence"
ADVISORY_NON_SEASONAL_MODE = "non_seasonal_mode"
ADVISORY_LIMITED_HISTORY = "limited_history"
ADVISORY_MODEL_UNAVAILABLE = "model_unavailable"
ADVISORY_MODEL_DIVERGENCE = "model_divergence"


class ForecastError(Exception):
    """Base class for forecast failures."""

    prefix = "forecast failed"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{self.prefix}: {detail}" if detail else self.prefix)


class InvalidInputError(ForecastError, ValueError):
    prefix = "invalid forecast input"


class InsufficientDataError(ForecastError):
    prefix = "insufficient data for forecast"


class NoForecastResultError(ForecastError):
    prefix = "no forecast result available"


class ModelDivergenceError(ForecastError):
    prefix = "forecast models diverged"


class ReliabilityLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNSUPPORTED = "unsupported"

    def __str__(self) -> str:
        return self.value


_RELIABILITY_ORDER = {
    ReliabilityLevel.HIGH: 4,
    ReliabilityLevel.MEDIUM: 3,
    ReliabilityLevel.LOW: 2,
    ReliabilityLevel.UNSUPPORTED: 1,
}


@dataclass(frozen=True)
class Point:
    """One demand observation or forecast point."""

    timestamp: Optional[datetime]
    value: float


@dataclass
class ForecastInput:
    """A demand series for a short-horizon forecast.

    Samples must be ordered and roughly evenly spaced. A zero step is inferred
    from the series; a zero seasonality degrades to one-step persistence.
    """

    series: list[Point]
    horizon: timedelta
    evaluated_at: Optional[datetime] = None
    step: timedelta = timedelta(0)
    seasonality: timedelta = timedelta(0)

    def validate(self) -> None:
        """Raise InvalidInputError when the series cannot be forecast."""
        if len(self.series) < 2:
            raise InvalidInputError("at least 2 samples are required")
        if self.horizon <= timedelta(0):
            raise InvalidInputError("horizon must be positive")
        if self.step < timedelta(0):
            raise InvalidInputError("step must not be negative")
        if self.seasonality < timedelta(0):
            raise InvalidInputError("seasonality must not be negative")

        previous: Optional[Point] = None
        for index, point in enumerate(self.series):
            if point.timestamp is None:
                raise InvalidInputError(f"sample {index} has zero timestamp")
            if math.isnan(point.value) or math.isinf(point.value):
                raise InvalidInputError(f"sample {index} has invalid value")
            if point.value < 0:
                raise InvalidInputError(f"sample {index} has negative demand")
            if previous is not None and not point.timestamp > previous.timestamp:
                raise InvalidInputError("sample timestamps must be strictly increasing")
            previous = point


@dataclass(frozen=True)
class Advisory:
    """Machine-readable forecast context."""

    code: str = ""
    message: str = ""


@dataclass(frozen=True)
class Validation:
    """Holdout-backtest quality for a model."""

    holdout_points: int = 0
    mean_absolute_err: float = 0.0
    mean_actual: float = 0.0
    normalized_error: float = 0.0


@dataclass
class ForecastResult:
    """A forecast horizon with reliability metadata."""

    model: str = ""
    generated_at: Optional[datetime] = None
    horizon: timedelta = timedelta(0)
    step: timedelta = timedelta(0)
    seasonality: timedelta = timedelta(0)
    points: list[Point] = field(default_factory=list)
    confidence: float = 0.0
    reliability: Optional[ReliabilityLevel] = None
    validation: Validation = field(default_factory=Validation)
    fallback_reason: str = ""
    advisories: list[Advisory] = field(default_factory=list)


class Model(ABC):
    """Produces a short-horizon demand forecast."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def forecast(self, input: ForecastInput) -> ForecastResult: ...


@dataclass(frozen=True)
class PreparedInput:
    """A validated input with step, horizon and season resolved to point counts."""

    series: list[Point]
    generated_at: datetime
    horizon: timedelta
    step: timedelta
    horizon_points: int
    seasonality: timedelta
    season_points: int


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def prepare_input(input: ForecastInput) -> PreparedInput:
    """Validate the input and resolve step, horizon and seasonality."""
    input.validate()

    step = input.step if input.step else infer_step(input.series)
    if step <= timedelta(0):
        raise InvalidInputError("forecast step must be positive")

    horizon_points = max(1, -((-input.horizon) // step))

    seasonality = input.seasonality if input.seasonality > timedelta(0) else step
    season_points = int(math.floor(seasonality / step + 0.5))
    if season_points < 1:
        season_points = 1
        seasonality = step

    generated_at = _to_utc(input.series[-1].timestamp)
    if input.evaluated_at is not None:
        evaluated_at = _to_utc(input.evaluated_at)
        if evaluated_at > generated_at:
            generated_at = evaluated_at

    series = [Point(_to_utc(point.timestamp), point.value) for point in input.series]

    return PreparedInput(
        series=series,
        generated_at=generated_at,
        horizon=input.horizon,
        step=step,
        horizon_points=horizon_points,
        seasonality=seasonality,
        season_points=season_points,
    )


def infer_step(series: Sequence[Point]) -> timedelta:
    """Return the median spacing of the series, or zero if it cannot be inferred."""
    if len(series) < 2:
        return timedelta(0)
    deltas = []
    for previous, current in zip(series, series[1:]):
        delta = current.timestamp - previous.timestamp
        if delta <= timedelta(0):
            return timedelta(0)
        deltas.append(delta)
    deltas.sort()
    return deltas[len(deltas) // 2]


def build_forecast_points(
    generated_at: datetime, step: timedelta, values: Sequence[float]
) -> list[Point]:
    """Place forecast values one step apart after generated_at."""
    return [
        Point(_to_utc(generated_at + step * offset), value)
        for offset, value in enumerate(values, start=1)
    ]


def evaluate_forecast(actual: Sequence[float], predicted: Sequence[float]) -> Validation:
    """Score predicted values against actual holdout values."""
    pairs = list(zip(actual, predicted))
    if not pairs:
        return Validation()
    count = len(pairs)
    mae = sum(abs(a - p) for a, p in pairs) / count
    mean_actual = sum(a for a, _ in pairs) / count
    return Validation(
        holdout_points=count,
        mean_absolute_err=mae,
        mean_actual=mean_actual,
        normalized_error=mae / max(mean_actual, 1.0),
    )


def derive_reliability(confidence: float, validation: Validation) -> ReliabilityLevel:
    """Map a confidence score to a reliability level."""
    if validation.holdout_points == 0:
        return ReliabilityLevel.UNSUPPORTED
    if confidence >= 0.80:
        return ReliabilityLevel.HIGH
    if confidence >= 0.60:
        return ReliabilityLevel.MEDIUM
    if confidence >= 0.35:
        return ReliabilityLevel.LOW
    return ReliabilityLevel.UNSUPPORTED


def confidence_from_validation(validation: Validation) -> float:
    """Derive confidence from normalized holdout error, clamped to [0, 1]."""
    if validation.holdout_points == 0:
        return 0.0
    return _clamp(1 - validation.normalized_error, 0.0, 1.0)


def degrade_reliability(
    current: Optional[ReliabilityLevel], limit: ReliabilityLevel
) -> Optional[ReliabilityLevel]:
    """Cap a reliability level at limit."""
    if _RELIABILITY_ORDER.get(current, 0) > _RELIABILITY_ORDER[limit]:
        return limit
    return current


def point_values(points: Sequence[Point]) -> list[float]:
    """Return the values of the points in order."""
    return [point.value for point in points]


def _clamp(value: float, lower: float, upper: float) -> float:
    return min(max(value, lower), upper)