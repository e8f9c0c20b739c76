"""Seasonal naive forecaster: repeats the most recent observed season."""

from __future__ import annotations

from itertools import cycle, islice
from typing import Sequence

from skale.forecast.core import (
    ADVISORY_IMPLICIT_PERSISTENCE,
    ADVISORY_LIMITED_HISTORY,
    Advisory,
    ForecastInput,
    ForecastResult,
    InsufficientDataError,
    Model,
    Point,
    ReliabilityLevel,
    build_forecast_points,
    confidence_from_validation,
    degrade_reliability,
    derive_reliability,
    evaluate_forecast,
    point_values,
    prepare_input,
)

SEASONAL_NAIVE_MODEL_NAME = "seasonal_naive"


class SeasonalNaiveModel(Model):
    """Repeats the last observed season over the forecast horizon.

    Without a seasonality the model degrades to one-step persistence,
    repeating the most recent point.
    """

    @property
    def name(self) -> str:
        return SEASONAL_NAIVE_MODEL_NAME

    def forecast(self, input: ForecastInput) -> ForecastResult:
        prepared = prepare_input(input)
        season_points = prepared.season_points
        horizon_points = prepared.horizon_points

        required = season_points + horizon_points
        if len(prepared.series) < required:
            raise InsufficientDataError(
                f"seasonal naive requires at least {required} samples for "
                f"{horizon_points}-step horizon and {season_points}-step season"
            )

        forecast_values = seasonal_naive_values(prepared.series, season_points, horizon_points)
        holdout_start = len(prepared.series) - horizon_points
        validation = evaluate_forecast(
            point_values(prepared.series[holdout_start:]),
            seasonal_naive_values(prepared.series[:holdout_start], season_points, horizon_points),
        )
        confidence = confidence_from_validation(validation)

        result = ForecastResult(
            model=SEASONAL_NAIVE_MODEL_NAME,
            generated_at=prepared.generated_at,
            horizon=prepared.horizon,
            step=prepared.step,
            seasonality=prepared.seasonality,
            points=build_forecast_points(prepared.generated_at, prepared.step, forecast_values),
            confidence=confidence,
            reliability=derive_reliability(confidence, validation),
            validation=validation,
        )

        if season_points == 1:
            result.advisories.append(
                Advisory(
                    ADVISORY_IMPLICIT_PERSISTENCE,
                    "seasonality was not provided; seasonal naive fell back to "
                    "repeating the most recent point",
                )
            )
            result.reliability = degrade_reliability(result.reliability, ReliabilityLevel.MEDIUM)
        if len(prepared.series) < season_points * 2:
            result.advisories.append(
                Advisory(
                    ADVISORY_LIMITED_HISTORY,
                    "history covers less than two full seasons; confidence is "
                    "based on a shorter backtest",
                )
            )
            result.reliability = degrade_reliability(result.reliability, ReliabilityLevel.LOW)

        return result


def seasonal_naive_values(
    series: Sequence[Point], season_points: int, horizon_points: int
) -> list[float]:
    """Repeat the last season_points values until horizon_points values exist."""
    last_season = point_values(series[len(series) - season_points :])
    return list(islice(cycle(last_season), horizon_points))