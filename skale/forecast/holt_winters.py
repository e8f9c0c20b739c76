"""Additive Holt-Winters forecaster with a small fixed parameter search."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
from typing import Sequence

from skale.forecast.core import (
    ADVISORY_LIMITED_HISTORY,
    ADVISORY_NON_SEASONAL_MODE,
    Advisory,
    ForecastError,
    ForecastInput,
    ForecastResult,
    InsufficientDataError,
    InvalidInputError,
    Model,
    NoForecastResultError,
    ReliabilityLevel,
    build_forecast_points,
    confidence_from_validation,
    degrade_reliability,
    derive_reliability,
    evaluate_forecast,
    point_values,
    prepare_input,
)

HOLT_WINTERS_MODEL_NAME = "holt_winters"

_DEFAULT_ALPHAS = (0.2, 0.4, 0.6)
_DEFAULT_BETAS = (0.1, 0.2, 0.4)
_DEFAULT_GAMMAS = (0.2, 0.4, 0.6)


@dataclass(frozen=True)
class HoltWintersParams:
    """Smoothing factors for level, trend and season."""

    alpha: float
    beta: float
    gamma: float


@dataclass(frozen=True)
class HoltWintersModel(Model):
    """Additive Holt-Winters with a narrow deterministic parameter grid.

    Empty grids, or grids with no values strictly between 0 and 1, use the
    defaults. Seasonality is additive only and samples are assumed evenly spaced.
    """

    alphas: Sequence[float] = ()
    betas: Sequence[float] = ()
    gammas: Sequence[float] = ()

    @property
    def name(self) -> str:
        return HOLT_WINTERS_MODEL_NAME

    def forecast(self, input: ForecastInput) -> ForecastResult:
        prepared = prepare_input(input)
        season_points = prepared.season_points
        horizon_points = prepared.horizon_points

        min_training = max(season_points + 2, season_points * 2)
        required = min_training + horizon_points
        if len(prepared.series) < required:
            raise InsufficientDataError(
                f"holt-winters requires at least {required} samples for "
                f"{horizon_points}-step horizon and {season_points}-step season"
            )

        all_values = point_values(prepared.series)
        train_end = len(all_values) - horizon_points
        holdout_actual = all_values[train_end:]

        best_params, validation_predicted = self._best_parameters(
            all_values[:train_end], season_points, holdout_actual
        )
        forecast_values = holt_winters_forecast(all_values, season_points, horizon_points, best_params)

        validation = evaluate_forecast(holdout_actual, validation_predicted)
        confidence = confidence_from_validation(validation)

        result = ForecastResult(
            model=HOLT_WINTERS_MODEL_NAME,
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
                    ADVISORY_NON_SEASONAL_MODE,
                    "seasonality was not provided; Holt-Winters ran in non-seasonal trend mode",
                )
            )
            result.reliability = degrade_reliability(result.reliability, ReliabilityLevel.MEDIUM)
        if len(prepared.series) < season_points * 3:
            result.advisories.append(
                Advisory(
                    ADVISORY_LIMITED_HISTORY,
                    "history covers fewer than three full seasons; holt-winters "
                    "parameters were fit on limited data",
                )
            )
            result.reliability = degrade_reliability(result.reliability, ReliabilityLevel.LOW)

        return result

    def _best_parameters(
        self, series: list[float], season_points: int, holdout_actual: list[float]
    ) -> tuple[HoltWintersParams, list[float]]:
        best: tuple[HoltWintersParams, list[float]] | None = None
        best_score = float("inf")
        for params in self.parameter_grid(season_points):
            try:
                predicted = holt_winters_forecast(series, season_points, len(holdout_actual), params)
            except ForecastError:
                continue
            score = evaluate_forecast(holdout_actual, predicted).mean_absolute_err
            if score < best_score:
                best_score = score
                best = (params, predicted)
        if best is None:
            raise NoForecastResultError("no usable holt-winters parameter set")
        return best

    def parameter_grid(self, season_points: int) -> list[HoltWintersParams]:
        """Return every (alpha, beta, gamma) combination to search."""
        alphas = _sanitize_grid(self.alphas, _DEFAULT_ALPHAS)
        betas = _sanitize_grid(self.betas, _DEFAULT_BETAS)
        gammas = (0.0,) if season_points == 1 else _sanitize_grid(self.gammas, _DEFAULT_GAMMAS)
        return [HoltWintersParams(a, b, g) for a, b, g in product(alphas, betas, gammas)]


def _sanitize_grid(values: Sequence[float], defaults: Sequence[float]) -> tuple[float, ...]:
    valid = tuple(value for value in values if 0 < value < 1)
    return valid or tuple(defaults)


def holt_winters_forecast(
    series: Sequence[float],
    season_points: int,
    horizon_points: int,
    params: HoltWintersParams,
) -> list[float]:
    """Fit the series with fixed parameters and forecast horizon_points values."""
    if len(series) < 2:
        raise InsufficientDataError("holt-winters needs at least 2 points")
    if season_points < 1:
        raise InvalidInputError("season points must be positive")
    if horizon_points < 1:
        raise InvalidInputError("horizon points must be positive")

    if season_points == 1:
        return _holt_linear_forecast(series, horizon_points, params)
    if len(series) < season_points * 2:
        raise InsufficientDataError("holt-winters needs at least 2 full seasons")

    first_avg = _average(series[:season_points])
    second_avg = _average(series[season_points : season_points * 2])
    seasonals = [value - first_avg for value in series[:season_points]]
    level = first_avg
    trend = (second_avg - first_avg) / season_points

    for index in range(season_points, len(series)):
        value = series[index]
        season_index = index % season_points
        season = seasonals[season_index]
        previous_level = level
        level = params.alpha * (value - season) + (1 - params.alpha) * (level + trend)
        trend = params.beta * (level - previous_level) + (1 - params.beta) * trend
        seasonals[season_index] = params.gamma * (value - level) + (1 - params.gamma) * season

    return [
        max(0.0, level + step * trend + seasonals[(len(series) + step - 1) % season_points])
        for step in range(1, horizon_points + 1)
    ]


def _holt_linear_forecast(
    series: Sequence[float], horizon_points: int, params: HoltWintersParams
) -> list[float]:
    level = series[0]
    trend = series[1] - series[0]
    for value in series[1:]:
        previous_level = level
        level = params.alpha * value + (1 - params.alpha) * (level + trend)
        trend = params.beta * (level - previous_level) + (1 - params.beta) * trend
    return [max(0.0, level + step * trend) for step in range(1, horizon_points + 1)]


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0