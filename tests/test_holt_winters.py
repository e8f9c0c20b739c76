from datetime import datetime, timedelta, timezone

import pytest

from skale.forecast.core import (
    ADVISORY_NON_SEASONAL_MODE,
    ForecastInput,
    InsufficientDataError,
    InvalidInputError,
    Point,
    ReliabilityLevel,
)
from skale.forecast.holt_winters import (
    HOLT_WINTERS_MODEL_NAME,
    HoltWintersModel,
    HoltWintersParams,
    holt_winters_forecast,
)
from skale.forecast.seasonal_naive import SeasonalNaiveModel

START = datetime(2026, 4, 2, tzinfo=timezone.utc)
PARAMS = HoltWintersParams(alpha=0.4, beta=0.2, gamma=0.4)


def trending_seasonal_series(step, count, pattern, trend_per_step):
    return [
        Point(START + step * index, 100 + trend_per_step * index + pattern[index % len(pattern)])
        for index in range(count)
    ]


def linear_series(step, count, intercept, slope):
    return [Point(START + step * index, intercept + slope * index) for index in range(count)]


def values(points):
    return [point.value for point in points]


def mean_absolute_error(actual, predicted):
    pairs = list(zip(actual, predicted))
    return sum(abs(a - p) for a, p in pairs) / len(pairs)


def test_beats_seasonal_naive_on_trending_seasonal_series():
    step = timedelta(minutes=5)
    seasonality = timedelta(minutes=20)
    series = trending_seasonal_series(step, 28, [0.0, 18.0, -8.0, 10.0], 2.5)
    input_series = series[:24]
    expected_future = series[24:28]

    def make_input():
        return ForecastInput(
            series=input_series,
            evaluated_at=input_series[-1].timestamp,
            horizon=seasonality,
            step=step,
            seasonality=seasonality,
        )

    seasonal = SeasonalNaiveModel().forecast(make_input())
    holt_winters = HoltWintersModel().forecast(make_input())

    assert holt_winters.model == HOLT_WINTERS_MODEL_NAME
    assert holt_winters.validation.mean_absolute_err < seasonal.validation.mean_absolute_err

    seasonal_future = mean_absolute_error(values(expected_future), values(seasonal.points))
    holt_future = mean_absolute_error(values(expected_future), values(holt_winters.points))
    assert holt_future < seasonal_future


def test_non_seasonal_mode_follows_linear_trend():
    step = timedelta(minutes=1)
    series = linear_series(step, 12, 50.0, 3.0)

    result = HoltWintersModel().forecast(
        ForecastInput(series=series, horizon=timedelta(minutes=3), step=step)
    )

    assert values(result.points) == pytest.approx([86.0, 89.0, 92.0], abs=1e-6)
    assert result.advisories[0].code == ADVISORY_NON_SEASONAL_MODE
    assert result.reliability == ReliabilityLevel.MEDIUM


def test_model_rejects_insufficient_data():
    step = timedelta(minutes=1)
    series = linear_series(step, 8, 10.0, 1.0)
    with pytest.raises(InsufficientDataError):
        HoltWintersModel().forecast(
            ForecastInput(
                series=series,
                horizon=timedelta(minutes=4),
                step=step,
                seasonality=timedelta(minutes=4),
            )
        )


def test_forecast_of_perfect_season_repeats_it():
    series = [1.0, 5.0, 3.0] * 3
    assert holt_winters_forecast(series, 3, 3, PARAMS) == pytest.approx([1.0, 5.0, 3.0])


def test_linear_forecast_extends_line():
    assert holt_winters_forecast([0.0, 2.0, 4.0, 6.0, 8.0], 1, 3, PARAMS) == pytest.approx(
        [10.0, 12.0, 14.0]
    )


def test_forecast_is_clamped_at_zero():
    result = holt_winters_forecast([10.0, 8.0, 6.0, 4.0, 2.0], 1, 3, PARAMS)
    assert result == pytest.approx([0.0, 0.0, 0.0], abs=1e-9)
    assert all(value >= 0 for value in result)


@pytest.mark.parametrize(
    "series, season_points, horizon_points, error",
    [
        ([1.0], 1, 1, InsufficientDataError),
        ([1.0, 2.0], 0, 1, InvalidInputError),
        ([1.0, 2.0], 1, 0, InvalidInputError),
        ([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], 4, 1, InsufficientDataError),
    ],
)
def test_forecast_rejects_bad_arguments(series, season_points, horizon_points, error):
    with pytest.raises(error):
        holt_winters_forecast(series, season_points, horizon_points, PARAMS)


def test_default_parameter_grid():
    grid = HoltWintersModel().parameter_grid(4)
    assert len(grid) == 27
    assert grid[0] == HoltWintersParams(0.2, 0.1, 0.2)
    assert grid[-1] == HoltWintersParams(0.6, 0.4, 0.6)


def test_non_seasonal_grid_has_zero_gamma():
    grid = HoltWintersModel().parameter_grid(1)
    assert len(grid) == 9
    assert {params.gamma for params in grid} == {0.0}


def test_custom_grid_is_sanitized():
    model = HoltWintersModel(alphas=(0.5, 1.5, 0.0), betas=(2.0,), gammas=(0.3,))
    grid = model.parameter_grid(4)
    assert grid == [
        HoltWintersParams(0.5, 0.1, 0.3),
        HoltWintersParams(0.5, 0.2, 0.3),
        HoltWintersParams(0.5, 0.4, 0.3),
    ]


def test_model_name():
    assert HoltWintersModel().name == "holt_winters"