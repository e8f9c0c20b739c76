"""Model selection between seasonal naive and Holt-Winters."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from skale.forecast.core import (
    ADVISORY_MODEL_DIVERGENCE,
    ADVISORY_MODEL_UNAVAILABLE,
    Advisory,
    ForecastError,
    ForecastInput,
    ForecastResult,
    Model,
    NoForecastResultError,
    ReliabilityLevel,
    degrade_reliability,
)
from skale.forecast.holt_winters import HOLT_WINTERS_MODEL_NAME, HoltWintersModel
from skale.forecast.seasonal_naive import SEASONAL_NAIVE_MODEL_NAME, SeasonalNaiveModel

AUTO_MODEL_NAME = "auto"

_DEFAULT_DIVERGENCE_THRESHOLD = 0.35
_DEFAULT_MINIMUM_IMPROVEMENT = 0.15


@dataclass(frozen=True)
class AutoModel(Model):
    """Prefers seasonal naive; uses Holt-Winters only when clearly better.

    If the two forecasts diverge too much, the seasonal naive result is kept
    with lowered reliability. Non-positive thresholds use the defaults.
    """

    seasonal_naive: Optional[Model] = None
    holt_winters: Optional[Model] = None
    divergence_threshold: float = 0.0
    minimum_improvement: float = 0.0

    @property
    def name(self) -> str:
        return AUTO_MODEL_NAME

    def forecast(self, input: ForecastInput) -> ForecastResult:
        seasonal, seasonal_err = _run(self.seasonal_naive or SeasonalNaiveModel(), input)
        holt, holt_err = _run(self.holt_winters or HoltWintersModel(), input)

        seasonal_ok = _usable(seasonal, seasonal_err)
        holt_ok = _usable(holt, holt_err)

        if seasonal_ok and not holt_ok:
            return _with_unavailable_advisory(seasonal, HOLT_WINTERS_MODEL_NAME, holt_err, holt)
        if holt_ok and not seasonal_ok:
            result = _with_unavailable_advisory(holt, SEASONAL_NAIVE_MODEL_NAME, seasonal_err, seasonal)
            result.fallback_reason = "seasonal_naive_unavailable"
            return result
        if not seasonal_ok and not holt_ok:
            raise NoForecastResultError(
                f"seasonal naive: {_describe_failure(seasonal_err, seasonal)}; "
                f"holt-winters: {_describe_failure(holt_err, holt)}"
            )

        threshold = self.divergence_threshold
        if threshold <= 0:
            threshold = _DEFAULT_DIVERGENCE_THRESHOLD
        improvement = self.minimum_improvement
        if improvement <= 0:
            improvement = _DEFAULT_MINIMUM_IMPROVEMENT

        divergence = forecast_divergence(seasonal, holt)
        if divergence > threshold:
            message = (
                f"seasonal naive and holt-winters diverged by {divergence * 100:.0f}% of peak "
                "forecast value; using seasonal naive conservatively"
            )
            return replace(
                seasonal,
                fallback_reason=ADVISORY_MODEL_DIVERGENCE,
                advisories=[*seasonal.advisories, Advisory(ADVISORY_MODEL_DIVERGENCE, message)],
                confidence=min(seasonal.confidence, 0.60),
                reliability=degrade_reliability(seasonal.reliability, ReliabilityLevel.LOW),
            )

        if should_prefer_holt_winters(seasonal, holt, improvement):
            return replace(holt, fallback_reason="holt_winters_better_fit")

        return seasonal


def _run(
    model: Model, input: ForecastInput
) -> tuple[Optional[ForecastResult], Optional[ForecastError]]:
    try:
        return model.forecast(input), None
    except ForecastError as err:
        return None, err


def _usable(result: Optional[ForecastResult], err: Optional[Exception]) -> bool:
    return (
        err is None
        and result is not None
        and bool(result.points)
        and result.reliability != ReliabilityLevel.UNSUPPORTED
    )


def _with_unavailable_advisory(
    result: ForecastResult,
    model_name: str,
    err: Optional[Exception],
    alternative: Optional[ForecastResult],
) -> ForecastResult:
    if err is not None:
        message = f"{model_name} was not available: {err}"
    elif alternative is not None and alternative.reliability == ReliabilityLevel.UNSUPPORTED:
        message = f"{model_name} produced unsupported reliability"
    else:
        message = f"{model_name} was not available"
    return replace(
        result,
        advisories=[*result.advisories, Advisory(ADVISORY_MODEL_UNAVAILABLE, message)],
    )


def _describe_failure(err: Optional[Exception], result: Optional[ForecastResult]) -> str:
    if err is not None:
        return str(err)
    if result is not None and result.reliability == ReliabilityLevel.UNSUPPORTED:
        return "unsupported reliability"
    return "no forecast result"


def should_prefer_holt_winters(
    seasonal: ForecastResult, holt_winters: ForecastResult, minimum_improvement: float
) -> bool:
    """True when Holt-Winters improves holdout error enough without losing confidence."""
    seasonal_err = seasonal.validation.mean_absolute_err
    if seasonal_err == 0:
        return False
    if holt_winters.validation.mean_absolute_err > seasonal_err * (1 - minimum_improvement):
        return False
    return holt_winters.confidence >= seasonal.confidence - 0.05


def forecast_divergence(left: ForecastResult, right: ForecastResult) -> float:
    """Peak relative difference between two forecasts over their common points."""
    return max(
        (
            abs(a.value - b.value) / max(a.value, b.value, 1.0)
            for a, b in zip(left.points, right.points)
        ),
        default=0.0,
    )