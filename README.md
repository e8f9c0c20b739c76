# skale

A library of building blocks for predictive workload scaling. It has no runtime dependencies.

- **Telemetry readiness** (`skale.metrics.readiness`) checks the demand, replica, CPU, memory and warmup signals. It decides whether they are complete, regular and stable enough for forecasting. The result is a `ReadinessReport` whose level is `supported`, `degraded` or `unsupported`.
- **Prometheus signal loading** (`skale.metrics.prometheus`) renders PromQL templates for a workload and runs range queries. It requires exactly one series per signal and normalizes the results into a `Snapshot`.
- **Short-horizon forecasting** (`skale.forecast`) provides a seasonal naive model, an additive Holt-Winters model and an automatic selector between them. Each result carries a confidence score and a reliability level, both derived from a holdout backtest.

The shared data shapes live in `skale.metrics.signals`: `Target`, `Window`, `Sample`, `SignalSeries`, `Snapshot`, `WorkloadSignals` and `ClusterSignals`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Forecasting

```python
from datetime import datetime, timedelta, timezone

from skale.forecast.auto import AutoModel
from skale.forecast.core import ForecastInput, Point

start = datetime(2026, 4, 2, tzinfo=timezone.utc)
pattern = [90, 120, 100, 130]
series = [
    Point(timestamp=start + timedelta(minutes=i), value=pattern[i % 4])
    for i in range(24)
]

result = AutoModel().forecast(
    ForecastInput(
        series=series,
        evaluated_at=series[-1].timestamp,
        horizon=timedelta(minutes=4),
        step=timedelta(minutes=1),
        seasonality=timedelta(minutes=4),
    )
)
print(result.model, result.confidence, result.reliability, result.fallback_reason)
for point in result.points:
    print(point.timestamp, point.value)
```

### Inputs

- When `step` is zero, it is inferred from the median spacing of the series.
- When `seasonality` is zero, the models fall back to one-step persistence. Seasonal naive repeats the last point; Holt-Winters runs in trend-only mode. An advisory is added to the result in either case.

### Models

`SeasonalNaiveModel` (in `skale.forecast.seasonal_naive`) repeats the last observed season.

`HoltWintersModel` (in `skale.forecast.holt_winters`) searches a small grid of `alphas`, `betas` and `gammas`. The defaults are 0.2/0.4/0.6, 0.1/0.2/0.4 and 0.2/0.4/0.6.

`AutoModel` runs both models and picks a result:

- It prefers seasonal naive.
- It switches to Holt-Winters only when Holt-Winters has a holdout error at least `minimum_improvement` lower (default 15%) and comparable confidence.
- If the two forecasts diverge by more than `divergence_threshold` (default 35% of the peak value), it keeps seasonal naive. In that case it caps confidence at 0.60, lowers reliability to `low` and sets `fallback_reason` to `model_divergence`.

### Errors

Invalid input raises `InvalidInputError`. Too little history raises `InsufficientDataError`. If no model can produce a forecast, `AutoModel` raises `NoForecastResultError`. All three are subclasses of `ForecastError`.

## Telemetry readiness

```python
from datetime import datetime, timedelta, timezone

from skale.metrics.readiness import DefaultEvaluator, ReadinessInput
from skale.metrics.signals import Sample, SignalName, SignalSeries, Snapshot, Window

now = datetime(2026, 4, 2, 12, 0, tzinfo=timezone.utc)
start = now - timedelta(minutes=30)

def series(name, value):
    samples = [Sample(start + timedelta(seconds=30 * i), value) for i in range(61)]
    return SignalSeries(name=name, samples=samples, observed_label_signatures=["service=checkout"])

snapshot = Snapshot(
    window=Window(start=start, end=now),
    demand=series(SignalName.DEMAND, 180.0),
    replicas=series(SignalName.REPLICAS, 4.0),
    cpu=series(SignalName.CPU, 0.55),
    memory=series(SignalName.MEMORY, 0.65),
)

report = DefaultEvaluator().evaluate(
    ReadinessInput(evaluated_at=now, snapshot=snapshot, known_warmup=timedelta(seconds=45))
)
print(report.level, report.summary)
for signal in report.signals:
    print(signal.name, signal.level, signal.message)
```

### Options

Thresholds come from `ReadinessOptions`. Any field left at zero takes its value from `default_readiness_options()`. Inconsistent options raise `InvalidReadinessInputError`.

### Warmup

Without `known_warmup`, the warmup lag is estimated as the median of the positive samples in the warmup series. An estimated warmup leaves the report at `degraded` at best.

## Loading signals from Prometheus

```python
from datetime import datetime, timedelta, timezone

from skale.metrics.prometheus.adapter import Adapter
from skale.metrics.prometheus.client import HTTPAPI
from skale.metrics.prometheus.queries import Queries, SignalQuery
from skale.metrics.signals import Target, Window

end = datetime.now(timezone.utc)
window = Window(start=end - timedelta(minutes=30), end=end)

adapter = Adapter(
    api=HTTPAPI(base_url="http://localhost:9090", timeout=10),
    queries=Queries(
        demand=SignalQuery(
            expr='sum(rate(http_requests_total{namespace="$namespace",deployment="$deployment"}[5m]))',
            unit="rps",
        ),
        replicas=SignalQuery(
            expr='max(kube_deployment_status_replicas{namespace="$namespace",deployment="$deployment"})',
            unit="replicas",
        ),
    ),
    step=timedelta(seconds=30),
)
snapshot = adapter.load_window(Target(namespace="payments", name="checkout"), window)
```

### Queries

Query templates may use three placeholders: `$namespace`, `$name` and `$deployment`.

- Demand and replicas are always required.
- Other signals are fetched only when their query has an expression. An empty result for them is allowed unless the query sets `required=True`.
- The query step defaults to 30 seconds.

### HTTP client

`HTTPAPI` sends GET requests to `<base_url>/api/v1/query_range` using `urllib`. An `opener` may be supplied for custom handlers.

Any object with a matching `query_range(query, start, end, step)` method can stand in for it; see the `PrometheusAPI` protocol.

Client failures raise subclasses of `PrometheusClientError`:

- `InvalidQueryWindowError`
- `MalformedResponseError`
- `UnexpectedResponseError`
- `PrometheusAPIStatusError`

### Adapter errors

Adapter failures for a signal raise `SignalError`. Its `signal` attribute names the signal, `query` holds the rendered query and `err` holds the cause. The cause is one of:

- `SeriesMissingError`
- `AmbiguousSeriesError`
- `MalformedSeriesError`
- the client's own error

An invalid adapter setup raises `InvalidAdapterConfigError`: this covers a missing API and a window whose end is not after its start. Missing mandatory queries raise `InvalidQueriesError`.

## What this package does not do

This package is a library only:

- It has no command-line tool and no long-running service.
- It does not size replicas or produce scaling recommendations from forecasts.
- It does not apply changes to a cluster.
- It does not store telemetry or results.

`NoopProvider` in `skale.metrics.signals` is a placeholder provider. It raises `MetricsNotImplementedError`.