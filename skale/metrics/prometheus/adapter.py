"""Loads normalized signals from Prometheus range queries."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping, Optional

from skale.metrics.prometheus.client import PrometheusAPI, QuerySeries
from skale.metrics.prometheus.queries import Queries, signal_required
from skale.metrics.signals import (
    ClusterSignals,
    Sample,
    SignalName,
    SignalSeries,
    Snapshot,
    Target,
    Window,
    WorkloadSignals,
)

_DEFAULT_QUERY_STEP = timedelta(seconds=30)


class AdapterError(Exception):
    """Base class for adapter failures."""

    prefix = "prometheus adapter error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{self.prefix}: {detail}" if detail else self.prefix)


class InvalidAdapterConfigError(AdapterError, ValueError):
    prefix = "invalid prometheus metrics adapter config"


class SeriesMissingError(AdapterError):
    prefix = "prometheus query returned no series"


class AmbiguousSeriesError(AdapterError):
    prefix = "prometheus query returned multiple series"


class MalformedSeriesError(AdapterError):
    prefix = "prometheus series is malformed"


class SignalError(Exception):
    """Ties a query failure to the signal that produced it."""

    def __init__(self, signal: SignalName, err: Exception, query: str = "") -> None:
        self.signal = signal
        self.query = query
        self.err = err
        super().__init__(self._render())
        self.__cause__ = err

    def _render(self) -> str:
        if not self.query.strip():
            return f"{self.signal}: {self.err}"
        return f"{self.signal} query {json.dumps(self.query)} failed: {self.err}"

    def __str__(self) -> str:
        return self._render()


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class Adapter:
    """Loads workload and cluster signals through a Prometheus API."""

    api: Optional[PrometheusAPI] = None
    queries: Queries = field(default_factory=Queries)
    step: timedelta = timedelta(0)

    def load_window(self, target: Target, window: Window) -> Snapshot:
        """Fetch every supported workload and cluster signal for the window."""
        self._validate_base(window)
        self.queries.validate()
        workload = self.load_workload_signals(target, window)
        cluster = self.load_cluster_signals(target, window)
        return workload.with_cluster_signals(window, cluster)

    def load_workload_signals(self, target: Target, window: Window) -> WorkloadSignals:
        """Fetch workload-scoped signals such as demand and replicas."""
        self._validate_base(window)
        self.queries.validate()
        demand = self._load_signal(target, window, SignalName.DEMAND)
        replicas = self._load_signal(target, window, SignalName.REPLICAS)
        cpu = self._load_signal(target, window, SignalName.CPU)
        memory = self._load_signal(target, window, SignalName.MEMORY)
        latency = self._load_signal(target, window, SignalName.LATENCY)
        errors = self._load_signal(target, window, SignalName.ERRORS)
        warmup = self._load_signal(target, window, SignalName.WARMUP)
        return WorkloadSignals(
            demand=demand if demand is not None else SignalSeries(),
            replicas=replicas if replicas is not None else SignalSeries(),
            cpu=cpu,
            memory=memory,
            latency=latency,
            errors=errors,
            warmup=warmup,
        )

    def load_cluster_signals(self, target: Target, window: Window) -> ClusterSignals:
        """Fetch cluster-scoped safety signals such as node headroom."""
        self._validate_base(window)
        return ClusterSignals(
            node_headroom=self._load_signal(target, window, SignalName.NODE_HEADROOM)
        )

    def _validate_base(self, window: Window) -> None:
        if self.api is None:
            raise InvalidAdapterConfigError("api is required")
        if window.start is None or window.end is None or not window.end > window.start:
            raise InvalidAdapterConfigError("invalid load window")

    def _query_step(self) -> timedelta:
        return self.step if self.step > timedelta(0) else _DEFAULT_QUERY_STEP

    def _load_signal(
        self, target: Target, window: Window, name: SignalName
    ) -> Optional[SignalSeries]:
        query = self.queries.query_for(name)
        required = signal_required(name, query)
        if not query.expr.strip():
            if required:
                raise SignalError(name, SeriesMissingError())
            return None

        rendered = query.render(target)
        try:
            result = self.api.query_range(rendered, window.start, window.end, self._query_step())
        except Exception as err:
            raise SignalError(name, err, rendered) from err

        if not result.series:
            if required:
                raise SignalError(name, SeriesMissingError(), rendered)
            return None

        if len(result.series) != 1:
            detail = (
                f"expected 1 series, got {len(result.series)} "
                f"({'; '.join(label_signatures(result.series))})"
            )
            raise SignalError(name, AmbiguousSeriesError(detail), rendered)

        try:
            return normalize_series(name, query.unit, result.series[0])
        except AdapterError as err:
            raise SignalError(name, err, rendered) from err


def normalize_series(name: SignalName, unit: str, series: QuerySeries) -> SignalSeries:
    """Validate one query series and convert it into a signal series."""
    if not series.samples:
        raise SeriesMissingError()

    samples: list[Sample] = []
    previous: Optional[Sample] = None
    for index, sample in enumerate(series.samples):
        if sample.timestamp is None:
            raise MalformedSeriesError(f"sample {index} has zero timestamp")
        if math.isnan(sample.value) or math.isinf(sample.value):
            raise MalformedSeriesError(f"sample {index} has invalid value")
        if previous is not None and not sample.timestamp > previous.timestamp:
            raise MalformedSeriesError("sample timestamps must be strictly increasing")
        samples.append(Sample(timestamp=_to_utc(sample.timestamp), value=sample.value))
        previous = sample

    return SignalSeries(
        name=name,
        unit=unit,
        samples=samples,
        observed_label_signatures=[label_signature(series.labels)],
    )


def label_signature(labels: Optional[Mapping[str, str]]) -> str:
    """Render labels as sorted key=value pairs joined by commas."""
    if not labels:
        return "<no-labels>"
    return ",".join(f"{key}={labels[key]}" for key in sorted(labels))


def label_signatures(series: Iterable[QuerySeries]) -> list[str]:
    """Sorted label signatures of several series."""
    return sorted(label_signature(entry.labels) for entry in series)