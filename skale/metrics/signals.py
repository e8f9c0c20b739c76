"""Normalized workload and cluster telemetry shapes."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, runtime_checkable


class MetricsNotImplementedError(NotImplementedError):
    """Raised by providers that cannot load telemetry."""

    def __init__(self, message: str = "metrics provider not implemented") -> None:
        super().__init__(message)


class SignalName(str, Enum):
    """Names of the normalized signals."""

    DEMAND = "demand"
    REPLICAS = "replicas"
    CPU = "cpu"
    MEMORY = "memory"
    LATENCY = "latency"
    ERRORS = "errors"
    WARMUP = "warmup"
    NODE_HEADROOM = "nodeHeadroom"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Target:
    """Identifies the workload under evaluation."""

    namespace: str = ""
    name: str = ""


@dataclass(frozen=True)
class Window:
    """A historical or live observation range; unset bounds are None."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass(frozen=True)
class Sample:
    """A normalized point-in-time value."""

    timestamp: Optional[datetime]
    value: float


@dataclass
class SignalSeries:
    """A normalized signal with optional label-consistency metadata."""

    name: Optional[SignalName] = None
    samples: list[Sample] = field(default_factory=list)
    observed_label_signatures: list[str] = field(default_factory=list)
    unit: str = ""


@dataclass
class ClusterSignals:
    """Optional cluster-scoped signals used for safety checks."""

    node_headroom: Optional[SignalSeries] = None


@dataclass
class Snapshot:
    """The normalized telemetry consumed by readiness, replay and recommendation."""

    window: Window = field(default_factory=Window)
    demand: SignalSeries = field(default_factory=SignalSeries)
    replicas: SignalSeries = field(default_factory=SignalSeries)
    cpu: Optional[SignalSeries] = None
    memory: Optional[SignalSeries] = None
    latency: Optional[SignalSeries] = None
    errors: Optional[SignalSeries] = None
    warmup: Optional[SignalSeries] = None
    node_headroom: Optional[SignalSeries] = None

    def signal(self, name: SignalName | str) -> Optional[SignalSeries]:
        """Return the requested signal, or None when absent or unknown."""
        try:
            key = SignalName(name)
        except ValueError:
            return None
        return {
            SignalName.DEMAND: self.demand,
            SignalName.REPLICAS: self.replicas,
            SignalName.CPU: self.cpu,
            SignalName.MEMORY: self.memory,
            SignalName.LATENCY: self.latency,
            SignalName.ERRORS: self.errors,
            SignalName.WARMUP: self.warmup,
            SignalName.NODE_HEADROOM: self.node_headroom,
        }[key]


@dataclass
class WorkloadSignals:
    """Workload-scoped signals; demand and replicas are required."""

    demand: SignalSeries = field(default_factory=SignalSeries)
    replicas: SignalSeries = field(default_factory=SignalSeries)
    cpu: Optional[SignalSeries] = None
    memory: Optional[SignalSeries] = None
    latency: Optional[SignalSeries] = None
    errors: Optional[SignalSeries] = None
    warmup: Optional[SignalSeries] = None

    def with_cluster_signals(self, window: Window, cluster: ClusterSignals) -> Snapshot:
        """Combine workload and cluster signals into one snapshot."""
        return Snapshot(
            window=replace(window),
            demand=self.demand,
            replicas=self.replicas,
            cpu=self.cpu,
            memory=self.memory,
            latency=self.latency,
            errors=self.errors,
            warmup=self.warmup,
            node_headroom=cluster.node_headroom,
        )


@runtime_checkable
class Provider(Protocol):
    """Loads normalized workload telemetry."""

    def load_window(self, target: Target, window: Window) -> Snapshot: ...


@runtime_checkable
class WorkloadFetcher(Protocol):
    """Loads workload-scoped signals."""

    def load_workload_signals(self, target: Target, window: Window) -> WorkloadSignals: ...


@runtime_checkable
class ClusterFetcher(Protocol):
    """Loads optional cluster-scoped safety signals."""

    def load_cluster_signals(self, target: Target, window: Window) -> ClusterSignals: ...


class NoopProvider:
    """A provider that has no telemetry source."""

    def load_window(self, target: Target, window: Window) -> Snapshot:
        raise MetricsNotImplementedError()