"""PromQL query definitions for the normalized signal set."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from skale.metrics.signals import SignalName, Target

_PLACEHOLDER = re.compile(r"\$(namespace|name|deployment)")


class InvalidQueriesError(ValueError):
    """Raised when the query set lacks required queries."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"invalid prometheus signal queries: {detail}")


@dataclass(frozen=True)
class SignalQuery:
    """The PromQL boundary for one signal.

    The expression may use $namespace, $name and $deployment, and should
    already aggregate down to a single series.
    """

    expr: str = ""
    unit: str = ""
    required: bool = False

    def render(self, target: Target) -> str:
        """Substitute the target's namespace and name into the expression."""
        values = {
            "namespace": target.namespace,
            "name": target.name,
            "deployment": target.name,
        }
        return _PLACEHOLDER.sub(lambda match: values[match.group(1)], self.expr)


@dataclass(frozen=True)
class Queries:
    """The query set; demand and replicas are mandatory."""

    demand: SignalQuery = field(default_factory=SignalQuery)
    replicas: SignalQuery = field(default_factory=SignalQuery)
    cpu: SignalQuery = field(default_factory=SignalQuery)
    memory: SignalQuery = field(default_factory=SignalQuery)
    latency: SignalQuery = field(default_factory=SignalQuery)
    errors: SignalQuery = field(default_factory=SignalQuery)
    warmup: SignalQuery = field(default_factory=SignalQuery)
    node_headroom: SignalQuery = field(default_factory=SignalQuery)

    def validate(self) -> None:
        """Raise InvalidQueriesError when a mandatory query is missing."""
        issues = []
        if not self.demand.expr.strip():
            issues.append("demand query is required")
        if not self.replicas.expr.strip():
            issues.append("replicas query is required")
        if issues:
            raise InvalidQueriesError("; ".join(issues))

    def query_for(self, name: SignalName | str) -> SignalQuery:
        """Return the query for a signal, or an empty query for unknown names."""
        try:
            key = SignalName(name)
        except ValueError:
            return SignalQuery()
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


def signal_required(name: SignalName | str, query: SignalQuery) -> bool:
    """Demand and replicas are always required; others follow the query flag."""
    if name in (SignalName.DEMAND, SignalName.REPLICAS):
        return True
    return query.required