"""HTTP client for Prometheus range queries."""

from __future__ import annotations

import json
import math
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional, Protocol, runtime_checkable

from skale.metrics.signals import Sample

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_QUERY_RANGE_PATH = "/api/v1/query_range"


class PrometheusClientError(Exception):
    """Base class for Prometheus client failures."""

    prefix = "prometheus client error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{self.prefix}: {detail}" if detail else self.prefix)


class InvalidQueryWindowError(PrometheusClientError, ValueError):
    prefix = "invalid prometheus query window"


class MalformedResponseError(PrometheusClientError):
    prefix = "malformed prometheus response"


class UnexpectedResponseError(PrometheusClientError):
    prefix = "unexpected prometheus response"


class PrometheusAPIStatusError(PrometheusClientError):
    prefix = "prometheus query failed"


@dataclass
class QuerySeries:
    """One Prometheus matrix series."""

    labels: dict[str, str] = field(default_factory=dict)
    samples: list[Sample] = field(default_factory=list)


@dataclass
class RangeQueryResult:
    """The series returned by a range query."""

    series: list[QuerySeries] = field(default_factory=list)


@runtime_checkable
class PrometheusAPI(Protocol):
    """Executes Prometheus range queries."""

    def query_range(
        self, query: str, start: datetime, end: datetime, step: timedelta
    ) -> RangeQueryResult: ...


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _unix_seconds(value: datetime) -> int:
    return (_to_utc(value) - _EPOCH) // timedelta(seconds=1)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return format(Decimal(repr(float(value))), "f")


@dataclass
class HTTPAPI:
    """Executes query_range requests over HTTP."""

    base_url: str
    timeout: Optional[float] = None
    opener: Optional[urllib.request.OpenerDirector] = None

    def query_range(
        self, query: str, start: datetime, end: datetime, step: timedelta
    ) -> RangeQueryResult:
        """Fetch a matrix result and convert it into typed series."""
        if not query.strip():
            raise UnexpectedResponseError("query must not be empty")
        if start is None or end is None or not end > start or step <= timedelta(0):
            raise InvalidQueryWindowError()

        url = self._build_url(query, start, end, step)
        request = urllib.request.Request(url, method="GET")
        open_url = self.opener.open if self.opener is not None else urllib.request.urlopen
        try:
            response = open_url(request, timeout=self.timeout)
        except urllib.error.HTTPError as err:
            err.close()
            raise PrometheusAPIStatusError(f"http status {err.code}") from None

        with response:
            status = response.status
            body = response.read()
        if status != 200:
            raise PrometheusAPIStatusError(f"http status {status}")

        try:
            payload = json.loads(body)
        except ValueError as err:
            raise MalformedResponseError(f"decode response: {err}") from err
        return parse_query_range_response(payload)

    def _build_url(self, query: str, start: datetime, end: datetime, step: timedelta) -> str:
        try:
            parts = urllib.parse.urlsplit(self.base_url)
            params = dict(urllib.parse.parse_qsl(parts.query, keep_blank_values=True))
        except ValueError as err:
            raise UnexpectedResponseError(f"parse base url: {err}") from err
        params.update(
            {
                "query": query,
                "start": str(_unix_seconds(start)),
                "end": str(_unix_seconds(end)),
                "step": _format_number(step.total_seconds()),
            }
        )
        path = parts.path.rstrip("/") + _QUERY_RANGE_PATH
        encoded = urllib.parse.urlencode(sorted(params.items()))
        return urllib.parse.urlunsplit((parts.scheme, parts.netloc, path, encoded, ""))


def parse_sample(raw: Any) -> Sample:
    """Parse a [timestamp, "value"] pair from a matrix result."""
    if not isinstance(raw, list):
        raise MalformedResponseError("decode sample: expected array")
    if len(raw) != 2:
        raise MalformedResponseError(f"expected sample pair, got {len(raw)} fields")

    timestamp, value_text = raw
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise MalformedResponseError("decode sample timestamp: expected number")
    if math.isnan(timestamp) or math.isinf(timestamp):
        raise MalformedResponseError("invalid sample timestamp")
    if not isinstance(value_text, str):
        raise MalformedResponseError("decode sample value: expected string")

    if value_text != value_text.strip() or "_" in value_text:
        raise MalformedResponseError(f'parse sample value "{value_text}": invalid syntax')
    try:
        value = float(value_text)
    except ValueError as err:
        raise MalformedResponseError(f'parse sample value "{value_text}": {err}') from err
    if math.isnan(value) or math.isinf(value):
        raise MalformedResponseError(f'invalid sample value "{value_text}"')

    try:
        when = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as err:
        raise MalformedResponseError(f"decode sample timestamp: {err}") from err
    return Sample(timestamp=when, value=value)


def _optional(value: Any, kind: type, what: str) -> Any:
    if value is None:
        return kind()
    if not isinstance(value, kind):
        raise MalformedResponseError(f"decode response: {what} has wrong type")
    return value


def _parse_labels(raw: Any) -> dict[str, str]:
    labels = _optional(raw, dict, "metric")
    if not all(isinstance(key, str) and isinstance(val, str) for key, val in labels.items()):
        raise MalformedResponseError("decode response: metric labels must be strings")
    return dict(labels)


def _parse_series(raw: Any) -> QuerySeries:
    if not isinstance(raw, dict):
        raise MalformedResponseError("decode response: series must be an object")
    values = _optional(raw.get("values"), list, "values")
    return QuerySeries(
        labels=_parse_labels(raw.get("metric")),
        samples=[parse_sample(item) for item in values],
    )


def parse_query_range_response(payload: Any) -> RangeQueryResult:
    """Convert a decoded query_range JSON body into typed series."""
    if not isinstance(payload, dict):
        raise MalformedResponseError("decode response: expected object")
    status = _optional(payload.get("status"), str, "status")
    error = _optional(payload.get("error"), str, "error")
    data = _optional(payload.get("data"), dict, "data")
    result_type = _optional(data.get("resultType"), str, "resultType")
    raw_result = _optional(data.get("result"), list, "result")
    series = [_parse_series(item) for item in raw_result]

    if status != "success":
        raise PrometheusAPIStatusError(error.strip() or "unknown error")
    if result_type != "matrix":
        raise UnexpectedResponseError(f'expected matrix result, got "{result_type}"')
    return RangeQueryResult(series=series)