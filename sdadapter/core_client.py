"""Fetching core (CPU and memory) metrics of containers and nodes from Stackdriver."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Iterator, Mapping, Sequence, Union

MAX_NUM_OF_ARGS_IN_ONE_OF_FILTER = 100

METRIC_KIND_CPU = "CUMULATIVE"
METRIC_KIND_RAM = "GAUGE"
METRIC_VALUE_TYPE_CPU = "DOUBLE"
METRIC_VALUE_TYPE_RAM = "INT64"

CONTAINER_CPU_METRIC_NAME = "kubernetes.io/container/cpu/core_usage_time"
CONTAINER_RAM_METRIC_NAME = "kubernetes.io/container/memory/used_bytes"
NODE_CPU_METRIC_NAME = "kubernetes.io/node/cpu/core_usage_time"
NODE_RAM_METRIC_NAME = "kubernetes.io/node/memory/used_bytes"

Quantity = Union[int, Decimal]
Fetch = Callable[[dict], Mapping[str, Any]]

_SUPPORTED_OPERATORS = ("=", "!=")
_FRACTION = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class TimeInfo:
    """When a metric value was collected and over which window."""

    timestamp: datetime
    window: timedelta


@dataclass(frozen=True)
class LabelRequirement:
    """A single metric label condition added to a query filter."""

    key: str
    operator: str = "="
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.operator not in _SUPPORTED_OPERATORS:
            raise ValueError(f"unsupported operator {self.operator!r}")
        if len(self.values) != 1:
            raise ValueError(f"operator {self.operator!r} requires exactly one value")

    def to_filter(self) -> str:
        """Return this requirement as a filter clause."""
        return f"{self.key} {self.operator} {json.dumps(self.values[0])}"


def ram_non_evictable_label() -> tuple[LabelRequirement, ...]:
    """Return the selector that restricts memory metrics to non-evictable memory."""
    return (LabelRequirement("metric.labels.memory_type", "=", ("non-evictable",)),)


def _quote(name: str) -> str:
    if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
        return name
    return json.dumps(name, ensure_ascii=False)


def _parse_time(text: str) -> datetime:
    normal = text.strip()
    if normal and normal[-1] in "Zz":
        normal = normal[:-1] + "+00:00"
    normal = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normal)
    try:
        value = datetime.fromisoformat(normal)
    except ValueError as exc:
        raise ValueError(f"invalid time {text!r}") from exc
    if value.tzinfo is None:
        raise ValueError(f"time {text!r} carries no zone")
    return value.astimezone(timezone.utc)


def _parse_value(value: Mapping[str, Any]) -> Quantity:
    if value.get("doubleValue") is not None:
        return Decimal(repr(float(value["doubleValue"])))
    if value.get("int64Value") is not None:
        return int(value["int64Value"])
    raise ValueError(f"time series point has no supported value: {dict(value)!r}")


def _parse_point(series: Mapping[str, Any]) -> tuple[Quantity, TimeInfo]:
    points = series.get("points") or []
    if not points:
        raise ValueError("time series carries no points")
    point = points[0]
    interval = point.get("interval") or {}
    if "endTime" not in interval:
        raise ValueError("time series point has no end time")
    end = _parse_time(interval["endTime"])
    start_text = interval.get("startTime")
    window = end - _parse_time(start_text) if start_text else timedelta(0)
    return _parse_value(point.get("value") or {}), TimeInfo(end, window)


def _resource_labels(series: Mapping[str, Any], *names: str) -> tuple[str, ...]:
    labels = (series.get("resource") or {}).get("labels") or {}
    try:
        return tuple(labels[name] for name in names)
    except KeyError as exc:
        raise ValueError(f"time series resource lacks label {exc.args[0]!r}") from None


class StackdriverCoreClient:
    """Queries container and node usage, splitting names into bounded batches."""

    def __init__(self, fetch: Fetch, batch_size: int = MAX_NUM_OF_ARGS_IN_ONE_OF_FILTER) -> None:
        if batch_size < 1:
            raise ValueError("batch size must be positive")
        self.fetch = fetch
        self.batch_size = batch_size

    def _batches(self, names: Sequence[str]) -> Iterator[Sequence[str]]:
        for start in range(0, len(names), self.batch_size):
            yield names[start : start + self.batch_size]

    @staticmethod
    def _request(
        metric_name: str,
        resource_type: str,
        name_label: str,
        names: Sequence[str],
        metric_kind: str,
        value_type: str,
        selector: Sequence[LabelRequirement],
    ) -> dict:
        clauses = [
            f'metric.type = "{metric_name}"',
            f'resource.type = "{resource_type}"',
            f"resource.labels.{name_label} = one_of({','.join(names)})",
        ]
        clauses.extend(requirement.to_filter() for requirement in selector)
        return {
            "filter": " AND ".join(clauses),
            "metricKind": metric_kind,
            "valueType": value_type,
        }

    def _pod_metric(
        self,
        pod_names: Sequence[str],
        metric_name: str,
        metric_kind: str,
        value_type: str,
        selector: Sequence[LabelRequirement],
    ) -> tuple[dict[str, dict[str, Quantity]], dict[str, TimeInfo]]:
        metrics: dict[str, dict[str, Quantity]] = {}
        times: dict[str, TimeInfo] = {}
        for batch in self._batches(list(pod_names)):
            request = self._request(
                metric_name, "k8s_container", "pod_name", batch, metric_kind, value_type, selector
            )
            response = self.fetch(request)
            for series in response.get("timeSeries") or []:
                namespace, pod, container = _resource_labels(
                    series, "namespace_name", "pod_name", "container_name"
                )
                value, time_info = _parse_point(series)
                key = f"{namespace}:{pod}"
                metrics.setdefault(key, {})[container] = value
                times[key] = time_info
        return metrics, times

    def _node_metric(
        self,
        node_names: Sequence[str],
        metric_name: str,
        metric_kind: str,
        value_type: str,
        selector: Sequence[LabelRequirement],
    ) -> tuple[dict[str, Quantity], dict[str, TimeInfo]]:
        metrics: dict[str, Quantity] = {}
        times: dict[str, TimeInfo] = {}
        quoted = [_quote(name) for name in node_names]
        for batch in self._batches(quoted):
            request = self._request(
                metric_name, "k8s_node", "node_name", batch, metric_kind, value_type, selector
            )
            response = self.fetch(request)
            for series in response.get("timeSeries") or []:
                (node,) = _resource_labels(series, "node_name")
                value, time_info = _parse_point(series)
                metrics[node] = value
                times[node] = time_info
        return metrics, times

    def get_container_cpu(self, pod_names: Sequence[str]):
        """Return CPU usage per ``namespace:pod`` and container, with time info per pod."""
        return self._pod_metric(
            pod_names, CONTAINER_CPU_METRIC_NAME, METRIC_KIND_CPU, METRIC_VALUE_TYPE_CPU, ()
        )

    def get_container_ram(self, pod_names: Sequence[str]):
        """Return non-evictable memory usage per ``namespace:pod`` and container."""
        return self._pod_metric(
            pod_names,
            CONTAINER_RAM_METRIC_NAME,
            METRIC_KIND_RAM,
            METRIC_VALUE_TYPE_RAM,
            ram_non_evictable_label(),
        )

    def get_node_cpu(self, node_names: Sequence[str]):
        """Return CPU usage per node, with time info per node."""
        return self._node_metric(
            node_names, NODE_CPU_METRIC_NAME, METRIC_KIND_CPU, METRIC_VALUE_TYPE_CPU, ()
        )

    def get_node_ram(self, node_names: Sequence[str]):
        """Return non-evictable memory usage per node, with time info per node."""
        return self._node_metric(
            node_names,
            NODE_RAM_METRIC_NAME,
            METRIC_KIND_RAM,
            METRIC_VALUE_TYPE_RAM,
            ram_non_evictable_label(),
        )