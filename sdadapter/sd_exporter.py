"""Exports a metric of constant value to Stackdriver in a loop."""

from __future__ import annotations

import argparse
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence

import requests

from sdadapter.gce_metadata import MetadataClient, MetadataError

logger = logging.getLogger(__name__)

MONITORING_ENDPOINT = "https://monitoring.googleapis.com/v3/"
CUSTOM_METRIC_PREFIX = "custom.googleapis.com/"
EXPORT_INTERVAL_SECONDS = 5.0
REQUEST_TIMEOUT_SECONDS = 30.0

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def parse_metric_labels(arg: str) -> dict[str, str]:
    """Parse ``key=value`` pairs separated by commas."""
    labels: dict[str, str] = {}
    for label in arg.split(","):
        parts = label.split("=")
        if len(parts) < 2:
            raise ValueError(f"invalid metric label {label!r}")
        labels[parts[0]] = parts[1]
    return labels


def _lookup(getter: Callable[[], str]) -> str:
    try:
        return getter()
    except MetadataError:
        return ""


def old_model_resource_labels(pod_id: str, metadata: Any) -> dict[str, str]:
    """Return the gke_container resource labels for the given pod."""
    return {
        "project_id": _lookup(metadata.project_id),
        "zone": _lookup(metadata.zone),
        "cluster_name": _lookup(lambda: metadata.instance_attribute("cluster-name")).strip(),
        # The metric is exported for the pod, so the container name does not matter.
        "container_name": "",
        "pod_id": pod_id,
        "namespace_id": "default",
        "instance_id": "",
    }


def new_model_resource_labels(namespace: str, pod_name: str, metadata: Any) -> dict[str, str]:
    """Return the k8s_pod resource labels for the given pod."""
    return {
        "project_id": _lookup(metadata.project_id),
        "location": _lookup(lambda: metadata.instance_attribute("cluster-location")).strip(),
        "cluster_name": _lookup(lambda: metadata.instance_attribute("cluster-name")).strip(),
        "namespace_name": namespace,
        "pod_name": pod_name,
    }


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_time_series_request(
    metric_name: str,
    metric_value: int,
    metric_labels: Mapping[str, str],
    monitored_resource: str,
    resource_labels: Mapping[str, str],
    end_time: datetime,
) -> dict[str, Any]:
    """Return the body of a time series creation request with one point."""
    point = {
        "interval": {"endTime": _format_time(end_time)},
        "value": {"int64Value": str(int(metric_value))},
    }
    return {
        "timeSeries": [
            {
                "metric": {
                    "type": CUSTOM_METRIC_PREFIX + metric_name,
                    "labels": dict(metric_labels),
                },
                "resource": {
                    "type": monitored_resource,
                    "labels": dict(resource_labels),
                },
                "points": [point],
            }
        ]
    }


def export_metric(
    session: Any,
    metric_name: str,
    metric_value: int,
    metric_labels: Mapping[str, str],
    monitored_resource: str,
    resource_labels: Mapping[str, str],
) -> None:
    """Write one point of the metric; raises on a failed request."""
    body = build_time_series_request(
        metric_name,
        metric_value,
        metric_labels,
        monitored_resource,
        resource_labels,
        datetime.now(timezone.utc),
    )
    project_name = f"projects/{resource_labels.get('project_id', '')}"
    response = session.post(
        f"{MONITORING_ENDPOINT}{project_name}/timeSeries",
        json=body,
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export a metric of constant value to Stackdriver in a loop."
    )
    parser.add_argument("-pod-id", "--pod-id", dest="pod_id", default="", help="pod id")
    parser.add_argument("-namespace", "--namespace", dest="namespace", default="", help="namespace")
    parser.add_argument("-pod-name", "--pod-name", dest="pod_name", default="", help="pod name")
    parser.add_argument(
        "-metric-name", "--metric-name", dest="metric_name", default="foo",
        help="custom metric name",
    )
    parser.add_argument(
        "-metric-value", "--metric-value", dest="metric_value", type=int, default=0,
        help="custom metric value",
    )
    parser.add_argument(
        "-metric-labels", "--metric-labels", dest="metric_labels", default="bar=1",
        help="custom metric labels",
    )
    parser.add_argument(
        "-use-old-resource-model", "--use-old-resource-model", dest="use_old_resource_model",
        nargs="?", const=True, default=True, type=_parse_bool, metavar="BOOL",
        help="use old stackdriver resource model",
    )
    parser.add_argument(
        "-use-new-resource-model", "--use-new-resource-model", dest="use_new_resource_model",
        nargs="?", const=True, default=False, type=_parse_bool, metavar="BOOL",
        help="use new stackdriver resource model",
    )
    return parser


def _export_logged(session: Any, model: str, *args: Any) -> None:
    try:
        export_metric(session, *args)
    except requests.RequestException as exc:
        logger.warning("Failed to write time series data for %s resource model: %s", model, exc)
    else:
        logger.info(
            "Finished writing time series for %s resource model with value: %s", model, args[1]
        )


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Run the exporter until interrupted."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    args = _parser().parse_args(argv)

    if not args.pod_id and args.use_old_resource_model:
        raise SystemExit("No pod id specified.")
    if not args.pod_name and args.use_new_resource_model:
        raise SystemExit("No pod name specified.")
    if not args.namespace and args.use_new_resource_model:
        raise SystemExit("No pod namespace specified.")

    try:
        metric_labels = parse_metric_labels(args.metric_labels)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    metadata = MetadataClient()
    session = requests.Session()
    old_labels = old_model_resource_labels(args.pod_id, metadata)
    new_labels = new_model_resource_labels(args.namespace, args.pod_name, metadata)

    while True:
        try:
            session.headers["Authorization"] = f"Bearer {metadata.access_token()}"
        except MetadataError as exc:
            logger.warning("Failed to obtain access token: %s", exc)
        else:
            if args.use_old_resource_model:
                _export_logged(
                    session, "old", args.metric_name, args.metric_value, metric_labels,
                    "gke_container", old_labels,
                )
            if args.use_new_resource_model:
                _export_logged(
                    session, "new", args.metric_name, args.metric_value, metric_labels,
                    "k8s_pod", new_labels,
                )
        time.sleep(EXPORT_INTERVAL_SECONDS)