"""Command-line options of the custom metrics adapter and their validation."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Sequence
from urllib.parse import urlsplit

ADAPTER_NAME = "custom-metrics-stackdriver-adapter"
MONITORING_READ_SCOPE = "https://www.googleapis.com/auth/monitoring.read"

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class OptionsError(ValueError):
    """Raised when adapter options are inconsistent or invalid."""


@dataclass
class AdapterOptions:
    """Settings of the custom metrics adapter server."""

    use_new_resource_model: bool = False
    enable_custom_metrics_api: bool = True
    enable_external_metrics_api: bool = True
    fallback_for_container_metrics: bool = False
    enable_core_metrics_api: bool = False
    metrics_address: str = ""
    stackdriver_endpoint: str = ""
    enable_distribution_support: bool = False
    rate_interval: timedelta = timedelta(minutes=5)
    alignment_period: timedelta = timedelta(minutes=1)


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _add_bool(
    parser: argparse.ArgumentParser, flag: str, dest: str, default: bool, help_text: str
) -> None:
    parser.add_argument(
        flag,
        dest=dest,
        nargs="?",
        const=True,
        default=default,
        type=_parse_bool,
        metavar="BOOL",
        help=help_text,
    )


def validate_url(s: str) -> bool:
    """Return True if ``s`` is a URL with both a scheme and a host."""
    try:
        parts = urlsplit(s)
    except ValueError:
        return False
    host = parts.netloc.rpartition("@")[2]
    return bool(parts.scheme) and bool(host)


def _parser() -> argparse.ArgumentParser:
    defaults = AdapterOptions()
    parser = argparse.ArgumentParser(prog=ADAPTER_NAME)
    _add_bool(
        parser,
        "--use-new-resource-model",
        "use_new_resource_model",
        defaults.use_new_resource_model,
        "whether to use new Stackdriver resource model",
    )
    _add_bool(
        parser,
        "--enable-custom-metrics-api",
        "enable_custom_metrics_api",
        defaults.enable_custom_metrics_api,
        "whether to enable Custom Metrics API",
    )
    _add_bool(
        parser,
        "--enable-external-metrics-api",
        "enable_external_metrics_api",
        defaults.enable_external_metrics_api,
        "whether to enable External Metrics API",
    )
    _add_bool(
        parser,
        "--fallback-for-container-metrics",
        "fallback_for_container_metrics",
        defaults.fallback_for_container_metrics,
        "If true, fallbacks to k8s_container resource when given metric is not present on "
        "k8s_pod. At most one container with given metric is allowed for each pod.",
    )
    _add_bool(
        parser,
        "--enable-core-metrics-api",
        "enable_core_metrics_api",
        defaults.enable_core_metrics_api,
        "Experimental, do not use. Whether to enable Core Metrics API.",
    )
    parser.add_argument(
        "--metrics-address",
        dest="metrics_address",
        default=defaults.metrics_address,
        help="Endpoint with port on which Prometheus metrics server should be enabled. "
        "Example: localhost:8080. If there is no flag, Prometheus metric server is disabled "
        "and monitoring metrics are not collected.",
    )
    parser.add_argument(
        "--stackdriver-endpoint",
        dest="stackdriver_endpoint",
        default=defaults.stackdriver_endpoint,
        help="Stackdriver Endpoint used by adapter. Default is https://monitoring.googleapis.com/",
    )
    _add_bool(
        parser,
        "--enable-distribution-support",
        "enable_distribution_support",
        defaults.enable_distribution_support,
        "enables support for scaling based on distribution values",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> AdapterOptions:
    """Parse command-line flags into adapter options."""
    namespace = _parser().parse_args(argv)
    return AdapterOptions(
        use_new_resource_model=namespace.use_new_resource_model,
        enable_custom_metrics_api=namespace.enable_custom_metrics_api,
        enable_external_metrics_api=namespace.enable_external_metrics_api,
        fallback_for_container_metrics=namespace.fallback_for_container_metrics,
        enable_core_metrics_api=namespace.enable_core_metrics_api,
        metrics_address=namespace.metrics_address,
        stackdriver_endpoint=namespace.stackdriver_endpoint,
        enable_distribution_support=namespace.enable_distribution_support,
    )


def validate_options(options: AdapterOptions) -> None:
    """Raise OptionsError if the options cannot be used together."""
    if not options.use_new_resource_model and options.fallback_for_container_metrics:
        raise OptionsError("Container metrics work only with new resource model")
    if not options.use_new_resource_model and options.enable_core_metrics_api:
        raise OptionsError("Core metrics work only with new resource model")
    if options.stackdriver_endpoint and not validate_url(options.stackdriver_endpoint):
        raise OptionsError(
            f"Provided StackdriverEndpoint {options.stackdriver_endpoint} is not correct url"
        )