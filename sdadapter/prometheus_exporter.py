"""Serves a Prometheus gauge of constant value over HTTP."""

from __future__ import annotations

import argparse
import logging
import math
import re
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"
CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"
DEFAULT_HELP = "Custom metric"

_METRIC_NAME = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*\Z")


def _format_value(value: float) -> str:
    number = float(value)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    return repr(number)


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def render_gauge(name: str, help_text: str, value: float) -> str:
    """Return the text exposition of a single gauge."""
    if not _METRIC_NAME.match(name):
        raise ValueError(f"invalid metric name {name!r}")
    return (
        f"# HELP {name} {_escape_help(help_text)}\n"
        f"# TYPE {name} gauge\n"
        f"{name} {_format_value(value)}\n"
    )


def make_server(host: str, port: int, metric_name: str, metric_value: float) -> ThreadingHTTPServer:
    """Create an HTTP server exposing the gauge at ``/metrics``."""
    body = render_gauge(metric_name, DEFAULT_HELP, metric_value).encode("utf-8")

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            if self.path.split("?", 1)[0] != METRICS_PATH:
                self.send_error(404, "page not found")
                return
            self.send_response(200)
            self.send_header("Content-Type", CONTENT_TYPE)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args) -> None:
            logger.debug("%s - %s", self.address_string(), format % args)

    return ThreadingHTTPServer((host, port), Handler)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Expose a Prometheus metric of constant value.")
    parser.add_argument(
        "-metric-name", "--metric-name", dest="metric_name", default="foo",
        help="custom metric name",
    )
    parser.add_argument(
        "-metric-value", "--metric-value", dest="metric_value", type=int, default=0,
        help="custom metric value",
    )
    parser.add_argument(
        "-port", "--port", dest="port", type=int, default=8080,
        help="port to expose metrics on",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Serve the metric until interrupted."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    args = _parser().parse_args(argv)
    try:
        server = make_server("", args.port, args.metric_name, args.metric_value)
    except (ValueError, OSError) as exc:
        raise SystemExit(f"Failed to start serving metrics: {exc}") from exc
    logger.info("Starting to listen on :%d", args.port)
    with server:
        server.serve_forever()