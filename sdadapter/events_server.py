"""Command that starts the events adapter server."""

from __future__ import annotations

import argparse
import logging
import os
import ssl
from dataclasses import dataclass
from typing import Optional, Sequence
from wsgiref.simple_server import make_server

from sdadapter.events_api import EventsAPI
from sdadapter.events_provider import EventsProvider
from sdadapter.gce_metadata import MetadataClient
from sdadapter.stackdriver_events import LoggingEntriesClient, StackdriverEventsProvider

logger = logging.getLogger(__name__)


@dataclass
class ServerOptions:
    """Settings of the events adapter server."""

    bind_address: str = "0.0.0.0"
    secure_port: int = 443
    tls_cert_file: str = ""
    tls_private_key_file: str = ""
    lister_kubeconfig: str = ""
    max_retrieved_events: int = 100
    since_millis: int = -1

    def validate(self, args: Sequence[str]) -> None:
        """Raise ValueError if the options cannot be used; ``args`` are ignored."""
        if not 0 <= self.secure_port <= 65535:
            raise ValueError(f"--secure-port {self.secure_port} must be between 0 and 65535")
        if bool(self.tls_cert_file) != bool(self.tls_private_key_file):
            raise ValueError("--tls-cert-file and --tls-private-key-file must be given together")
        if self.max_retrieved_events < 1:
            raise ValueError("--max-retrieved-events must be positive")


def _parser() -> argparse.ArgumentParser:
    defaults = ServerOptions()
    parser = argparse.ArgumentParser(description="Launch the events API adapter server")
    parser.add_argument(
        "-max-retrieved-events", "--max-retrieved-events", dest="max_retrieved_events",
        type=int, default=defaults.max_retrieved_events,
        help="Maximum number of events can be retrieved",
    )
    parser.add_argument(
        "-retrieve-events-since-millis", "--retrieve-events-since-millis", dest="since_millis",
        type=int, default=defaults.since_millis,
        help="Retrieve only events logged after given timestamp since epoch, if the given "
        "timestamp is < 0 the default of last 1h will be used",
    )
    parser.add_argument(
        "-lister-kubeconfig", "--lister-kubeconfig", dest="lister_kubeconfig",
        default=defaults.lister_kubeconfig,
        help="kubeconfig file pointing at the 'core' kubernetes server with enough rights to "
        "list any described objets",
    )
    parser.add_argument(
        "-secure-port", "--secure-port", dest="secure_port", type=int,
        default=defaults.secure_port, help="The port on which to serve HTTPS.",
    )
    parser.add_argument(
        "-bind-address", "--bind-address", dest="bind_address",
        default=defaults.bind_address, help="The IP address on which to listen.",
    )
    parser.add_argument(
        "-tls-cert-file", "--tls-cert-file", dest="tls_cert_file",
        default=defaults.tls_cert_file, help="File containing the x509 certificate for HTTPS.",
    )
    parser.add_argument(
        "-tls-private-key-file", "--tls-private-key-file", dest="tls_private_key_file",
        default=defaults.tls_private_key_file,
        help="File containing the x509 private key matching --tls-cert-file.",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> ServerOptions:
    """Parse command-line flags into server options."""
    ns = _parser().parse_args(argv)
    return ServerOptions(
        bind_address=ns.bind_address,
        secure_port=ns.secure_port,
        tls_cert_file=ns.tls_cert_file,
        tls_private_key_file=ns.tls_private_key_file,
        lister_kubeconfig=ns.lister_kubeconfig,
        max_retrieved_events=ns.max_retrieved_events,
        since_millis=ns.since_millis,
    )


def make_app(options: ServerOptions, provider: EventsProvider) -> EventsAPI:
    """Return the WSGI application serving events from ``provider``."""
    return EventsAPI(provider)


def _check_lister_config(options: ServerOptions) -> None:
    if options.lister_kubeconfig:
        if not os.path.isfile(options.lister_kubeconfig):
            raise SystemExit(
                "unable to construct lister client config to initialize provider: "
                f"{options.lister_kubeconfig} does not exist"
            )
    elif not (os.environ.get("KUBERNETES_SERVICE_HOST") and os.environ.get("KUBERNETES_SERVICE_PORT")):
        raise SystemExit(
            "unable to construct lister client config to initialize provider: "
            "unable to load in-cluster configuration"
        )


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Run the events adapter server until interrupted."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    options = parse_args(argv)
    try:
        options.validate([])
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    _check_lister_config(options)

    metadata = MetadataClient()
    entries = LoggingEntriesClient(token_source=metadata.access_token)
    provider = StackdriverEventsProvider(
        entries, metadata.project_id, options.max_retrieved_events, options.since_millis
    )
    app = make_app(options, provider)

    with make_server(options.bind_address, options.secure_port, app) as server:
        if options.tls_cert_file:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            context.load_cert_chain(options.tls_cert_file, options.tls_private_key_file)
            server.socket = context.wrap_socket(server.socket, server_side=True)
        else:
            logger.warning("no serving certificate given, serving plain HTTP")
        logger.info("Serving events API on %s:%d", options.bind_address, options.secure_port)
        server.serve_forever()