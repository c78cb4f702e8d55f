# sdadapter

Helpers for bridging Kubernetes and Stackdriver (Cloud Monitoring and Cloud
Logging):

- `sdadapter.core_client` – queries container and node CPU and memory usage,
  splitting names into batches of at most 100 per `one_of` filter.
- `sdadapter.kubelet_stats` – the kubelet summary types (`Summary`,
  `NodeStats`, `PodStats`, `ContainerStats`, ...) with JSON round trips.
- `sdadapter.adapter` – command-line options of a custom metrics adapter and
  their validation, including `validate_url`.
- `sdadapter.events_api`, `sdadapter.stackdriver_events`,
  `sdadapter.events_server` – a WSGI application that serves Kubernetes
  events read from Stackdriver Logging, and the command that runs it.
- `sdadapter.sd_exporter`, `sdadapter.prometheus_exporter` – two small
  programs that publish a metric of constant value.
- `sdadapter.gce_metadata` – a client for the instance metadata server.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Commands

### Writing a constant metric straight to Stackdriver

```
sd-dummy-exporter --pod-id my-pod-uid --metric-name foo --metric-value 40 --metric-labels bar=1
```

The exporter is meant to run on GCE or GKE: it reads the project, zone and
cluster details and an access token from the metadata server, and writes the
metric as `custom.googleapis.com/<name>` every five seconds. By default it uses
the `gke_container` resource, which needs `--pod-id`. With
`--use-new-resource-model` it also writes to `k8s_pod`, which needs
`--namespace` and `--pod-name`; `--use-old-resource-model=false` turns the old
model off.

### Exposing a constant metric in Prometheus format

```
prometheus-dummy-exporter --metric-name foo --metric-value 40 --port 8080
```

The gauge is served at `http://localhost:8080/metrics`; other paths answer 404.

### Serving events from Stackdriver Logging

```
events-adapter --max-retrieved-events 100 --secure-port 8443 \
    --tls-cert-file server.crt --tls-private-key-file server.key
```

Under `/apis/v1events/v1alpha1` the server answers:

| Path | Methods |
| --- | --- |
| `namespaces/{namespace}/events/{eventName}` | GET |
| `namespaces/{namespace}/events` | GET, POST |
| `events` | GET |

`/apis/v1events` returns the API group and `/apis/v1events/v1alpha1` the list
of resources above. Entries of the same event are merged into one event with
a count and first and last timestamps. By default only events from the last
hour are returned; `--retrieve-events-since-millis` starts from a given Unix
time in milliseconds instead.

Without a certificate and key the server speaks plain HTTP. At start it
requires either an existing file given by `--lister-kubeconfig` or the
in-cluster `KUBERNETES_SERVICE_HOST` and `KUBERNETES_SERVICE_PORT`
variables; the file is only checked for existence. The project id and access
token come from the metadata server.

## Library use

Checking a Stackdriver endpoint URL:

```python
from sdadapter.adapter import validate_url

validate_url("https://monitoring.googleapis.com/")  # True
validate_url("google.com")                          # False
```

Reading a kubelet summary:

```python
from sdadapter.kubelet_stats import summary_from_json, summary_to_json

summary = summary_from_json(text)
print(summary.node.node_name, len(summary.pods))
text_again = summary_to_json(summary)
```

Querying core metrics. `fetch` receives a request dictionary (`filter`,
`metricKind`, `valueType`) and returns the decoded time series list response:

```python
from sdadapter.core_client import StackdriverCoreClient

client = StackdriverCoreClient(fetch)
cpu, times = client.get_container_cpu(['"web-1"', '"web-2"'])
# cpu["default:web-1"]["app"] -> usage, times["default:web-1"] -> TimeInfo
nodes, node_times = client.get_node_ram(["node-a", "node-b"])
```

Pod names are put into the filter as given, so pass them quoted; node names
are quoted by the client.

Serving events from your own provider: subclass
`sdadapter.events_provider.EventsProvider` and wrap it in
`sdadapter.events_api.EventsAPI`, which is a WSGI application and also offers
`dispatch(method, path)` returning the status code and JSON payload.

## What this package does not do

- It does not combine CPU and memory usage into per-pod or per-node results;
  `StackdriverCoreClient` returns each metric separately.
- It does not run a custom or external metrics API server. `sdadapter.adapter`
  only parses and validates that server's options.
- The Stackdriver events provider cannot create events: a POST to
  `namespaces/{namespace}/events` answers with an error.
- The events server does not authenticate or authorize requests, and does not
  talk to the Kubernetes API.