from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from sdadapter.core_client import (
    MAX_NUM_OF_ARGS_IN_ONE_OF_FILTER,
    LabelRequirement,
    StackdriverCoreClient,
    TimeInfo,
    ram_non_evictable_label,
)

POD_CASES = [
    (1, 1), (1, 2), (10, 1), (99, 1), (100, 1), (101, 1), (199, 1),
    (200, 1), (201, 1), (534, 1), (99, 5), (100, 7), (201, 3),
]
NODE_CASES = [1, 2, 15, 299, 300, 301, 132, 834]

INTERVAL = {"startTime": "2017-01-02T13:01:00Z", "endTime": "2017-01-02T13:02:00Z"}


class FakeFetch:
    def __init__(self, entries):
        self.entries = entries
        self.count = 0
        self.per_resource = Counter()
        self.max_in_request = 0
        self.duplicates = []
        self.filters = []

    def __call__(self, request):
        self.count += 1
        text = request["filter"]
        self.filters.append(text)
        found = set()
        series = []
        for name, ts in self.entries:
            occurrences = text.count(name)
            if occurrences > 1:
                self.duplicates.append(name)
            if occurrences >= 1:
                series.append(ts)
                found.add(name)
        self.per_resource.update(found)
        self.max_in_request = max(self.max_in_request, len(found))
        return {"timeSeries": series}


def _value(metric):
    return {"int64Value": "0"} if metric == "CPU" else {"doubleValue": 0.0}


def container_entry(metric, pod_id, container_id):
    pod = f"pod{pod_id}_"
    return pod, {
        "resource": {
            "type": "k8s_pod",
            "labels": {
                "container_name": f"container{container_id}_",
                "pod_name": pod,
                "namespace_name": "all",
            },
        },
        "points": [{"interval": dict(INTERVAL), "value": _value(metric)}],
    }


def node_entry(metric, node_id):
    node = f"node{node_id}_"
    return node, {
        "resource": {"type": "k8s_pod", "labels": {"node_name": node}},
        "points": [{"interval": dict(INTERVAL), "value": _value(metric)}],
    }


def expected_requests(n):
    return (n + MAX_NUM_OF_ARGS_IN_ONE_OF_FILTER - 1) // MAX_NUM_OF_ARGS_IN_ONE_OF_FILTER


@pytest.mark.parametrize("metric", ["CPU", "Memory"])
@pytest.mark.parametrize("num_pods,num_containers", POD_CASES)
def test_container_metric_batches(metric, num_pods, num_containers):
    entries = [
        container_entry(metric, p, c)
        for p in range(1, num_pods + 1)
        for c in range(1, num_containers + 1)
    ]
    pods = [f"pod{p}_" for p in range(1, num_pods + 1)]
    fake = FakeFetch(entries)
    client = StackdriverCoreClient(fake)
    if metric == "CPU":
        metrics, times = client.get_container_cpu(pods)
    else:
        metrics, times = client.get_container_ram(pods)

    assert fake.count == expected_requests(len(pods))
    assert fake.duplicates == []
    assert fake.max_in_request <= MAX_NUM_OF_ARGS_IN_ONE_OF_FILTER
    assert all(fake.per_resource[pod] == 1 for pod in pods)
    for _, ts in entries:
        labels = ts["resource"]["labels"]
        key = labels["namespace_name"] + ":" + labels["pod_name"]
        assert labels["container_name"] in metrics[key]
        assert key in times


@pytest.mark.parametrize("metric", ["CPU", "Memory"])
@pytest.mark.parametrize("num_nodes", NODE_CASES)
def test_node_metric_batches(metric, num_nodes):
    entries = [node_entry(metric, n) for n in range(1, num_nodes + 1)]
    nodes = [name for name, _ in entries]
    fake = FakeFetch(entries)
    client = StackdriverCoreClient(fake)
    if metric == "CPU":
        metrics, times = client.get_node_cpu(nodes)
    else:
        metrics, times = client.get_node_ram(nodes)

    assert fake.count == expected_requests(len(nodes))
    assert fake.duplicates == []
    assert fake.max_in_request <= MAX_NUM_OF_ARGS_IN_ONE_OF_FILTER
    assert all(fake.per_resource[node] == 1 for node in nodes)
    assert set(metrics) == set(nodes)
    assert set(times) == set(nodes)


def test_values_and_time_info():
    _, cpu_series = container_entry("CPU", 1, 1)
    cpu_series["points"][0]["value"] = {"int64Value": "5"}
    fake = FakeFetch([("pod1_", cpu_series)])
    metrics, times = StackdriverCoreClient(fake).get_container_cpu(["pod1_"])
    assert metrics == {"all:pod1_": {"container1_": 5}}
    assert times["all:pod1_"] == TimeInfo(
        datetime(2017, 1, 2, 13, 2, tzinfo=timezone.utc), timedelta(minutes=1)
    )


def test_double_value_is_decimal():
    _, series = node_entry("Memory", 1)
    series["points"][0]["value"] = {"doubleValue": 0.25}
    metrics, _ = StackdriverCoreClient(FakeFetch([("node1_", series)])).get_node_cpu(["node1_"])
    assert metrics == {"node1_": Decimal("0.25")}


def test_ram_filter_has_non_evictable_label():
    fake = FakeFetch([])
    client = StackdriverCoreClient(fake)
    client.get_container_ram(['"a"'])
    client.get_container_cpu(['"a"'])
    assert 'metric.labels.memory_type = "non-evictable"' in fake.filters[0]
    assert "memory_type" not in fake.filters[1]


def test_node_names_are_quoted_in_filter():
    fake = FakeFetch([])
    StackdriverCoreClient(fake).get_node_cpu(["n1", "n2"])
    assert 'one_of("n1","n2")' in fake.filters[0]


def test_empty_names_make_no_requests():
    fake = FakeFetch([])
    assert StackdriverCoreClient(fake).get_container_cpu([]) == ({}, {})
    assert fake.count == 0


def test_custom_batch_size():
    entries = [node_entry("CPU", n) for n in range(1, 8)]
    fake = FakeFetch(entries)
    StackdriverCoreClient(fake, batch_size=3).get_node_ram([name for name, _ in entries])
    assert fake.count == 3


def test_invalid_batch_size():
    with pytest.raises(ValueError):
        StackdriverCoreClient(FakeFetch([]), batch_size=0)


def test_series_without_points_is_rejected():
    _, series = node_entry("CPU", 1)
    series["points"] = []
    with pytest.raises(ValueError):
        StackdriverCoreClient(FakeFetch([("node1_", series)])).get_node_cpu(["node1_"])


def test_ram_label_selector():
    assert ram_non_evictable_label() == (
        LabelRequirement("metric.labels.memory_type", "=", ("non-evictable",)),
    )
    assert ram_non_evictable_label()[0].to_filter() == (
        'metric.labels.memory_type = "non-evictable"'
    )


def test_label_requirement_validation():
    with pytest.raises(ValueError):
        LabelRequirement("k", "in", ("a",))
    with pytest.raises(ValueError):
        LabelRequirement("k", "=", ("a", "b"))