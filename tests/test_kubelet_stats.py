import json
from datetime import datetime, timezone

import pytest

from sdadapter.kubelet_stats import (
    CPUStats,
    NetworkStats,
    PodReference,
    PodStats,
    Summary,
    UserDefinedMetric,
    UserDefinedMetricType,
    VolumeStats,
    from_dict,
    summary_from_json,
    summary_to_json,
    to_dict,
)

T = "2017-01-02T13:02:00Z"

SAMPLE = {
    "node": {
        "nodeName": "node-1",
        "systemContainers": [
            {
                "name": "kubelet",
                "startTime": "2017-01-02T13:00:00Z",
                "cpu": {"time": T, "usageNanoCores": 1500, "usageCoreNanoSeconds": 900000},
            }
        ],
        "startTime": "2017-01-02T12:00:00Z",
        "memory": {"time": T, "usageBytes": 2048, "workingSetBytes": 1024},
        "network": {
            "time": T,
            "name": "eth0",
            "rxBytes": 10,
            "txBytes": 0,
            "interfaces": [{"name": "eth0", "rxBytes": 10, "txBytes": 0}],
        },
        "rlimit": {"time": T, "maxpid": 32768, "curproc": 120},
    },
    "pods": [
        {
            "podRef": {"name": "pod1", "namespace": "default", "uid": "uid-1"},
            "startTime": T,
            "containers": [
                {
                    "name": "cont1",
                    "startTime": T,
                    "accelerators": [
                        {
                            "make": "nvidia",
                            "model": "tesla-p100",
                            "id": "gpu-0",
                            "memoryTotal": 100,
                            "memoryUsed": 50,
                            "dutyCycle": 10,
                        }
                    ],
                    "userDefinedMetrics": [
                        {
                            "name": "qps",
                            "type": "gauge",
                            "units": "count",
                            "labels": {"a": "b"},
                            "time": T,
                            "value": 1.5,
                        }
                    ],
                }
            ],
            "volume": [
                {
                    "time": T,
                    "usedBytes": 5,
                    "name": "data",
                    "pvcRef": {"name": "claim", "namespace": "default"},
                }
            ],
            "ephemeral-storage": {"time": T, "usedBytes": 7},
        }
    ],
}


def test_dict_round_trip_matches_input():
    summary = from_dict(Summary, SAMPLE)
    assert to_dict(summary) == SAMPLE


def test_parsed_fields():
    summary = summary_from_json(json.dumps(SAMPLE))
    assert summary.node.node_name == "node-1"
    assert summary.node.start_time == datetime(2017, 1, 2, 12, 0, tzinfo=timezone.utc)
    assert summary.node.rlimit.num_of_running_processes == 120
    assert isinstance(summary.node.network, NetworkStats)
    assert summary.node.network.name == "eth0"
    assert summary.node.network.tx_bytes == 0
    pod = summary.pods[0]
    assert pod.pod_ref == PodReference(name="pod1", namespace="default", uid="uid-1")
    metric = pod.containers[0].user_defined_metrics[0]
    assert isinstance(metric, UserDefinedMetric)
    assert metric.type is UserDefinedMetricType.GAUGE
    assert metric.labels == {"a": "b"}
    assert isinstance(pod.volume_stats[0], VolumeStats)
    assert pod.volume_stats[0].used_bytes == 5
    assert pod.volume_stats[0].pvc_ref.name == "claim"
    assert pod.ephemeral_storage.used_bytes == 7


def test_json_round_trip():
    summary = summary_from_json(json.dumps(SAMPLE))
    assert summary_from_json(summary_to_json(summary)) == summary


def test_omitempty_keeps_zero_pointer_and_drops_none():
    encoded = to_dict(CPUStats(usage_nano_cores=0))
    assert encoded == {"time": None, "usageNanoCores": 0}


def test_non_omitempty_fields_always_written():
    encoded = to_dict(PodStats())
    assert encoded["containers"] == []
    assert encoded["startTime"] is None
    assert "volume" not in encoded
    assert encoded["podRef"] == {"name": "", "namespace": "", "uid": ""}


def test_inline_fields_are_flat():
    encoded = to_dict(VolumeStats(used_bytes=3, name="v"))
    assert encoded["usedBytes"] == 3
    assert encoded["name"] == "v"


def test_missing_fields_take_defaults():
    assert from_dict(PodReference, {}) == PodReference()
    assert from_dict(PodStats, {"containers": None}).containers == []


def test_time_offset_normalised_to_utc():
    stats = from_dict(CPUStats, {"time": "2017-01-02T14:02:00.123456+01:00"})
    assert stats.time.tzinfo == timezone.utc
    assert to_dict(stats)["time"] == T


def test_wrong_value_type_raises():
    with pytest.raises(TypeError):
        from_dict(CPUStats, {"usageNanoCores": "5"})


def test_unknown_metric_type_raises():
    with pytest.raises(ValueError):
        from_dict(UserDefinedMetric, {"type": "histogram"})


def test_bad_time_raises():
    with pytest.raises(ValueError):
        from_dict(CPUStats, {"time": "yesterday"})


def test_invalid_json_raises():
    with pytest.raises(ValueError):
        summary_from_json("{not json")


def test_to_dict_rejects_non_stats():
    with pytest.raises(TypeError):
        to_dict({"a": 1})