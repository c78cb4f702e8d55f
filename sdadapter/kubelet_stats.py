"""Data model of the kubelet stats summary and its JSON encoding."""

import dataclasses
import enum
import functools
import json
import re
import types
import typing
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

SYSTEM_CONTAINER_KUBELET = "kubelet"
SYSTEM_CONTAINER_RUNTIME = "runtime"
SYSTEM_CONTAINER_MISC = "misc"
SYSTEM_CONTAINER_PODS = "pods"


def _json(name: str, *, omitempty: bool = False, default: Any = None, factory: Any = None) -> Any:
    meta = {"json": name, "omitempty": omitempty}
    if factory is not None:
        return field(default_factory=factory, metadata=meta)
    return field(default=default, metadata=meta)


_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))$"
)


def _parse_time(text: str) -> datetime:
    match = _TIME_RE.match(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 time: {text!r}")
    year, month, day, hour, minute, second, frac, zulu, sign, off_h, off_m = match.groups()
    micros = int((frac or "0")[:6].ljust(6, "0"))
    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        tz = timezone(-offset if sign == "-" else offset)
    value = datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tzinfo=tz
    )
    return value.astimezone(timezone.utc)


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class PodReference:
    """Enough information to locate a pod."""

    name: str = _json("name", default="")
    namespace: str = _json("namespace", default="")
    uid: str = _json("uid", default="")


@dataclass
class PVCReference:
    """Enough information to describe a persistent volume claim."""

    name: str = _json("name", default="")
    namespace: str = _json("namespace", default="")


@dataclass
class InterfaceStats:
    """Resource usage of one network interface."""

    name: str = _json("name", default="")
    rx_bytes: Optional[int] = _json("rxBytes", omitempty=True)
    rx_errors: Optional[int] = _json("rxErrors", omitempty=True)
    tx_bytes: Optional[int] = _json("txBytes", omitempty=True)
    tx_errors: Optional[int] = _json("txErrors", omitempty=True)


@dataclass
class NetworkStats(InterfaceStats):
    """Network usage; the default interface's fields are inlined."""

    time: Optional[datetime] = _json("time")
    interfaces: list[InterfaceStats] = _json("interfaces", omitempty=True, factory=list)


@dataclass
class CPUStats:
    """CPU usage."""

    time: Optional[datetime] = _json("time")
    usage_nano_cores: Optional[int] = _json("usageNanoCores", omitempty=True)
    usage_core_nano_seconds: Optional[int] = _json("usageCoreNanoSeconds", omitempty=True)


@dataclass
class MemoryStats:
    """Memory usage."""

    time: Optional[datetime] = _json("time")
    available_bytes: Optional[int] = _json("availableBytes", omitempty=True)
    usage_bytes: Optional[int] = _json("usageBytes", omitempty=True)
    working_set_bytes: Optional[int] = _json("workingSetBytes", omitempty=True)
    rss_bytes: Optional[int] = _json("rssBytes", omitempty=True)
    page_faults: Optional[int] = _json("pageFaults", omitempty=True)
    major_page_faults: Optional[int] = _json("majorPageFaults", omitempty=True)


@dataclass
class AcceleratorStats:
    """Usage of one accelerator attached to a container."""

    make: str = _json("make", default="")
    model: str = _json("model", default="")
    id: str = _json("id", default="")
    memory_total: int = _json("memoryTotal", default=0)
    memory_used: int = _json("memoryUsed", default=0)
    duty_cycle: int = _json("dutyCycle", default=0)


@dataclass
class FsStats:
    """Filesystem usage."""

    time: Optional[datetime] = _json("time")
    available_bytes: Optional[int] = _json("availableBytes", omitempty=True)
    capacity_bytes: Optional[int] = _json("capacityBytes", omitempty=True)
    used_bytes: Optional[int] = _json("usedBytes", omitempty=True)
    inodes_free: Optional[int] = _json("inodesFree", omitempty=True)
    inodes: Optional[int] = _json("inodes", omitempty=True)
    inodes_used: Optional[int] = _json("inodesUsed", omitempty=True)


@dataclass
class VolumeStats(FsStats):
    """Filesystem usage of a volume; the filesystem fields are inlined."""

    name: str = _json("name", omitempty=True, default="")
    pvc_ref: Optional[PVCReference] = _json("pvcRef", omitempty=True)


class UserDefinedMetricType(str, enum.Enum):
    """How a user defined metric is to be interpreted."""

    GAUGE = "gauge"
    CUMULATIVE = "cumulative"
    DELTA = "delta"


@dataclass
class UserDefinedMetricDescriptor:
    """Metadata describing a user defined metric."""

    name: str = _json("name", default="")
    type: Optional[UserDefinedMetricType] = _json("type")
    units: str = _json("units", default="")
    labels: dict[str, str] = _json("labels", omitempty=True, factory=dict)


@dataclass
class UserDefinedMetric(UserDefinedMetricDescriptor):
    """A user defined metric sample; the descriptor fields are inlined."""

    time: Optional[datetime] = _json("time")
    value: float = _json("value", default=0.0)


@dataclass
class ContainerStats:
    """Container-level stats."""

    name: str = _json("name", default="")
    start_time: Optional[datetime] = _json("startTime")
    cpu: Optional[CPUStats] = _json("cpu", omitempty=True)
    memory: Optional[MemoryStats] = _json("memory", omitempty=True)
    accelerators: list[AcceleratorStats] = _json("accelerators", omitempty=True, factory=list)
    rootfs: Optional[FsStats] = _json("rootfs", omitempty=True)
    logs: Optional[FsStats] = _json("logs", omitempty=True)
    user_defined_metrics: list[UserDefinedMetric] = _json(
        "userDefinedMetrics", omitempty=True, factory=list
    )


@dataclass
class RuntimeStats:
    """Stats about the container runtime."""

    image_fs: Optional[FsStats] = _json("imageFs", omitempty=True)


@dataclass
class RlimitStats:
    """Process limits of the operating system."""

    time: Optional[datetime] = _json("time")
    max_pid: Optional[int] = _json("maxpid", omitempty=True)
    num_of_running_processes: Optional[int] = _json("curproc", omitempty=True)


@dataclass
class PodStats:
    """Pod-level stats."""

    pod_ref: PodReference = _json("podRef", factory=PodReference)
    start_time: Optional[datetime] = _json("startTime")
    containers: list[ContainerStats] = _json("containers", factory=list)
    cpu: Optional[CPUStats] = _json("cpu", omitempty=True)
    memory: Optional[MemoryStats] = _json("memory", omitempty=True)
    network: Optional[NetworkStats] = _json("network", omitempty=True)
    volume_stats: list[VolumeStats] = _json("volume", omitempty=True, factory=list)
    ephemeral_storage: Optional[FsStats] = _json("ephemeral-storage", omitempty=True)


@dataclass
class NodeStats:
    """Node-level stats."""

    node_name: str = _json("nodeName", default="")
    system_containers: list[ContainerStats] = _json(
        "systemContainers", omitempty=True, factory=list
    )
    start_time: Optional[datetime] = _json("startTime")
    cpu: Optional[CPUStats] = _json("cpu", omitempty=True)
    memory: Optional[MemoryStats] = _json("memory", omitempty=True)
    network: Optional[NetworkStats] = _json("network", omitempty=True)
    fs: Optional[FsStats] = _json("fs", omitempty=True)
    runtime: Optional[RuntimeStats] = _json("runtime", omitempty=True)
    rlimit: Optional[RlimitStats] = _json("rlimit", omitempty=True)


@dataclass
class Summary:
    """Top-level container of node and pod stats."""

    node: NodeStats = _json("node", factory=NodeStats)
    pods: list[PodStats] = _json("pods", factory=list)


@functools.lru_cache(maxsize=None)
def _hints(cls: type) -> dict[str, Any]:
    return {f.name: f.type for f in dataclasses.fields(cls)}


def _decode(tp: Any, value: Any, where: str) -> Any:
    origin = typing.get_origin(tp)
    if origin is Union or origin is types.UnionType:
        if value is None:
            return None
        inner = next(arg for arg in typing.get_args(tp) if arg is not type(None))
        return _decode(inner, value, where)
    if origin is list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise TypeError(f"{where}: expected a list, got {type(value).__name__}")
        (item_type,) = typing.get_args(tp)
        return [_decode(item_type, item, f"{where}[{i}]") for i, item in enumerate(value)]
    if origin is dict:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise TypeError(f"{where}: expected an object, got {type(value).__name__}")
        _, value_type = typing.get_args(tp)
        return {key: _decode(value_type, item, f"{where}.{key}") for key, item in value.items()}
    if tp is datetime:
        if not isinstance(value, str):
            raise TypeError(f"{where}: expected a time string, got {type(value).__name__}")
        return _parse_time(value)
    if isinstance(tp, type) and issubclass(tp, enum.Enum):
        try:
            return tp(value)
        except ValueError:
            raise ValueError(f"{where}: invalid {tp.__name__} {value!r}") from None
    if dataclasses.is_dataclass(tp):
        return tp() if value is None else from_dict(tp, value)
    if tp is int:
        if value is None:
            return 0
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{where}: expected an integer, got {value!r}")
        return value
    if tp is float:
        if value is None:
            return 0.0
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"{where}: expected a number, got {value!r}")
        return float(value)
    if tp is str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise TypeError(f"{where}: expected a string, got {value!r}")
        return value
    raise TypeError(f"{where}: unsupported field type {tp!r}")


def from_dict(cls: type, data: Any) -> Any:
    """Build an instance of the stats dataclass ``cls`` from decoded JSON."""
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise TypeError(f"{cls!r} is not a stats type")
    if not isinstance(data, dict):
        raise TypeError(f"{cls.__name__}: expected an object, got {type(data).__name__}")
    hints = _hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        key = f.metadata["json"]
        if key in data:
            kwargs[f.name] = _decode(hints[f.name], data[key], f"{cls.__name__}.{key}")
    return cls(**kwargs)


def _encode(value: Any) -> Any:
    if value is None:
        return None
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_dict(value)
    if isinstance(value, datetime):
        return _format_time(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, list):
        return [_encode(item) for item in value]
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    return value


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and not value)


def to_dict(obj: Any) -> dict[str, Any]:
    """Return the JSON-ready dictionary form of a stats dataclass instance."""
    if not dataclasses.is_dataclass(obj) or isinstance(obj, type):
        raise TypeError(f"{obj!r} is not a stats object")
    result: dict[str, Any] = {}
    for f in dataclasses.fields(obj):
        value = getattr(obj, f.name)
        if f.metadata["omitempty"] and _is_empty(value):
            continue
        result[f.metadata["json"]] = _encode(value)
    return result


def summary_from_json(text: Union[str, bytes]) -> Summary:
    """Parse a stats summary document."""
    return from_dict(Summary, json.loads(text))


def summary_to_json(summary: Summary) -> str:
    """Serialise a stats summary document."""
    return json.dumps(to_dict(summary))