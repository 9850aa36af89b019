"""Host metric sampling for metricbridge."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Tuple

import psutil

from .codec import MetricKey, encode_key
from .errors import ConfigError

Sample = Tuple[MetricKey, Any]


def _cpu() -> Dict[str, Any]:
    return {
        "percent": psutil.cpu_percent(interval=None),
        "logical_cores": psutil.cpu_count() or 0,
    }


def _memory() -> Dict[str, Any]:
    memory = psutil.virtual_memory()
    return {
        "used_percent": float(memory.percent),
        "total_bytes": int(memory.total),
        "available_bytes": int(memory.available),
    }


def _swap() -> Dict[str, Any]:
    swap = psutil.swap_memory()
    return {"used_percent": float(swap.percent), "used_bytes": int(swap.used)}


def _load() -> Dict[str, Any]:
    one, five, fifteen = psutil.getloadavg()
    return {"one": float(one), "five": float(five), "fifteen": float(fifteen)}


def _network() -> Dict[str, Any]:
    net = psutil.net_io_counters()
    return {
        "bytes_sent": int(net.bytes_sent),
        "bytes_recv": int(net.bytes_recv),
        "errin": int(net.errin),
        "errout": int(net.errout),
    }


def _uptime() -> Dict[str, Any]:
    return {"seconds": int(datetime.now(timezone.utc).timestamp() - psutil.boot_time())}


PROBES: Dict[str, Callable[[], Dict[str, Any]]] = {
    "cpu": _cpu,
    "memory": _memory,
    "swap": _swap,
    "load": _load,
    "network": _network,
    "uptime": _uptime,
}


def validate_probes(probes: Iterable[str]) -> List[str]:
    names = list(probes)
    unknown = [name for name in names if name not in PROBES]
    if unknown:
        raise ConfigError(f"unknown probes: {', '.join(unknown)}")
    return names


def collect_samples(probes: Iterable[str]) -> List[Sample]:
    """Read every requested probe, keyed as ``host.<probe>.<datapoint>``.

    A probe the platform cannot provide is left out of the result.
    """
    samples: List[Sample] = []
    for name in validate_probes(probes):
        try:
            datapoints = PROBES[name]()
        except (AttributeError, OSError, psutil.Error):
            continue
        for datapoint, value in datapoints.items():
            samples.append((encode_key(["host", name], datapoint), value))
    return samples
