"""Metric key and wire line encoding."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Tuple, Union

Segment = Union[str, int, Enum]

DEFAULT_VALUE = "0"


@dataclass(frozen=True, order=True, slots=True)
class MetricKey:
    path: Tuple[str, ...]
    datapoint: str

    def name(self, separator: str = "_") -> str:
        return separator.join(self.path + (self.datapoint,))

    def metric_name(self, separator: str = "_") -> str:
        """The path alone, without the datapoint."""
        return separator.join(self.path)

    def __str__(self) -> str:
        return self.name(".")


def _segment_text(segment: Segment) -> str:
    if isinstance(segment, Enum):
        return segment.name
    return str(segment)


def encode_key(path: Iterable[Segment], datapoint: Segment) -> MetricKey:
    return MetricKey(
        path=tuple(_segment_text(segment) for segment in path),
        datapoint=_segment_text(datapoint),
    )


def format_value(value: Any) -> str:
    """Render a metric value for the wire.

    Integers are written as decimal, floats in scientific notation with
    twenty fractional digits. Anything else degrades to ``"0"``.
    """
    if isinstance(value, bool):
        return DEFAULT_VALUE
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return DEFAULT_VALUE
        return f"{value:.20e}"
    return DEFAULT_VALUE


def unix_timestamp(clock: Optional[Callable[[], float]] = None) -> int:
    return int((clock or time.time)())


def encode_collectd_line(
    hostname: str,
    plugin_name: str,
    plugin_instance: str,
    type_name: str,
    key: MetricKey,
    value: Any,
    timestamp: int,
) -> str:
    identifier = f"{hostname}/{plugin_name}-{plugin_instance}/{type_name}-{key.name('_')}"
    return f"PUTVAL {identifier} {timestamp}:{format_value(value)}\n"


def encode_graphite_line(
    api_key: str,
    prefix: str,
    key: MetricKey,
    value: Any,
    timestamp: int,
) -> str:
    namespace = f"{api_key}.{prefix}" if prefix else api_key
    return f"{namespace}.{key.name('.')} {format_value(value)} {timestamp}\n"
