"""The two collector wire profiles: collectd unixsock and Graphite plaintext."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Any, Optional, Union

from .codec import MetricKey, encode_collectd_line, encode_graphite_line, unix_timestamp
from .connection import Connector, TcpConnector, UnixSocketConnector

DEFAULT_PLUGIN_NAME = "exometer"
DEFAULT_TYPE = "gauge"
DEFAULT_GRAPHITE_HOST = "carbon.hostedgraphite.com"
DEFAULT_GRAPHITE_PORT = 2003


def default_hostname() -> str:
    return socket.gethostname()


def default_instance() -> str:
    """Short name of the local node (host name up to the first dot)."""
    return socket.gethostname().split(".", 1)[0]


@dataclass(frozen=True, slots=True)
class CollectdProfile:
    path: str
    hostname: str
    plugin_name: str = DEFAULT_PLUGIN_NAME
    plugin_instance: str = ""
    type_spec: Optional[Any] = None

    expects_reply = True

    def resolve_type(self, key: MetricKey) -> str:
        # type_spec is accepted, every value is still reported as a gauge
        return DEFAULT_TYPE

    def encode_line(self, key: MetricKey, value: Any, timestamp: int) -> str:
        return encode_collectd_line(
            self.hostname,
            self.plugin_name,
            self.plugin_instance,
            self.resolve_type(key),
            key,
            value,
            timestamp,
        )

    def connector(self) -> Connector:
        return UnixSocketConnector(self.path)


@dataclass(frozen=True, slots=True)
class GraphiteProfile:
    api_key: str
    prefix: str = ""
    host: str = DEFAULT_GRAPHITE_HOST
    port: int = DEFAULT_GRAPHITE_PORT
    mode: Optional[str] = None

    expects_reply = False

    def encode_line(self, key: MetricKey, value: Any, timestamp: int) -> str:
        return encode_graphite_line(self.api_key, self.prefix, key, value, timestamp)

    def connector(self) -> Connector:
        return TcpConnector(self.host, self.port)


Profile = Union[CollectdProfile, GraphiteProfile]


def encode_line(profile: Profile, key: MetricKey, value: Any, timestamp: Optional[int] = None) -> str:
    if timestamp is None:
        timestamp = unix_timestamp()
    return profile.encode_line(key, value, timestamp)
