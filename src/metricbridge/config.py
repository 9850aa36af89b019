"""Configuration loader for metricbridge."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigError
from .profiles import (
  DEFAULT_GRAPHITE_HOST,
  DEFAULT_GRAPHITE_PORT,
  DEFAULT_PLUGIN_NAME,
  CollectdProfile,
  GraphiteProfile,
  Profile,
  default_hostname,
  default_instance,
)

CONFIG_ENV = "METRICBRIDGE_CONFIG"

DEFAULT_CONNECT_TIMEOUT_MS = 5000
DEFAULT_READ_TIMEOUT_MS = 5000
DEFAULT_RECONNECT_INTERVAL_SECONDS = 30.0
DEFAULT_REFRESH_INTERVAL_SECONDS = 10.0
DEFAULT_SAMPLE_INTERVAL_SECONDS = 10.0
DEFAULT_PROBES = ("cpu", "memory", "load", "network")

PROFILES = ("collectd", "graphite")


def _require(data: Dict[str, Any], key: str, section: str) -> Any:
  if key not in data or data[key] in (None, ""):
    raise ConfigError(f"missing required option '{key}' in '{section}'")
  return data[key]


@dataclass(slots=True)
class LoggingConfig:
  level: str = "INFO"
  file: Optional[str] = None
  max_bytes: int = 5 * 1024 * 1024
  backup_count: int = 3
  # per-component level overrides, keyed by component name ("scheduler", ...)
  components: Dict[str, str] = field(default_factory=dict)

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
    return cls(
      level=data.get("level", "INFO"),
      file=data.get("file"),
      max_bytes=int(data.get("max_bytes", 5 * 1024 * 1024)),
      backup_count=int(data.get("backup_count", 3)),
      components={str(name): str(level) for name, level in data.get("components", {}).items()},
    )


@dataclass(slots=True)
class TimingConfig:
  connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
  read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS
  reconnect_interval_seconds: float = DEFAULT_RECONNECT_INTERVAL_SECONDS
  refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "TimingConfig":
    return cls(
      connect_timeout_ms=int(data.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT_MS)),
      read_timeout_ms=int(data.get("read_timeout", DEFAULT_READ_TIMEOUT_MS)),
      reconnect_interval_seconds=float(data.get("reconnect_interval", DEFAULT_RECONNECT_INTERVAL_SECONDS)),
      refresh_interval_seconds=float(data.get("refresh_interval", DEFAULT_REFRESH_INTERVAL_SECONDS)),
    )


@dataclass(slots=True)
class CollectdConfig:
  path: str
  hostname: Optional[str] = None
  plugin_name: str = DEFAULT_PLUGIN_NAME
  plugin_instance: Optional[str] = None
  type_spec: Optional[Any] = None

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "CollectdConfig":
    return cls(
      path=str(_require(data, "path", "collectd")),
      hostname=data.get("hostname"),
      plugin_name=str(data.get("plugin_name", DEFAULT_PLUGIN_NAME)),
      plugin_instance=data.get("plugin_instance"),
      type_spec=data.get("type_spec"),
    )

  def to_profile(self) -> CollectdProfile:
    return CollectdProfile(
      path=self.path,
      hostname=self.hostname or default_hostname(),
      plugin_name=self.plugin_name,
      plugin_instance=self.plugin_instance or default_instance(),
      type_spec=self.type_spec,
    )


@dataclass(slots=True)
class GraphiteConfig:
  api_key: str
  prefix: str = ""
  host: str = DEFAULT_GRAPHITE_HOST
  port: int = DEFAULT_GRAPHITE_PORT
  mode: Optional[str] = None

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "GraphiteConfig":
    return cls(
      api_key=str(_require(data, "api_key", "graphite")),
      prefix=str(data.get("prefix") or ""),
      host=str(data.get("host", DEFAULT_GRAPHITE_HOST)),
      port=int(data.get("port", DEFAULT_GRAPHITE_PORT)),
      mode=data.get("mode"),
    )

  def to_profile(self) -> GraphiteProfile:
    return GraphiteProfile(
      api_key=self.api_key,
      prefix=self.prefix,
      host=self.host,
      port=self.port,
      mode=self.mode,
    )


@dataclass(slots=True)
class SamplingConfig:
  interval_seconds: float = DEFAULT_SAMPLE_INTERVAL_SECONDS
  probes: List[str] = field(default_factory=lambda: list(DEFAULT_PROBES))

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "SamplingConfig":
    return cls(
      interval_seconds=float(data.get("interval_seconds", DEFAULT_SAMPLE_INTERVAL_SECONDS)),
      probes=[str(probe) for probe in data.get("probes", DEFAULT_PROBES)],
    )


@dataclass(slots=True)
class BridgeConfig:
  profile: str
  collectd: Optional[CollectdConfig] = None
  graphite: Optional[GraphiteConfig] = None
  timing: TimingConfig = field(default_factory=TimingConfig)
  sampling: SamplingConfig = field(default_factory=SamplingConfig)
  logging: LoggingConfig = field(default_factory=LoggingConfig)

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "BridgeConfig":
    profile = data.get("profile", "collectd")
    if profile not in PROFILES:
      raise ConfigError(f"unknown profile '{profile}', expected one of {', '.join(PROFILES)}")
    if profile not in data:
      raise ConfigError(f"profile '{profile}' selected but no '{profile}' section given")

    collectd = CollectdConfig.from_dict(data["collectd"]) if "collectd" in data else None
    graphite = GraphiteConfig.from_dict(data["graphite"]) if "graphite" in data else None

    return cls(
      profile=profile,
      collectd=collectd,
      graphite=graphite,
      timing=TimingConfig.from_dict(data.get(profile, {})),
      sampling=SamplingConfig.from_dict(data.get("sampling", {})),
      logging=LoggingConfig.from_dict(data.get("logging", {})),
    )

  def build_profile(self) -> Profile:
    if self.profile == "graphite" and self.graphite is not None:
      return self.graphite.to_profile()
    if self.profile == "collectd" and self.collectd is not None:
      return self.collectd.to_profile()
    raise ConfigError(f"profile '{self.profile}' is not configured")


def default_config_path() -> Path:
  env_path = os.getenv(CONFIG_ENV)
  if env_path:
    return Path(env_path).expanduser().resolve()
  return Path(__file__).resolve().parents[2] / "config.json"


def load_config(path: Optional[str] = None) -> BridgeConfig:
  if path:
    config_path = Path(path).expanduser().resolve()
  else:
    config_path = default_config_path()

  if not config_path.exists():
    raise FileNotFoundError(f"metricbridge config.json not found at {config_path}")

  try:
    raw = json.loads(config_path.read_text())
  except json.JSONDecodeError as error:
    raise ConfigError(f"invalid JSON in {config_path}: {error}") from error
  return BridgeConfig.from_dict(raw)
