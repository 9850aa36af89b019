"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from metricbridge.config import (
    CONFIG_ENV,
    BridgeConfig,
    CollectdConfig,
    GraphiteConfig,
    load_config,
)
from metricbridge.errors import ConfigError
from metricbridge.profiles import CollectdProfile, GraphiteProfile

pytestmark = pytest.mark.unit


def write_config(path: Path, data: dict) -> str:
    path.write_text(json.dumps(data))
    return str(path)


class TestCollectdConfig:
    def test_defaults(self) -> None:
        config = BridgeConfig.from_dict({"collectd": {"path": "/run/collectd.sock"}})
        assert config.profile == "collectd"
        assert config.collectd.plugin_name == "exometer"
        assert config.timing.connect_timeout_ms == 5000
        assert config.timing.read_timeout_ms == 5000
        assert config.timing.refresh_interval_seconds == 10.0
        assert config.timing.reconnect_interval_seconds == 30.0

    def test_path_is_required(self) -> None:
        with pytest.raises(ConfigError, match="path"):
            CollectdConfig.from_dict({"hostname": "h"})

    def test_profile_falls_back_to_local_names(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """hostname and plugin_instance default to the local node."""
        monkeypatch.setattr("socket.gethostname", lambda: "node1.example.com")
        profile = CollectdConfig(path="/sock").to_profile()
        assert profile == CollectdProfile(
            path="/sock",
            hostname="node1.example.com",
            plugin_name="exometer",
            plugin_instance="node1",
        )

    def test_explicit_names_win(self) -> None:
        profile = CollectdConfig.from_dict(
            {"path": "/sock", "hostname": "h", "plugin_name": "app", "plugin_instance": "i"}
        ).to_profile()
        assert (profile.hostname, profile.plugin_name, profile.plugin_instance) == ("h", "app", "i")


class TestGraphiteConfig:
    def test_api_key_is_required(self) -> None:
        with pytest.raises(ConfigError, match="api_key"):
            GraphiteConfig.from_dict({"prefix": "p"})

    def test_defaults(self) -> None:
        profile = GraphiteConfig.from_dict({"api_key": "k", "mode": "normal"}).to_profile()
        assert profile == GraphiteProfile(
            api_key="k", prefix="", host="carbon.hostedgraphite.com", port=2003, mode="normal"
        )

    def test_selected_profile(self) -> None:
        config = BridgeConfig.from_dict(
            {"profile": "graphite", "graphite": {"api_key": "k", "connect_timeout": 1000}}
        )
        assert isinstance(config.build_profile(), GraphiteProfile)
        assert config.timing.connect_timeout_ms == 1000


class TestBridgeConfig:
    def test_unknown_profile(self) -> None:
        with pytest.raises(ConfigError, match="unknown profile"):
            BridgeConfig.from_dict({"profile": "statsd"})

    def test_missing_profile_section(self) -> None:
        with pytest.raises(ConfigError, match="no 'graphite' section"):
            BridgeConfig.from_dict({"profile": "graphite", "collectd": {"path": "/s"}})

    def test_sampling_and_logging(self) -> None:
        config = BridgeConfig.from_dict(
            {
                "collectd": {"path": "/s"},
                "sampling": {"interval_seconds": 2, "probes": ["cpu"]},
                "logging": {"level": "DEBUG", "file": "logs/x.log"},
            }
        )
        assert config.sampling.interval_seconds == 2.0
        assert config.sampling.probes == ["cpu"]
        assert config.logging.level == "DEBUG"
        assert config.logging.file == "logs/x.log"
        assert config.logging.components == {}

    def test_logging_component_levels(self) -> None:
        config = BridgeConfig.from_dict(
            {
                "collectd": {"path": "/s"},
                "logging": {"components": {"scheduler": "DEBUG", "connection": "WARNING"}},
            }
        )
        assert config.logging.components == {"scheduler": "DEBUG", "connection": "WARNING"}
        assert config.logging.level == "INFO"


class TestLoadConfig:
    def test_load_from_path(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", {"collectd": {"path": "/s"}})
        assert load_config(path).collectd.path == "/s"

    def test_load_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = write_config(tmp_path / "env.json", {"graphite": {"api_key": "k"}, "profile": "graphite"})
        monkeypatch.setenv(CONFIG_ENV, path)
        assert load_config().graphite.api_key == "k"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.json"))

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="invalid JSON"):
            load_config(str(path))
