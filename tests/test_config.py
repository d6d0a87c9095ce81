from pathlib import Path

import pytest

from sitecast.config import DEFAULT_ENCODER_DIR, load_config
from sitecast.errors import InvalidParameters


class TestLoadConfig:
    def test_defaults(self):
        config = load_config({})

        assert config["log.level"] == "INFO"
        assert config["browser.headless"] is True
        assert config["browser.navigation_timeout_ms"] == 30000
        assert config["encoder.bin_dir"] == DEFAULT_ENCODER_DIR
        assert config["server.heartbeat_seconds"] == 30.0

    def test_environment_overrides(self):
        config = load_config(
            {
                "LOG_LEVEL": "debug",
                "SITECAST_HEADLESS": "false",
                "SITECAST_NAV_TIMEOUT_MS": "5000",
                "SITECAST_ENCODER_DIR": "/opt/webp/bin",
                "SITECAST_HEARTBEAT_SECONDS": "2.5",
            }
        )

        assert config["log.level"] == "DEBUG"
        assert config["browser.headless"] is False
        assert config["browser.navigation_timeout_ms"] == 5000
        assert config["encoder.bin_dir"] == Path("/opt/webp/bin")
        assert config["server.heartbeat_seconds"] == 2.5

    @pytest.mark.parametrize(
        "env",
        [
            {"SITECAST_HEADLESS": "maybe"},
            {"SITECAST_NAV_TIMEOUT_MS": "soon"},
            {"SITECAST_HEARTBEAT_SECONDS": "-1"},
            {"LOG_LEVEL": "LOUD"},
        ],
    )
    def test_bad_values(self, env):
        with pytest.raises(InvalidParameters):
            load_config(env)
