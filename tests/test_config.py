"""
Tests for configuration loading.
"""

import json
import pytest

from square_sync.utils.config import (
    ConfigLoader,
    SquareSyncConfig,
    DEFAULT_PORT,
    load_config,
)
from square_sync.utils.errors import ConfigurationError


class TestConfigLoader:
    """Test ConfigLoader."""

    @pytest.mark.asyncio
    async def test_defaults(self):
        config = await ConfigLoader(environ={}).load()

        assert config.server.port == DEFAULT_PORT == 3000
        assert config.server.host == "0.0.0.0"
        assert config.sync.default_group == "room1"
        assert (config.sync.width, config.sync.height) == (100, 100)
        assert config.sync.notify_rejections is True

    @pytest.mark.asyncio
    async def test_port_from_env(self):
        config = await ConfigLoader(environ={"PORT": "8080"}).load()

        assert config.server.port == 8080

    @pytest.mark.asyncio
    async def test_node_port_fallback(self):
        config = await ConfigLoader(environ={"NODE_PORT": "4000"}).load()

        assert config.server.port == 4000

    @pytest.mark.asyncio
    async def test_port_wins_over_node_port(self):
        config = await ConfigLoader(environ={"PORT": "5000", "NODE_PORT": "4000"}).load()

        assert config.server.port == 5000

    @pytest.mark.asyncio
    async def test_invalid_port(self):
        with pytest.raises(ConfigurationError):
            await ConfigLoader(environ={"PORT": "http"}).load()

    @pytest.mark.asyncio
    async def test_prefixed_env_vars(self):
        environ = {
            "SQUARE_SYNC_SYNC__DEFAULT_GROUP": "lobby",
            "SQUARE_SYNC_SYNC__NOTIFY_REJECTIONS": "false",
            "SQUARE_SYNC_LOGGING__LEVEL": "debug",
        }

        config = await ConfigLoader(environ=environ).load()

        assert config.sync.default_group == "lobby"
        assert config.sync.notify_rejections is False
        assert config.logging.level == "DEBUG"

    @pytest.mark.asyncio
    async def test_string_fields_keep_raw_env_values(self):
        environ = {
            "SQUARE_SYNC_SYNC__DEFAULT_GROUP": "42",
            "SQUARE_SYNC_SERVER__HOST": "10.0.0.1",
            "SQUARE_SYNC_SYNC__QUEUE_SIZE": "16",
        }

        config = await ConfigLoader(environ=environ).load()

        assert config.sync.default_group == "42"
        assert config.server.host == "10.0.0.1"
        assert config.sync.queue_size == 16

    @pytest.mark.asyncio
    async def test_comma_in_group_name(self):
        config = await ConfigLoader(environ={"SQUARE_SYNC_SYNC__DEFAULT_GROUP": "a,b"}).load()

        assert config.sync.default_group == "a,b"

    @pytest.mark.asyncio
    async def test_file_sources_by_priority(self, tmp_path):
        low = tmp_path / "low.json"
        low.write_text(json.dumps({"server": {"host": "127.0.0.1", "port": 9000}}))
        high = tmp_path / "high.yaml"
        high.write_text("server:\n  port: 9100\nsync:\n  width: 50\n")

        loader = ConfigLoader(environ={})
        loader.add_source(high, priority=20)
        loader.add_source(low, priority=10)
        config = await loader.load()

        assert config.server.host == "127.0.0.1"
        assert config.server.port == 9100
        assert config.sync.width == 50

    @pytest.mark.asyncio
    async def test_toml_source(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('[sync]\ndefault_group = "arena"\n')

        loader = ConfigLoader(environ={})
        loader.add_source(path)
        config = await loader.load()

        assert config.sync.default_group == "arena"

    @pytest.mark.asyncio
    async def test_env_beats_files(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"server": {"port": 9000}}))

        loader = ConfigLoader(environ={"PORT": "7000"})
        loader.add_source(path)
        config = await loader.load()

        assert config.server.port == 7000

    @pytest.mark.asyncio
    async def test_missing_file_is_skipped(self, tmp_path):
        loader = ConfigLoader(environ={})
        loader.add_source(tmp_path / "absent.json")

        config = await loader.load()

        assert config.server.port == DEFAULT_PORT

    @pytest.mark.asyncio
    async def test_unparseable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        loader = ConfigLoader(environ={})
        loader.add_source(path)

        with pytest.raises(ConfigurationError):
            await loader.load()

    def test_unknown_file_type(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigLoader(environ={}).add_source(tmp_path / "config.ini")

    @pytest.mark.asyncio
    async def test_validation_errors(self):
        loader = ConfigLoader(environ={})
        loader.add_source({"sync": {"width": 0}})

        with pytest.raises(ConfigurationError) as exc_info:
            await loader.load()

        assert "sync.width" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_invalid_log_level(self):
        loader = ConfigLoader(environ={})
        loader.add_source({"logging": {"level": "LOUD"}})

        with pytest.raises(ConfigurationError):
            await loader.load()

    def test_get_config_before_load(self):
        with pytest.raises(ConfigurationError):
            ConfigLoader(environ={}).get_config()


class TestLoadConfig:
    """Test load_config."""

    @pytest.mark.asyncio
    async def test_overrides_beat_environment(self):
        config = await load_config(
            extra_config={"server": {"port": 6000}},
            environ={"PORT": "7000"},
        )

        assert isinstance(config, SquareSyncConfig)
        assert config.server.port == 6000

    @pytest.mark.asyncio
    async def test_invalid_override(self):
        with pytest.raises(ConfigurationError):
            await load_config(extra_config={"server": {"port": 70000}}, environ={})
