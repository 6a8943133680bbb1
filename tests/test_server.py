"""
Tests for server wiring and the command line.
"""

import pytest

from square_sync import __version__
from square_sync.server import SquareSyncServer, build_parser, cli_overrides, main
from square_sync.utils.config import SquareSyncConfig, SyncConfig


class TestSquareSyncServer:
    """Test SquareSyncServer wiring."""

    def test_components_share_state(self):
        server = SquareSyncServer()

        assert server.core.store is server.store
        assert server.core.registry is server.registry
        assert server.core.broadcaster is server.transport
        assert server.lifecycle.core is server.core
        assert server.transport._lifecycle is server.lifecycle

    def test_initial_square_from_config(self):
        config = SquareSyncConfig(sync=SyncConfig(initial_x=10, initial_y=-5, width=40, height=60))

        snapshot = SquareSyncServer(config).store.snapshot()

        assert (snapshot.x, snapshot.y, snapshot.width, snapshot.height) == (10, -5, 40, 60)

    def test_servers_do_not_share_state(self):
        first = SquareSyncServer()
        second = SquareSyncServer()

        first.store.apply_delta(5, 5, first.store.snapshot().last_update)

        assert second.store.snapshot().x == 0

    @pytest.mark.asyncio
    async def test_flow_through_lifecycle(self):
        server = SquareSyncServer(SquareSyncConfig(sync=SyncConfig(default_group="arena")))
        sent = []

        async def record(event, data, to):
            sent.append((event, data, sorted(to)))

        server.core.broadcaster.emit = record
        await server.core.start()
        try:
            await server.lifecycle.on_connect("A")
            await server.lifecycle.on_connect("B")
            await server.lifecycle.on_movement_update("B", {"xUpdate": -2, "yUpdate": 10})
        finally:
            await server.core.stop()

        assert sent[0][0] == "updatedMovement"
        assert (sent[0][1]["x"], sent[0][1]["y"]) == (-2, 10)
        assert sent[0][2] == ["A", "B"]
        assert server.get_stats()["rooms"]["groups"] == {"arena": 2}


class TestCli:
    """Test command line handling."""

    def test_overrides(self):
        args = build_parser().parse_args(["--host", "127.0.0.1", "--port", "9000", "--log-level", "warning"])

        assert cli_overrides(args) == {
            "server": {"host": "127.0.0.1", "port": 9000},
            "logging": {"level": "warning"},
        }

    def test_debug_override(self):
        args = build_parser().parse_args(["--debug"])

        assert cli_overrides(args) == {"debug": True, "logging": {"level": "DEBUG"}}

    def test_no_overrides(self):
        assert cli_overrides(build_parser().parse_args([])) == {}

    def test_version(self, capsys):
        main(["--version"])

        assert __version__ in capsys.readouterr().out

    def test_bad_config_exits(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PORT", "not-a-port")

        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 2
