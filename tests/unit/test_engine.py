"""
Tests for the command-line build engine adapter.

This test suite covers:
1. Port selection
2. Engine command and config file handling
3. Build, dev and preview process management (subprocesses faked)
"""

import asyncio
import json
import socket
from pathlib import Path

import httpx
import pytest

from kiln.config import default_config, merge_config
from kiln.engine import (
    CommandEngine,
    EngineError,
    EngineProcess,
    choose_port,
    find_available_port,
    is_port_available,
)
from kiln.engine.command import CONFIG_ENV

# Fixtures


class FakeProcess:
    def __init__(self, returncode=None, exit_code=0, ignore_terminate=False):
        self.returncode = returncode
        self.exit_code = exit_code
        self.ignore_terminate = ignore_terminate
        self.terminated = False
        self.killed = False

    def terminate(self):
        self.terminated = True
        if not self.ignore_terminate:
            self.returncode = -15

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        if self.returncode is None and self.ignore_terminate and not self.killed:
            raise TimeoutError
        if self.returncode is None:
            self.returncode = self.exit_code
        return self.returncode


@pytest.fixture
def occupied_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("0.0.0.0", 0))
    sock.listen(1)
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


@pytest.fixture
def spawned(monkeypatch):
    """Record create_subprocess_exec calls and hand back FakeProcess objects."""
    calls = []
    processes = []

    async def fake_exec(*args, **kwargs):
        calls.append((list(args), kwargs))
        process = processes.pop(0) if processes else FakeProcess()
        return process

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    return calls, processes


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("0.0.0.0", 0))
        return sock.getsockname()[1]


def engine_config(**overrides):
    return merge_config(default_config(), overrides)


# Ports


class TestPorts:
    """Test port availability and selection."""

    def test_occupied_port_is_unavailable(self, occupied_port):
        assert is_port_available("0.0.0.0", occupied_port) is False

    def test_next_free_port_is_chosen(self, occupied_port, caplog):
        chosen = choose_port("localhost", occupied_port)

        assert chosen > occupied_port
        assert "is in use" in caplog.text

    def test_strict_port_raises(self, occupied_port):
        with pytest.raises(EngineError, match="already in use"):
            choose_port("localhost", occupied_port, strict=True)

    def test_free_port_is_kept(self):
        port = free_port()

        assert choose_port("localhost", port, strict=True) == port

    def test_no_free_port(self, occupied_port):
        with pytest.raises(EngineError, match="No free port"):
            find_available_port("0.0.0.0", occupied_port, attempts=1)


# Commands and config files


class TestCommandEngine:
    """Test command selection and config serialisation."""

    def test_explicit_command_wins(self, tmp_path):
        engine = CommandEngine(tmp_path, command=["npx", "vite"])

        assert engine.base_command(default_config()) == ["npx", "vite"]

    def test_local_binary_preferred_over_config(self, tmp_path):
        binary = tmp_path / "node_modules" / ".bin" / "vite"
        binary.parent.mkdir(parents=True)
        binary.write_text("")

        assert CommandEngine(tmp_path).base_command(default_config()) == [str(binary)]

    def test_config_command_is_fallback(self, tmp_path):
        config = engine_config(engine={"command": ["pnpm", "exec", "vite"]})

        assert CommandEngine(tmp_path).base_command(config) == ["pnpm", "exec", "vite"]

    def test_write_config_encodes_handles(self, tmp_path):
        class Plugin:
            name = "vite:vue"

        config = engine_config(plugins=[Plugin(), {"name": "inspect"}])
        config["root"] = tmp_path

        path = CommandEngine(tmp_path).write_config(config, "dev")

        assert path == tmp_path / ".kiln" / "engine.dev.json"
        data = json.loads(path.read_text())
        assert data["root"] == str(tmp_path)
        assert data["plugins"][0]["name"] == "vite:vue"
        assert data["plugins"][1] == {"name": "inspect"}

    @pytest.mark.asyncio
    async def test_create_dev_server_does_not_spawn(self, tmp_path, spawned):
        calls, _ = spawned
        port = free_port()
        config = engine_config(server={"port": port, "strict_port": True})

        server = await CommandEngine(tmp_path, ["vite"]).create_dev_server(config)

        assert calls == []
        assert server.url == f"http://localhost:{port}"
        assert server.args == ["vite", "--host", "localhost", "--port", str(port), "--strictPort"]
        assert server.env[CONFIG_ENV] == str(tmp_path / ".kiln" / "engine.dev.json")


class TestBuild:
    """Test production builds."""

    @pytest.mark.asyncio
    async def test_successful_build(self, tmp_path, spawned):
        calls, _ = spawned
        config = engine_config(build={"out_dir": "out", "sourcemap": True})

        result = await CommandEngine(tmp_path, ["vite"]).build(config)

        args, kwargs = calls[0]
        assert args == ["vite", "build", "--outDir", "out", "--sourcemap"]
        assert kwargs["cwd"] == tmp_path.resolve()
        assert result.out_dir == tmp_path.resolve() / "out"
        assert result.returncode == 0
        assert (tmp_path / ".kiln" / "engine.build.json").exists()

    @pytest.mark.asyncio
    async def test_failed_build_raises(self, tmp_path, spawned):
        _, processes = spawned
        processes.append(FakeProcess(exit_code=2))

        with pytest.raises(EngineError, match="exit code 2"):
            await CommandEngine(tmp_path, ["vite"]).build(default_config())

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, tmp_path, monkeypatch):
        async def missing(*args, **kwargs):
            raise FileNotFoundError(args[0])

        monkeypatch.setattr(asyncio, "create_subprocess_exec", missing)

        with pytest.raises(EngineError, match="Failed to start"):
            await CommandEngine(tmp_path, ["nope"]).build(default_config())


class TestEngineProcess:
    """Test readiness polling and shutdown."""

    def make_process(self, tmp_path, **kwargs):
        return EngineProcess(
            ["vite"],
            "http://localhost:3999",
            tmp_path,
            {},
            ready_timeout=kwargs.pop("ready_timeout", 1.0),
            poll_interval=0.01,
        )

    @pytest.mark.asyncio
    async def test_listen_waits_for_url(self, tmp_path, spawned, monkeypatch):
        attempts = []

        async def fake_get(self, url, **kwargs):
            attempts.append(url)
            if len(attempts) < 3:
                raise httpx.ConnectError("refused")
            return httpx.Response(200)

        monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)
        handle = self.make_process(tmp_path)

        await handle.listen()

        assert handle.running
        assert attempts == ["http://localhost:3999"] * 3

    @pytest.mark.asyncio
    async def test_early_exit_raises(self, tmp_path, spawned):
        _, processes = spawned
        processes.append(FakeProcess(returncode=1))
        handle = self.make_process(tmp_path)

        with pytest.raises(EngineError, match="exited with code 1"):
            await handle.listen()

        assert not handle.running

    @pytest.mark.asyncio
    async def test_ready_timeout(self, tmp_path, spawned, monkeypatch):
        _, processes = spawned
        process = FakeProcess()
        processes.append(process)

        async def refuse(self, url, **kwargs):
            raise httpx.ConnectError("refused")

        monkeypatch.setattr(httpx.AsyncClient, "get", refuse)
        handle = self.make_process(tmp_path, ready_timeout=0.05)

        with pytest.raises(EngineError, match="not ready"):
            await handle.listen()

        assert process.terminated

    @pytest.mark.asyncio
    async def test_close_kills_stubborn_process(self, tmp_path, spawned, monkeypatch):
        _, processes = spawned
        process = FakeProcess(ignore_terminate=True)
        processes.append(process)

        async def accept(self, url, **kwargs):
            return httpx.Response(200)

        monkeypatch.setattr(httpx.AsyncClient, "get", accept)
        handle = self.make_process(tmp_path)
        await handle.listen()

        await handle.close()

        assert process.terminated
        assert process.killed
        assert not handle.running

    @pytest.mark.asyncio
    async def test_close_without_process(self, tmp_path):
        await self.make_process(tmp_path).close()
