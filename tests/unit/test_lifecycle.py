"""
Unit tests for the Lifecycle Coordinator.

Tests cover:
- Dev server start/stop/supersede and state transitions
- Config assembly (detection, aliases, plugin merge)
- Single-flight initialization
- Build and preview flows
- Error accounting, hooks and the exit policy
- Config-change restarts
- Overlapping operations
"""

import asyncio
import json
import threading
import time
from unittest.mock import MagicMock

import pytest

from kiln.config import ConfigError, ConfigSource, default_config, merge_config
from kiln.core import (
    ClientBroadcast,
    LauncherHooks,
    LifecycleCoordinator,
    LifecycleState,
    LifecycleTransitionError,
)
from kiln.detection import DetectionEngine
from kiln.engine import EngineError

# Fixtures


class FakeServer:
    def __init__(self, url, delay=0.0):
        self.url = url
        self.delay = delay
        self.listening = False
        self.closed = False

    async def listen(self):
        await asyncio.sleep(self.delay)
        self.listening = True

    async def close(self):
        self.closed = True


class FakeEngine:
    def __init__(self):
        self.dev_configs = []
        self.build_configs = []
        self.preview_configs = []
        self.servers = []
        self.fail_build = False
        self.build_delay = 0.0
        self.listen_delay = 0.0

    async def create_dev_server(self, config):
        self.dev_configs.append(config)
        server = FakeServer(
            f"http://localhost:{config['server']['port']}", self.listen_delay
        )
        self.servers.append(server)
        return server

    async def build(self, config):
        self.build_configs.append(config)
        await asyncio.sleep(self.build_delay)
        if self.fail_build:
            raise EngineError("Build failed with exit code 1")
        return {"out_dir": config["build"]["out_dir"]}

    async def preview(self, config):
        self.preview_configs.append(config)
        server = FakeServer(f"http://localhost:{config['preview']['port']}")
        await server.listen()
        return server


@pytest.fixture
def project(tmp_path):
    (tmp_path / "package.json").write_text(
        json.dumps({"dependencies": {"vue": "^3.4.0"}})
    )
    return tmp_path


@pytest.fixture
def engine():
    return FakeEngine()


def make_coordinator(project, engine, **kwargs):
    return LifecycleCoordinator(
        project, engine=engine, detection=DetectionEngine(), **kwargs
    )


def add_vue_plugin(project):
    package = project / "node_modules" / "@vitejs" / "plugin-vue"
    package.mkdir(parents=True)
    (package / "package.json").write_text(json.dumps({"name": "@vitejs/plugin-vue"}))
    (package / "index.py").write_text(
        "def default(options):\n    return {'name': 'vite:vue', 'source': 'resolver'}\n"
    )


# Dev server


@pytest.mark.asyncio
async def test_start_dev_runs_server(project, engine):
    coordinator = make_coordinator(project, engine)
    statuses = []
    ready = []
    coordinator.subscribe("status-change", lambda p: statuses.append(p.current))
    coordinator.subscribe("server-ready", ready.append)

    server = await coordinator.start_dev()

    assert server.listening
    assert coordinator.state is LifecycleState.RUNNING
    assert coordinator.dev_server is server
    assert coordinator.stats.start_count == 1
    assert statuses == ["starting", "running"]
    assert ready[0].kind == "dev" and ready[0].restart is False


@pytest.mark.asyncio
async def test_start_dev_assembles_config(project, engine):
    coordinator = make_coordinator(project, engine)

    await coordinator.start_dev()

    config = engine.dev_configs[0]
    assert config["framework"]["type"] == "vue3"
    assert config["framework"]["source"] == "dependency"
    assert config["mode"] == "development"
    finds = [alias["find"] for alias in config["resolve"]["alias"]]
    assert finds[:2] == ["@", "~"]


@pytest.mark.asyncio
async def test_stage_filtered_aliases(project, engine):
    coordinator = make_coordinator(
        project,
        engine,
        config={
            "resolve": {
                "alias": [
                    {"find": "dev-only", "replacement": "./mocks"},
                    {"find": "shared", "replacement": "./lib", "stages": ["dev", "build"]},
                ]
            }
        },
    )

    await coordinator.start_dev()
    await coordinator.build()

    dev_finds = [a["find"] for a in engine.dev_configs[0]["resolve"]["alias"]]
    build_finds = [a["find"] for a in engine.build_configs[0]["resolve"]["alias"]]
    assert dev_finds == ["@", "~", "dev-only", "shared"]
    assert build_finds == ["@", "~", "shared"]


@pytest.mark.asyncio
async def test_user_plugin_wins_over_resolved(project, engine):
    add_vue_plugin(project)
    user_vue = {"name": "vite:vue", "source": "user"}
    coordinator = make_coordinator(project, engine, config={"plugins": [user_vue]})

    await coordinator.start_dev()

    plugins = engine.dev_configs[0]["plugins"]
    assert [p for p in plugins if p["name"] == "vite:vue"] == [user_vue]


@pytest.mark.asyncio
async def test_resolved_plugins_precede_user_plugins(project, engine):
    add_vue_plugin(project)
    coordinator = make_coordinator(
        project, engine, config={"plugins": [{"name": "inspect"}]}
    )

    await coordinator.start_dev()

    names = [p["name"] for p in engine.dev_configs[0]["plugins"]]
    assert names == ["vite:vue", "inspect"]


@pytest.mark.asyncio
async def test_explicit_framework_override(project, engine):
    coordinator = make_coordinator(
        project, engine, config={"launcher": {"framework": "react"}}
    )

    await coordinator.start_dev()

    assert engine.dev_configs[0]["framework"] == {
        "type": "react",
        "confidence": 0.9,
        "source": "config",
    }


@pytest.mark.asyncio
async def test_stop_dev_is_idempotent(project, engine):
    coordinator = make_coordinator(project, engine)

    await coordinator.stop_dev()
    assert coordinator.state is LifecycleState.IDLE

    server = await coordinator.start_dev()
    await coordinator.stop_dev()
    await coordinator.stop_dev()

    assert server.closed
    assert coordinator.dev_server is None
    assert coordinator.state is LifecycleState.STOPPED


@pytest.mark.asyncio
async def test_start_dev_supersedes_running_server(project, engine):
    coordinator = make_coordinator(project, engine)

    first = await coordinator.start_dev()
    second = await coordinator.start_dev()

    assert first.closed
    assert coordinator.dev_server is second
    assert coordinator.state is LifecycleState.RUNNING


# Initialization


@pytest.mark.asyncio
async def test_concurrent_initialize_loads_once(project, engine):
    calls = []
    lock = threading.Lock()

    def slow_load():
        with lock:
            calls.append(1)
        time.sleep(0.05)
        return default_config()

    source = MagicMock(spec=ConfigSource)
    source.load.side_effect = slow_load
    coordinator = make_coordinator(project, engine, config_source=source)

    first, second = await asyncio.gather(
        coordinator.initialize(), coordinator.initialize()
    )

    assert len(calls) == 1
    assert first is second
    assert coordinator.initialized


@pytest.mark.asyncio
async def test_failed_initialize_uses_defaults_and_retries(project, engine):
    source = MagicMock(spec=ConfigSource)
    source.load.side_effect = [
        ConfigError("broken file"),
        merge_config(default_config(), {"server": {"port": 5000}}),
    ]
    coordinator = make_coordinator(project, engine, config_source=source)

    config = await coordinator.initialize()
    assert config["server"]["port"] == 3000
    assert not coordinator.initialized

    config = await coordinator.initialize()
    assert config["server"]["port"] == 5000
    assert source.load.call_count == 2

    await coordinator.initialize()
    assert source.load.call_count == 2


@pytest.mark.asyncio
async def test_overrides_apply_over_loaded_config(project, engine):
    (project / "kiln.toml").write_text("[server]\nport = 4000\nhost = '0.0.0.0'\n")
    coordinator = make_coordinator(
        project, engine, config={"server": {"port": 4100}}
    )

    config = await coordinator.initialize()

    assert config["server"] == {"host": "0.0.0.0", "port": 4100, "strict_port": False}


@pytest.mark.asyncio
async def test_config_snapshot_is_isolated(project, engine):
    coordinator = make_coordinator(project, engine)
    await coordinator.initialize()

    snapshot = coordinator.config
    snapshot["server"]["port"] = 1

    assert coordinator.config["server"]["port"] == 3000


# Build and preview


@pytest.mark.asyncio
async def test_build_returns_to_idle(project, engine):
    coordinator = make_coordinator(project, engine)
    events = []
    coordinator.subscribe("build-start", lambda p: events.append("start"))
    coordinator.subscribe("build-end", lambda p: events.append(("end", p.success)))

    result = await coordinator.build()

    assert result == {"out_dir": "dist"}
    assert coordinator.state is LifecycleState.IDLE
    assert events == ["start", ("end", True)]
    assert coordinator.stats.build_count == 1
    assert engine.build_configs[0]["mode"] == "production"


@pytest.mark.asyncio
async def test_build_while_running_returns_to_running(project, engine):
    coordinator = make_coordinator(project, engine)
    await coordinator.start_dev()

    await coordinator.build()

    assert coordinator.state is LifecycleState.RUNNING


@pytest.mark.asyncio
async def test_preview_and_stop_preview(project, engine):
    coordinator = make_coordinator(project, engine)

    server = await coordinator.preview()

    assert coordinator.state is LifecycleState.PREVIEWING
    assert server.url == "http://localhost:4173"

    await coordinator.stop_preview()

    assert server.closed
    assert coordinator.preview_server is None
    assert coordinator.state is LifecycleState.IDLE


# Errors and hooks


@pytest.mark.asyncio
async def test_build_failure_sets_error_state(project, engine):
    engine.fail_build = True
    reports = []
    coordinator = make_coordinator(
        project, engine, hooks=LauncherHooks(on_error=reports.append)
    )
    events = []
    coordinator.subscribe("error", events.append)

    with pytest.raises(EngineError):
        await coordinator.build()

    assert coordinator.state is LifecycleState.ERROR
    assert coordinator.stats.error_count == 1
    assert reports[0].operation == "build"
    assert reports[0].severity == "high"
    assert events == reports

    # errors are not terminal
    engine.fail_build = False
    await coordinator.start_dev()
    assert coordinator.state is LifecycleState.RUNNING


@pytest.mark.asyncio
async def test_illegal_transition(project, engine):
    coordinator = make_coordinator(project, engine)
    await coordinator.initialize()
    coordinator._set_state(LifecycleState.STOPPING)

    with pytest.raises(LifecycleTransitionError):
        await coordinator.build()

    assert coordinator.state is LifecycleState.ERROR


@pytest.mark.asyncio
async def test_exit_on_error(project, engine):
    engine.fail_build = True
    coordinator = make_coordinator(
        project, engine, config={"launcher": {"exit_on_error": True}}
    )

    with pytest.raises(SystemExit):
        await coordinator.build()


@pytest.mark.asyncio
async def test_exit_severity_threshold(project, engine):
    engine.fail_build = True
    coordinator = make_coordinator(
        project,
        engine,
        config={"launcher": {"exit_on_error": True, "exit_severity": "critical"}},
    )

    with pytest.raises(EngineError):
        await coordinator.build()


@pytest.mark.asyncio
async def test_hooks_run_and_failures_are_contained(project, engine):
    order = []

    async def before_start():
        order.append("before_start")

    def after_start():
        order.append("after_start")
        raise RuntimeError("hook bug")

    coordinator = make_coordinator(
        project,
        engine,
        hooks=LauncherHooks(
            before_start=before_start,
            after_start=after_start,
            before_close=lambda: order.append("before_close"),
            after_close=lambda: order.append("after_close"),
        ),
    )

    await coordinator.start_dev()
    await coordinator.stop_dev()

    assert order == ["before_start", "after_start", "before_close", "after_close"]
    assert coordinator.state is LifecycleState.STOPPED


# Restarts


@pytest.mark.asyncio
async def test_restart_with_config_replaces_config(project, engine):
    notifier = ClientBroadcast()
    client = notifier.connect()
    coordinator = make_coordinator(project, engine, notifier=notifier)
    ready = []
    coordinator.subscribe("server-ready", ready.append)
    first = await coordinator.start_dev()

    new_config = merge_config(default_config(), {"server": {"port": 4000}})
    second = await coordinator.restart_with_config(new_config)

    assert first.closed
    assert coordinator.dev_server is second
    assert coordinator.config["server"]["port"] == 4000
    assert engine.dev_configs[-1]["server"]["port"] == 4000
    assert ready[-1].restart is True

    message = client.get_nowait()
    assert message["event"] == "launcher-config-updated"


@pytest.mark.asyncio
async def test_config_changes_are_debounced(project, engine):
    coordinator = make_coordinator(
        project, engine, config={"launcher": {"config_change_debounce": 20}}
    )
    await coordinator.start_dev()

    for port in (4001, 4002, 4003):
        coordinator.handle_config_change(
            merge_config(default_config(), {"server": {"port": port}})
        )
    await coordinator.scheduler.wait_idle()

    assert len(engine.dev_configs) == 2
    assert engine.dev_configs[-1]["server"]["port"] == 4003
    assert coordinator.state is LifecycleState.RUNNING


@pytest.mark.asyncio
async def test_auto_restart_disabled(project, engine):
    coordinator = make_coordinator(project, engine)
    config = merge_config(default_config(), {"launcher": {"auto_restart": False}})

    assert coordinator.handle_config_change(config) is False


@pytest.mark.asyncio
async def test_dispose_stops_everything(project, engine):
    coordinator = make_coordinator(project, engine)
    dev = await coordinator.start_dev()
    preview = await coordinator.preview()

    await coordinator.dispose()

    assert dev.closed and preview.closed
    assert coordinator.dev_server is None
    assert coordinator.preview_server is None
    assert coordinator.state is LifecycleState.IDLE
    assert not coordinator.initialized


# Overlapping operations


@pytest.mark.asyncio
async def test_overlapping_starts_supersede_cleanly(project, engine):
    engine.listen_delay = 0.05
    coordinator = make_coordinator(project, engine)

    first, second = await asyncio.gather(
        coordinator.start_dev(), coordinator.start_dev()
    )

    live = coordinator.dev_server
    assert live in (first, second)
    assert [s.closed for s in (first, second) if s is not live] == [True]
    assert not live.closed
    assert coordinator.state is LifecycleState.RUNNING
    assert coordinator.stats.error_count == 0


@pytest.mark.asyncio
async def test_restart_during_build_waits_for_build(project, engine):
    coordinator = make_coordinator(project, engine)
    await coordinator.start_dev()
    engine.build_delay = 0.1
    errors = []
    coordinator.subscribe("error", errors.append)

    build = asyncio.create_task(coordinator.build())
    await asyncio.sleep(0.02)
    assert coordinator.state is LifecycleState.BUILDING

    server = await coordinator.restart_with_config(coordinator.config)
    result = await build

    assert result == {"out_dir": "dist"}
    assert coordinator.dev_server is server
    assert coordinator.state is LifecycleState.RUNNING
    assert errors == []
    assert coordinator.stats.error_count == 0


@pytest.mark.asyncio
async def test_scheduled_restart_during_build(project, engine):
    coordinator = make_coordinator(
        project, engine, config={"launcher": {"config_change_debounce": 10}}
    )
    await coordinator.start_dev()
    engine.build_delay = 0.1

    build = asyncio.create_task(coordinator.build())
    await asyncio.sleep(0.02)
    coordinator.handle_config_change(
        merge_config(default_config(), {"server": {"port": 4500}})
    )

    assert await build == {"out_dir": "dist"}
    await coordinator.scheduler.wait_idle()

    assert engine.dev_configs[-1]["server"]["port"] == 4500
    assert coordinator.state is LifecycleState.RUNNING
    assert coordinator.stats.error_count == 0
