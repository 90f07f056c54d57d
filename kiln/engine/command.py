"""
Command-line build engine adapter.

Runs the project's engine binary (``node_modules/.bin/vite`` when present,
otherwise ``[engine].command``) as a child process.

Key features:
- Assembled config written to ``.kiln/engine.<stage>.json`` and exposed via
  ``KILN_ENGINE_CONFIG``
- Readiness detection by polling the server URL with httpx
- Graceful shutdown (terminate, wait 5s, kill)
"""

import asyncio
import contextlib
import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from kiln.engine.base import EngineError
from kiln.engine.ports import choose_port
from kiln.plugin.assembly import plugin_name

logger = logging.getLogger(__name__)

CONFIG_ENV = "KILN_ENGINE_CONFIG"
LOCAL_BINARY = Path("node_modules") / ".bin" / "vite"


def _encode(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    name = plugin_name(value)
    if name is not None:
        return {"name": name, "repr": repr(value)}
    return repr(value)


def _display_host(host: str) -> str:
    return "localhost" if host in ("0.0.0.0", "::", "") else host


@dataclass
class BuildResult:
    out_dir: Path
    duration: float
    returncode: int


class EngineProcess:
    """
    A running dev or preview server process.

    Attributes:
        args: Command line
        url: Address polled for readiness
    """

    def __init__(
        self,
        args: list[str],
        url: str,
        cwd: Path,
        env: dict[str, str],
        ready_timeout: float = 30.0,
        poll_interval: float = 0.25,
    ):
        self.args = args
        self.url = url
        self.cwd = cwd
        self.env = env
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval
        self._process: asyncio.subprocess.Process | None = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def listen(self) -> None:
        """
        Start the process and wait until the URL answers.

        Raises:
            EngineError: If the process cannot start, exits, or never answers
        """
        if self._process is not None:
            return

        logger.debug("Starting engine: %s", " ".join(self.args))
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.args, cwd=self.cwd, env=self.env
            )
        except OSError as e:
            raise EngineError(f"Failed to start {self.args[0]}: {e}") from e

        try:
            await self._wait_until_ready()
        except EngineError:
            await self.close()
            raise

    async def _wait_until_ready(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.ready_timeout

        async with httpx.AsyncClient(timeout=2.0) as client:
            while True:
                if self._process.returncode is not None:
                    raise EngineError(
                        f"Engine exited with code {self._process.returncode} before becoming ready"
                    )
                try:
                    await client.get(self.url)
                    return
                except httpx.HTTPError:
                    # not listening yet
                    pass
                if loop.time() >= deadline:
                    raise EngineError(
                        f"Server at {self.url} not ready after {self.ready_timeout}s"
                    )
                await asyncio.sleep(self.poll_interval)

    async def close(self) -> None:
        """Stop the process; a no-op if it is not running."""
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return

        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()


class CommandEngine:
    """BuildEngine implementation backed by an external command."""

    def __init__(self, project_root: Path, command: list[str] | None = None):
        self.project_root = Path(project_root).resolve()
        self.command = command

    def base_command(self, config: dict[str, Any]) -> list[str]:
        if self.command:
            return list(self.command)
        local = self.project_root / LOCAL_BINARY
        if local.exists():
            return [str(local)]
        return list(config["engine"]["command"])

    def write_config(self, config: dict[str, Any], stage: str) -> Path:
        """Write the serialisable view of ``config`` for the engine to pick up."""
        path = self.project_root / ".kiln" / f"engine.{stage}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(config, default=_encode, indent=2), encoding="utf-8")
        except OSError as e:
            raise EngineError(f"Failed to write engine config {path}: {e}") from e
        return path

    def _env(self, config_path: Path) -> dict[str, str]:
        return {**os.environ, CONFIG_ENV: str(config_path)}

    async def create_dev_server(self, config: dict[str, Any]) -> EngineProcess:
        server = config["server"]
        port = choose_port(server["host"], server["port"], server["strict_port"])
        args = [*self.base_command(config), "--host", server["host"], "--port", str(port)]
        if server["strict_port"]:
            args.append("--strictPort")

        return EngineProcess(
            args,
            f"http://{_display_host(server['host'])}:{port}",
            self.project_root,
            self._env(self.write_config(config, "dev")),
            ready_timeout=config["engine"]["ready_timeout"],
        )

    async def build(self, config: dict[str, Any]) -> BuildResult:
        """
        Run a production build to completion.

        Raises:
            EngineError: If the command cannot start or exits non-zero
        """
        out_dir = config["build"]["out_dir"]
        args = [*self.base_command(config), "build", "--outDir", out_dir]
        if config["build"]["sourcemap"]:
            args.append("--sourcemap")

        started = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=self.project_root,
                env=self._env(self.write_config(config, "build")),
            )
        except OSError as e:
            raise EngineError(f"Failed to start {args[0]}: {e}") from e

        returncode = await process.wait()
        if returncode != 0:
            raise EngineError(f"Build failed with exit code {returncode}")

        return BuildResult(
            out_dir=self.project_root / out_dir,
            duration=time.monotonic() - started,
            returncode=returncode,
        )

    async def preview(self, config: dict[str, Any]) -> EngineProcess:
        preview = config["preview"]
        port = choose_port(preview["host"], preview["port"], preview["strict_port"])
        args = [
            *self.base_command(config),
            "preview",
            "--host",
            preview["host"],
            "--port",
            str(port),
            "--outDir",
            config["build"]["out_dir"],
        ]

        handle = EngineProcess(
            args,
            f"http://{_display_host(preview['host'])}:{port}",
            self.project_root,
            self._env(self.write_config(config, "preview")),
            ready_timeout=config["engine"]["ready_timeout"],
        )
        await handle.listen()
        return handle
