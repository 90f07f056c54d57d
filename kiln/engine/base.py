"""
Build engine contract.

kiln does not bundle or transform code. It drives an engine that can start a
dev server, run a production build and serve a preview of the output.
"""

from typing import Any, Protocol


class EngineError(Exception):
    """Raised when the build engine fails to start, build or stop."""

    pass


class DevServerHandle(Protocol):
    url: str | None

    async def listen(self) -> None: ...

    async def close(self) -> None: ...


class PreviewHandle(Protocol):
    url: str | None

    async def close(self) -> None: ...


class BuildEngine(Protocol):
    async def create_dev_server(self, config: dict[str, Any]) -> DevServerHandle: ...

    async def build(self, config: dict[str, Any]) -> Any: ...

    async def preview(self, config: dict[str, Any]) -> PreviewHandle: ...
