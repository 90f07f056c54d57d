"""Build engine adapters."""

from kiln.engine.base import BuildEngine, DevServerHandle, EngineError, PreviewHandle
from kiln.engine.command import BuildResult, CommandEngine, EngineProcess
from kiln.engine.ports import choose_port, find_available_port, is_port_available

__all__ = [
    "BuildEngine",
    "BuildResult",
    "CommandEngine",
    "DevServerHandle",
    "EngineError",
    "EngineProcess",
    "PreviewHandle",
    "choose_port",
    "find_available_port",
    "is_port_available",
]
