"""
Framework detection.

Decides which UI framework a project uses from its declared dependencies,
falling back to a bounded scan of its source files.
"""

from kiln.detection.cache import DetectionCache
from kiln.detection.detectors import (
    DEFAULT_DETECTORS,
    DEFAULT_FRAMEWORK,
    DetectionResult,
    FrameworkDetector,
)
from kiln.detection.engine import DetectionEngine, ProjectSignals
from kiln.detection.manifest import DetectionFailure, ManifestError
from kiln.detection.scanner import FileScanner

__all__ = [
    "DEFAULT_DETECTORS",
    "DEFAULT_FRAMEWORK",
    "DetectionCache",
    "DetectionEngine",
    "DetectionFailure",
    "DetectionResult",
    "FileScanner",
    "FrameworkDetector",
    "ManifestError",
    "ProjectSignals",
]
