"""
Framework detector registry.

Each detector pairs a framework type with a dependency rule, a priority rank
used to break confidence ties, and optional file patterns used when no
dependency rule matches.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Literal

DEFAULT_FRAMEWORK = "vanilla"
FILE_SIGNAL_CONFIDENCE = 0.5

DetectionSource = Literal["dependency", "file", "default"]
DependencyRule = Callable[[Mapping[str, str]], tuple[bool, float]]


@dataclass(frozen=True)
class DetectionResult:
    """
    Outcome of framework detection.

    Attributes:
        framework_type: Detected framework, e.g. ``vue3``
        confidence: 0..1 score of the winning signal
        source: Which stage decided the result
    """

    framework_type: str
    confidence: float
    source: DetectionSource

    @classmethod
    def default(cls) -> "DetectionResult":
        return cls(DEFAULT_FRAMEWORK, 0.0, "default")


@dataclass(frozen=True)
class FrameworkDetector:
    """
    Static registry entry.

    Attributes:
        framework_type: Framework this detector reports
        priority: Higher rank wins ties
        dependency_rule: Maps the dependency map to (detected, confidence)
        file_patterns: Extension globs checked when no dependency matched
    """

    framework_type: str
    priority: int
    dependency_rule: DependencyRule
    file_patterns: tuple[str, ...] = ()


_MAJOR_RE = re.compile(r"(\d+)")


def major_version(version_range: str) -> int | None:
    """
    Extract the major version from a range like ``^3.4.0`` or ``~2.7``.

    Returns None for ranges without a number (``latest``, ``workspace:*``).
    """
    if version_range.startswith(("workspace:", "link:", "file:", "git", "http")):
        return None
    match = _MAJOR_RE.search(version_range)
    return int(match.group(1)) if match else None


def requires(package: str, confidence: float = 0.9) -> DependencyRule:
    """Rule that matches when ``package`` is declared."""

    def rule(deps: Mapping[str, str]) -> tuple[bool, float]:
        return (package in deps, confidence if package in deps else 0.0)

    return rule


def vue_rule(major: int) -> DependencyRule:
    """Rule matching a specific Vue major; unknown ranges count as Vue 3 at low confidence."""

    def rule(deps: Mapping[str, str]) -> tuple[bool, float]:
        if "vue" not in deps:
            return (False, 0.0)
        found = major_version(deps["vue"])
        if found is None:
            return (major == 3, 0.5 if major == 3 else 0.0)
        if found == major or (major == 3 and found > 3):
            return (True, 0.9)
        return (False, 0.0)

    return rule


def react_rule(deps: Mapping[str, str]) -> tuple[bool, float]:
    if "react" not in deps:
        return (False, 0.0)
    return (True, 0.9 if "react-dom" in deps else 0.6)


DEFAULT_DETECTORS: tuple[FrameworkDetector, ...] = (
    FrameworkDetector("sveltekit", 20, requires("@sveltejs/kit")),
    FrameworkDetector("vue3", 10, vue_rule(3), ("*.vue",)),
    FrameworkDetector("vue2", 10, vue_rule(2)),
    FrameworkDetector("preact", 8, requires("preact")),
    FrameworkDetector("angular", 7, requires("@angular/core")),
    FrameworkDetector("qwik", 6, requires("@builder.io/qwik")),
    FrameworkDetector("react", 5, react_rule, ("*.jsx", "*.tsx")),
    FrameworkDetector("svelte", 5, requires("svelte"), ("*.svelte",)),
    FrameworkDetector("solid", 5, requires("solid-js")),
    FrameworkDetector("lit", 3, requires("lit", 0.8)),
)
