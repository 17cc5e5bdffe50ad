"""Shared type definitions for funcpack.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum


class BuildStrategy(str, Enum):
    """How the build orchestrator invokes the external tooling."""

    PER_FUNCTION = "per-function"
    BATCH = "batch"


class BuildStage(str, Enum):
    """Pipeline stage a failure originated from."""

    INSTALL = "install"
    BUILD = "build"
    COMPILE = "compile"
    MINIFY = "minify"
    PACKAGE = "package"


@dataclass
class ArtifactInfo:
    """Information about a packaged function artifact."""

    module: str
    function: str
    filename: str
    relative_path: str
    size_bytes: int
    sha256: str


__all__ = [
    "ArtifactInfo",
    "BuildStage",
    "BuildStrategy",
]
