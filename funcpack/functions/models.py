"""Function inventory models."""

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

BUILD_DIR_NAME = "build"
MODULES_DIR_NAME = "modules"
COMPILED_SUFFIX = ".js"
ARCHIVE_SUFFIX = ".zip"

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def dash_case(text: str) -> str:
    """Convert a name to lowercase dash-case.

    Args:
        text: Any identifier-like string (camelCase, snake_case, spaces).

    Returns:
        Dash-separated lowercase string, e.g. ``"myService_v2"`` ->
        ``"my-service-v2"``.
    """
    spaced = _CAMEL_BOUNDARY.sub(r"\1-\2", text)
    return _NON_ALNUM.sub("-", spaced).strip("-").lower()


class ModuleFunction(BaseModel):
    """A deployable function identified by ``(module, function)``.

    Attributes:
        module: Name of the module directory.
        function: File base name with the source extension stripped.
        source_path: Absolute path of the function's source file.
    """

    model_config = ConfigDict(frozen=True)

    module: str = Field(min_length=1)
    function: str = Field(min_length=1)
    source_path: Path

    @property
    def key(self) -> str:
        """Stable ``module/function`` identifier used in manifests."""
        return f"{self.module}/{self.function}"

    @property
    def resource_name(self) -> str:
        """Generated resource name, e.g. ``api-get-user``."""
        return dash_case(f"{self.module}-{self.function}")

    def __str__(self) -> str:
        return self.key


def build_output_dir(source_root: Path, func: ModuleFunction) -> Path:
    """Return ``<source_root>/build/modules/<module>``."""
    return source_root / BUILD_DIR_NAME / MODULES_DIR_NAME / func.module


def compiled_output_path(source_root: Path, func: ModuleFunction) -> Path:
    """Return the conventional compiled output path for a function."""
    return build_output_dir(source_root, func) / f"{func.function}{COMPILED_SUFFIX}"


def archive_path(source_root: Path, func: ModuleFunction) -> Path:
    """Return the conventional archive path for a function."""
    return build_output_dir(source_root, func) / f"{func.function}{ARCHIVE_SUFFIX}"


__all__ = [
    "ARCHIVE_SUFFIX",
    "BUILD_DIR_NAME",
    "COMPILED_SUFFIX",
    "MODULES_DIR_NAME",
    "ModuleFunction",
    "archive_path",
    "build_output_dir",
    "compiled_output_path",
    "dash_case",
]
