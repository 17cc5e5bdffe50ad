"""Function discovery from the source tree layout.

Functions live at ``<source_root>/<module>/<function>.<ext>``. Every
immediate subdirectory of the source root is a module unless its name
starts with an excluded prefix (build output, dependency folders, hidden
directories). Discovery only reads the file system.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from funcpack.functions.models import ModuleFunction

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_PREFIXES = ("build", "node_modules", ".", "__")


class DiscoveryError(Exception):
    """Raised when the source root cannot be scanned."""

    def __init__(
        self,
        message: str,
        source_root: Path | None = None,
        code: str = "discovery_error",
    ) -> None:
        super().__init__(message)
        self.source_root = source_root
        self.code = code


def normalize_extension(extension: str) -> str:
    """Return the extension without a leading dot.

    Raises:
        ValueError: If the extension is empty.
    """
    ext = extension.strip().lstrip(".")
    if not ext:
        raise ValueError("Source extension must not be empty")
    return ext


def is_excluded(name: str, excluded_prefixes: Iterable[str]) -> bool:
    """Check whether a directory name starts with a reserved prefix."""
    return any(name.startswith(prefix) for prefix in excluded_prefixes if prefix)


def discover(
    source_root: Path,
    extension: str,
    excluded_prefixes: Iterable[str] = DEFAULT_EXCLUDED_PREFIXES,
) -> list[ModuleFunction]:
    """Discover the function inventory of a source tree.

    Args:
        source_root: Directory containing one subdirectory per module.
        extension: Source file extension, with or without a leading dot.
        excluded_prefixes: Module directory prefixes to skip.

    Returns:
        Functions ordered by module name, then function name.

    Raises:
        DiscoveryError: If source_root is missing or not a directory.
    """
    ext = normalize_extension(extension)
    suffix = f".{ext}"
    prefixes = tuple(excluded_prefixes)

    if not source_root.exists():
        raise DiscoveryError(
            f"Source root does not exist: {source_root}",
            source_root=source_root,
            code="source_not_found",
        )
    if not source_root.is_dir():
        raise DiscoveryError(
            f"Source root is not a directory: {source_root}",
            source_root=source_root,
            code="source_not_directory",
        )

    root = source_root.resolve()
    inventory: list[ModuleFunction] = []

    for module_dir in sorted(root.iterdir(), key=lambda p: p.name):
        if not module_dir.is_dir():
            continue
        if is_excluded(module_dir.name, prefixes):
            logger.debug("Skipping excluded directory: %s", module_dir.name)
            continue

        found = 0
        for path in sorted(module_dir.iterdir(), key=lambda p: p.name):
            # Only "<name>.<ext>"; "index.d.ts" style names would be ambiguous
            if not path.is_file() or not path.name.endswith(suffix):
                continue
            function = path.name[: -len(suffix)]
            if not function or "." in function:
                logger.debug("Skipping ambiguous file name: %s", path.name)
                continue

            inventory.append(
                ModuleFunction(
                    module=module_dir.name,
                    function=function,
                    source_path=path,
                )
            )
            found += 1

        if not found:
            logger.debug("Module %s has no *%s files", module_dir.name, suffix)

    logger.info(
        "Discovered %d function(s) in %s (*%s)", len(inventory), source_root, suffix
    )
    return inventory


__all__ = [
    "DEFAULT_EXCLUDED_PREFIXES",
    "DiscoveryError",
    "discover",
    "is_excluded",
    "normalize_extension",
]
