"""Per-function artifact packaging.

Each compiled output is archived on its own as build/modules/<module>/
<function>.zip holding exactly one entry, the compiled file. The archive
is written under a temporary name and renamed into place, so readers only
ever see a complete archive.
"""

from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from pathlib import Path

from funcpack.functions.models import ARCHIVE_SUFFIX, ModuleFunction

logger = logging.getLogger(__name__)

# Fixed entry metadata keeps archives byte-identical across runs
ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)
ZIP_ENTRY_MODE = 0o644


class PackagingError(Exception):
    """Raised when an artifact cannot be produced."""

    def __init__(
        self,
        func: ModuleFunction,
        message: str,
        code: str = "packaging_error",
    ) -> None:
        super().__init__(f"{func}: {message}")
        self.func = func
        self.code = code


def pack(func: ModuleFunction, compiled_output_path: Path) -> Path:
    """Archive a compiled function into ``<function>.zip``.

    Args:
        func: Function being packaged.
        compiled_output_path: Compiled output produced by the build step.

    Returns:
        Path to the archive, placed next to the compiled output.

    Raises:
        PackagingError: If the compiled output is missing or archiving fails.
    """
    if not compiled_output_path.is_file():
        raise PackagingError(
            func,
            f"Compiled output not found: {compiled_output_path}",
            code="output_missing",
        )

    archive = compiled_output_path.with_name(f"{func.function}{ARCHIVE_SUFFIX}")

    with tempfile.NamedTemporaryFile(
        dir=archive.parent,
        prefix=f".{func.function}.",
        suffix=".tmp",
        delete=False,
    ) as tmp_file:
        tmp_path = Path(tmp_file.name)

    try:
        info = zipfile.ZipInfo(compiled_output_path.name, date_time=ZIP_DATE_TIME)
        info.compress_type = zipfile.ZIP_DEFLATED
        info.external_attr = ZIP_ENTRY_MODE << 16
        with zipfile.ZipFile(tmp_path, "w") as zf:
            zf.writestr(info, compiled_output_path.read_bytes())
        os.replace(tmp_path, archive)
    except (OSError, zipfile.LargeZipFile) as e:
        tmp_path.unlink(missing_ok=True)
        raise PackagingError(
            func, f"Failed to archive {compiled_output_path}: {e}", code="archive_failed"
        ) from e
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info("Zipped: %s -> %s", compiled_output_path.name, archive)
    return archive


def read_archive_entry(archive: Path) -> tuple[str, bytes]:
    """Return the single entry of a function archive.

    Raises:
        ValueError: If the archive does not hold exactly one entry.
    """
    with zipfile.ZipFile(archive) as zf:
        names = zf.namelist()
        if len(names) != 1:
            raise ValueError(f"Expected one entry in {archive}, found {len(names)}")
        return names[0], zf.read(names[0])


__all__ = [
    "PackagingError",
    "ZIP_DATE_TIME",
    "pack",
    "read_archive_entry",
]
