"""Artifact description and manifest generation.

This module handles:
- Computing checksums of packaged archives
- Describing archives as ArtifactInfo records
- Generating and writing the build manifest (build/manifest.json)
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from funcpack.functions.models import ModuleFunction
from funcpack.types import ArtifactInfo

if TYPE_CHECKING:
    from funcpack.builds.models import BuildFailure

logger = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0"
MANIFEST_FILENAME = "manifest.json"

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def describe_artifact(
    func: ModuleFunction,
    archive: Path,
    source_root: Path,
) -> ArtifactInfo:
    """Describe a packaged archive.

    Args:
        func: Function the archive belongs to.
        archive: Path to the archive.
        source_root: Root for computing the relative path.

    Returns:
        ArtifactInfo with size and checksum.
    """
    try:
        relative_path = archive.resolve().relative_to(source_root.resolve()).as_posix()
    except ValueError:
        relative_path = archive.name

    return ArtifactInfo(
        module=func.module,
        function=func.function,
        filename=archive.name,
        relative_path=relative_path,
        size_bytes=archive.stat().st_size,
        sha256=compute_file_hash(archive),
    )


def generate_manifest(
    artifacts: list[ArtifactInfo],
    strategy: str,
    cache_key: str | None = None,
    cache_hit: bool = False,
    failures: list[BuildFailure] | None = None,
) -> dict[str, Any]:
    """Generate a build manifest.

    The manifest contains:
    - List of artifacts with metadata
    - Build strategy and cache information
    - Failures reported by the build and packaging steps
    - Summary statistics

    Returns:
        Manifest dictionary suitable for JSON serialization.
    """
    now = datetime.now(timezone.utc)

    manifest: dict[str, Any] = {
        "version": MANIFEST_VERSION,
        "generated_at": now.isoformat(),
        "strategy": strategy,
        "cache_hit": cache_hit,
        "artifacts": [asdict(a) for a in artifacts],
        "failures": [f.model_dump(mode="json") for f in failures or []],
    }
    if cache_key:
        manifest["cache_key"] = cache_key

    manifest["summary"] = {
        "total_artifacts": len(artifacts),
        "total_size_bytes": sum(a.size_bytes for a in artifacts),
        "modules": sorted({a.module for a in artifacts}),
        "failed": len(manifest["failures"]),
    }

    return manifest


def write_manifest(
    manifest: dict[str, Any],
    output_path: Path,
) -> Path:
    """Write manifest to a JSON file.

    Args:
        manifest: Manifest dictionary.
        output_path: Output file path.

    Returns:
        Path to written manifest file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True)

    logger.info("Wrote manifest to %s", output_path)
    return output_path


__all__ = [
    "HASH_CHUNK_SIZE",
    "MANIFEST_FILENAME",
    "MANIFEST_VERSION",
    "compute_file_hash",
    "describe_artifact",
    "generate_manifest",
    "write_manifest",
]
