"""Build input fingerprints.

This module handles:
- Canonical snapshot of what a build was run over (source root, strategy,
  every function with the checksum of its source file)
- Deterministic hash of that snapshot

The fingerprint is stored with the cached build report. A cached report
whose fingerprint differs from the current inputs is stale and is rebuilt.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from funcpack.builds.artifacts import compute_file_hash
from funcpack.functions.models import ModuleFunction
from funcpack.types import BuildStrategy

# Bump when the snapshot format changes
FINGERPRINT_SCHEMA_VERSION = "1"


@dataclass
class BuildInputs:
    """Canonical representation of the inputs of one build.

    Attributes:
        schema_version: Version of the snapshot format.
        source_root: Resolved source tree root.
        strategy: Build strategy value.
        functions: ``module/function`` key to source file SHA-256.
    """

    schema_version: str = FINGERPRINT_SCHEMA_VERSION
    source_root: str = ""
    strategy: str = BuildStrategy.PER_FUNCTION.value
    functions: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def create_build_inputs(
    inventory: list[ModuleFunction],
    source_root: Path,
    strategy: BuildStrategy,
) -> BuildInputs:
    """Snapshot the inputs of a build.

    A source file that cannot be read is recorded without a checksum; the
    build step reports the failure.
    """
    functions: dict[str, str] = {}
    for func in inventory:
        try:
            functions[func.key] = compute_file_hash(func.source_path)
        except OSError:
            functions[func.key] = ""

    return BuildInputs(
        source_root=str(Path(source_root).resolve()),
        strategy=BuildStrategy(strategy).value,
        functions=functions,
    )


def compute_fingerprint(inputs: BuildInputs) -> str:
    """Hash build inputs.

    Returns:
        Fingerprint as hex string (sha256:...).
    """
    canonical_json = json.dumps(
        inputs.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
    )
    return f"sha256:{hashlib.sha256(canonical_json.encode('utf-8')).hexdigest()}"


def fingerprint_build(
    inventory: list[ModuleFunction],
    source_root: Path,
    strategy: BuildStrategy,
) -> str:
    """Snapshot and hash the inputs of a build in one call."""
    return compute_fingerprint(create_build_inputs(inventory, source_root, strategy))


__all__ = [
    "FINGERPRINT_SCHEMA_VERSION",
    "BuildInputs",
    "compute_fingerprint",
    "create_build_inputs",
    "fingerprint_build",
]
