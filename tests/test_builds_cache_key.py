"""Tests for builds/cache_key.py module.

Tests input snapshots and deterministic fingerprints of a build.
"""

import hashlib
from pathlib import Path

from funcpack.builds.cache_key import (
    FINGERPRINT_SCHEMA_VERSION,
    BuildInputs,
    compute_fingerprint,
    create_build_inputs,
    fingerprint_build,
)
from funcpack.functions.discovery import discover
from funcpack.functions.models import ModuleFunction
from funcpack.types import BuildStrategy


class TestCreateBuildInputs:
    """Tests for create_build_inputs function."""

    def test_snapshot(self, source_tree: Path) -> None:
        """Should capture root, strategy and source checksums."""
        inventory = discover(source_tree, "ts")

        inputs = create_build_inputs(inventory, source_tree, BuildStrategy.BATCH)

        assert inputs.schema_version == FINGERPRINT_SCHEMA_VERSION
        assert inputs.source_root == str(source_tree.resolve())
        assert inputs.strategy == "batch"
        ping_source = (source_tree / "api" / "ping.ts").read_bytes()
        assert inputs.functions["api/ping"] == hashlib.sha256(ping_source).hexdigest()
        assert set(inputs.functions) == {"api/broken", "api/ping"}

    def test_unreadable_source(self, tmp_path: Path) -> None:
        """A missing source file is recorded without a checksum."""
        func = ModuleFunction(
            module="api", function="gone", source_path=tmp_path / "gone.ts"
        )

        inputs = create_build_inputs([func], tmp_path, BuildStrategy.PER_FUNCTION)

        assert inputs.functions == {"api/gone": ""}


class TestComputeFingerprint:
    """Tests for fingerprint hashing."""

    def test_format(self) -> None:
        """Fingerprints are prefixed SHA-256 digests."""
        fingerprint = compute_fingerprint(BuildInputs())

        assert fingerprint.startswith("sha256:")
        assert len(fingerprint) == len("sha256:") + 64

    def test_deterministic(self, source_tree: Path) -> None:
        """Identical inputs give identical fingerprints."""
        inventory = discover(source_tree, "ts")

        first = fingerprint_build(inventory, source_tree, BuildStrategy.PER_FUNCTION)
        second = fingerprint_build(
            list(reversed(inventory)), source_tree, BuildStrategy.PER_FUNCTION
        )

        assert first == second

    def test_strategy_changes_fingerprint(self, source_tree: Path) -> None:
        """Per-function and batch builds differ."""
        inventory = discover(source_tree, "ts")

        assert fingerprint_build(
            inventory, source_tree, BuildStrategy.PER_FUNCTION
        ) != fingerprint_build(inventory, source_tree, BuildStrategy.BATCH)

    def test_source_change_changes_fingerprint(self, source_tree: Path) -> None:
        """Editing a function changes the fingerprint."""
        inventory = discover(source_tree, "ts")
        before = fingerprint_build(inventory, source_tree, BuildStrategy.PER_FUNCTION)

        (source_tree / "api" / "ping.ts").write_text("export default () => 2\n")

        after = fingerprint_build(inventory, source_tree, BuildStrategy.PER_FUNCTION)
        assert before != after

    def test_root_changes_fingerprint(self, source_tree: Path, tmp_path: Path) -> None:
        """The same functions under another root differ."""
        inventory = discover(source_tree, "ts")

        assert fingerprint_build(
            inventory, source_tree, BuildStrategy.PER_FUNCTION
        ) != fingerprint_build(inventory, tmp_path, BuildStrategy.PER_FUNCTION)
