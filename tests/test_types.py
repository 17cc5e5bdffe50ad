"""Tests for shared types and build result models."""

from pathlib import Path

from funcpack.builds.models import BuildFailure, BuildReport, PipelineResult
from funcpack.functions.models import ModuleFunction
from funcpack.types import BuildStage, BuildStrategy


class TestEnums:
    """Test enum definitions."""

    def test_build_strategy_values(self) -> None:
        """BuildStrategy should have expected values."""
        assert BuildStrategy.PER_FUNCTION.value == "per-function"
        assert BuildStrategy.BATCH.value == "batch"
        assert BuildStrategy("batch") is BuildStrategy.BATCH

    def test_build_stage_values(self) -> None:
        """BuildStage should name every pipeline stage."""
        assert [s.value for s in BuildStage] == [
            "install",
            "build",
            "compile",
            "minify",
            "package",
        ]


class TestBuildReport:
    """Test BuildReport serialization."""

    def test_json_round_trip(self, tmp_path: Path) -> None:
        """A report survives the JSON form stored in the cache."""
        func = ModuleFunction(module="api", function="ping", source_path=tmp_path)
        report = BuildReport(
            strategy=BuildStrategy.PER_FUNCTION,
            built=[func],
            outputs={func.key: str(tmp_path / "ping.js")},
        )

        restored = BuildReport.model_validate(report.model_dump(mode="json"))

        assert restored == report
        assert restored.output_for(func) == tmp_path / "ping.js"
        assert restored.ok

    def test_batch_failure_key(self) -> None:
        """A failure without a function is keyed as the whole batch."""
        failure = BuildFailure(stage=BuildStage.BUILD, message="boom")
        assert failure.key == "*"


class TestPipelineResult:
    """Test PipelineResult helpers."""

    def test_packaged_follows_inventory_order(self, tmp_path: Path) -> None:
        """packaged lists archived functions in inventory order."""
        a = ModuleFunction(module="a", function="one", source_path=tmp_path)
        b = ModuleFunction(module="b", function="two", source_path=tmp_path)
        result = PipelineResult(
            inventory=[a, b],
            artifacts={"b/two": "two.zip", "a/one": "one.zip"},
            strategy=BuildStrategy.BATCH,
        )

        assert result.packaged == [a, b]
        assert result.artifact_for(b) == Path("two.zip")
