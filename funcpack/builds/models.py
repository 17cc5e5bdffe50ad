"""Build result models.

This module defines the BuildFailure, BuildReport and PipelineResult
models. BuildReport is JSON-serializable so it can be stored as the value
of the cached build operation and replayed on later runs.
"""

from pathlib import Path

from pydantic import BaseModel, Field

from funcpack.functions.models import ModuleFunction
from funcpack.types import ArtifactInfo, BuildStage, BuildStrategy


class BuildFailure(BaseModel):
    """A failure attributed to one function (or to the whole batch).

    Attributes:
        module: Module of the failed function (None for batch-wide failures).
        function: Name of the failed function (None for batch-wide failures).
        stage: Pipeline stage that failed.
        message: One-line summary.
        diagnostic: Raw output of the external tool.
        exit_code: Tool exit code, when the tool ran to completion.
        tool_started: False when the tool could not be launched at all.
        aborted_batch: True when the failure stopped the remaining build.
    """

    module: str | None = None
    function: str | None = None
    stage: BuildStage
    message: str
    diagnostic: str = ""
    exit_code: int | None = None
    tool_started: bool = True
    aborted_batch: bool = False

    @property
    def key(self) -> str:
        """``module/function`` of the failed function, or ``*`` for the batch."""
        if self.module is None or self.function is None:
            return "*"
        return f"{self.module}/{self.function}"


class BuildReport(BaseModel):
    """Outcome of one build invocation.

    Attributes:
        strategy: Strategy that produced the outputs.
        built: Functions whose compiled output exists.
        outputs: Compiled output path per ``module/function`` key.
        failures: Isolated per-function failures.
        fingerprint: Hash of the build inputs (see builds.cache_key).
    """

    strategy: BuildStrategy
    built: list[ModuleFunction] = Field(default_factory=list)
    outputs: dict[str, str] = Field(default_factory=dict)
    failures: list[BuildFailure] = Field(default_factory=list)
    fingerprint: str | None = None

    @property
    def ok(self) -> bool:
        """True when no function failed."""
        return not self.failures

    def output_for(self, func: ModuleFunction) -> Path:
        """Return the compiled output path of a built function.

        Raises:
            KeyError: If the function was not built.
        """
        return Path(self.outputs[func.key])


class PipelineResult(BaseModel):
    """Outcome of a full discover/build/package run.

    Attributes:
        inventory: All discovered functions.
        artifacts: Archive path per ``module/function`` key.
        artifact_info: Size and checksum of each archive.
        failures: Build and packaging failures.
        strategy: Strategy used by the build step.
        cache_hit: Whether the build step was replayed from the cache.
        manifest_path: Path of the written manifest.
    """

    inventory: list[ModuleFunction] = Field(default_factory=list)
    artifacts: dict[str, str] = Field(default_factory=dict)
    artifact_info: list[ArtifactInfo] = Field(default_factory=list)
    failures: list[BuildFailure] = Field(default_factory=list)
    strategy: BuildStrategy
    cache_hit: bool = False
    manifest_path: str | None = None

    @property
    def ok(self) -> bool:
        """True when every discovered function was packaged."""
        return not self.failures

    @property
    def packaged(self) -> list[ModuleFunction]:
        """Functions that have an archive, in inventory order."""
        return [f for f in self.inventory if f.key in self.artifacts]

    def artifact_for(self, func: ModuleFunction) -> Path:
        """Return the archive path of a packaged function.

        Raises:
            KeyError: If the function was not packaged.
        """
        return Path(self.artifacts[func.key])


__all__ = ["BuildFailure", "BuildReport", "PipelineResult"]
