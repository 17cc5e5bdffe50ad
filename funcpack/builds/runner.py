"""Build orchestration for discovered functions.

This module handles:
- The batch strategy: one shell pipeline builds the whole source tree
- The per-function strategy: compile and minify each function on its own,
  in parallel, collecting failures without cancelling siblings
- Writing compiled outputs to build/modules/<module>/<function>.js

The bundler itself is an opaque external command configured through
Settings.compile_command and Settings.minify_command.
"""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from funcpack.builds.models import BuildFailure, BuildReport
from funcpack.builds.tool import (
    ToolExecutionError,
    format_command,
    run_tool,
    terminate_active_tools,
)
from funcpack.config import Settings, get_settings
from funcpack.functions.models import (
    BUILD_DIR_NAME,
    MODULES_DIR_NAME,
    ModuleFunction,
    compiled_output_path,
)
from funcpack.types import BuildStage, BuildStrategy

logger = logging.getLogger(__name__)

TEMPLATE_PLACEHOLDERS = ("entry", "outfile", "outdir", "module", "function", "platform")


class BatchBuildError(Exception):
    """Raised when a whole-tree command (install or batch build) fails."""

    def __init__(
        self,
        message: str,
        output: str = "",
        exit_code: int | None = None,
        stage: BuildStage = BuildStage.BUILD,
        tool_started: bool = True,
        code: str = "batch_build_failed",
    ) -> None:
        super().__init__(message)
        self.output = output
        self.exit_code = exit_code
        self.stage = stage
        self.tool_started = tool_started
        self.code = code

    def to_failure(self) -> BuildFailure:
        """Describe this error as a batch-wide BuildFailure."""
        return BuildFailure(
            stage=self.stage,
            message=str(self),
            diagnostic=self.output,
            exit_code=self.exit_code,
            tool_started=self.tool_started,
            aborted_batch=True,
        )


class FunctionBuildError(Exception):
    """Raised when a single function fails to compile or minify."""

    def __init__(
        self,
        func: ModuleFunction,
        message: str,
        stage: BuildStage,
        diagnostic: str = "",
        exit_code: int | None = None,
        tool_started: bool = True,
        code: str = "function_build_failed",
    ) -> None:
        super().__init__(f"{func}: {message}")
        self.func = func
        self.stage = stage
        self.diagnostic = diagnostic
        self.exit_code = exit_code
        self.tool_started = tool_started
        self.code = code

    def to_failure(self) -> BuildFailure:
        """Describe this error as an isolated BuildFailure."""
        return BuildFailure(
            module=self.func.module,
            function=self.func.function,
            stage=self.stage,
            message=str(self),
            diagnostic=self.diagnostic,
            exit_code=self.exit_code,
            tool_started=self.tool_started,
        )


class PartialBuildError(Exception):
    """Raised when some functions failed, carrying the partial report."""

    def __init__(self, report: BuildReport, code: str = "partial_build") -> None:
        failed = ", ".join(f.key for f in report.failures)
        super().__init__(f"{len(report.failures)} function(s) failed to build: {failed}")
        self.report = report
        self.code = code


def check_command_template(template: str) -> None:
    """Validate that a command template only uses known placeholders.

    Raises:
        ValueError: If the template is malformed.
    """
    format_command(template, **{name: name for name in TEMPLATE_PLACEHOLDERS})


def run_shell_step(
    command: str,
    source_root: Path,
    stage: BuildStage,
    timeout: float | None = None,
) -> None:
    """Run a whole-tree shell pipeline such as ``yarn && yarn build``.

    Raises:
        BatchBuildError: If the command fails, cannot start, or times out.
    """
    try:
        result = run_tool(command, cwd=source_root, timeout=timeout)
    except ToolExecutionError as e:
        raise BatchBuildError(
            str(e),
            output=e.output,
            exit_code=e.exit_code,
            stage=stage,
            tool_started=e.started,
            code=e.code,
        ) from e

    if not result.success:
        raise BatchBuildError(
            result.error_message or f"{stage.value} command failed",
            output=result.output,
            exit_code=result.exit_code,
            stage=stage,
        )


def build_batch(
    inventory: list[ModuleFunction],
    source_root: Path,
    command: str,
    timeout: float | None = None,
) -> BuildReport:
    """Build the whole tree with a single command.

    Previous outputs are removed first. The command is trusted to emit
    build/modules/<module>/<function>.js for every function; the packager
    checks the outputs exist.

    Raises:
        BatchBuildError: If the command exits non-zero.
    """
    report = BuildReport(strategy=BuildStrategy.BATCH)
    if not inventory:
        logger.info("No functions to build")
        return report

    _clear_outputs(source_root)
    logger.info("Running batch build for %d function(s)", len(inventory))
    run_shell_step(command, source_root, BuildStage.BUILD, timeout=timeout)

    for func in inventory:
        report.built.append(func)
        report.outputs[func.key] = str(compiled_output_path(source_root, func))
    return report


def _run_function_step(
    func: ModuleFunction,
    stage: BuildStage,
    cmd: list[str],
    source_root: Path,
    timeout: float | None,
) -> None:
    try:
        result = run_tool(cmd, cwd=source_root, timeout=timeout)
    except ToolExecutionError as e:
        raise FunctionBuildError(
            func,
            str(e),
            stage,
            diagnostic=e.output,
            exit_code=e.exit_code,
            tool_started=e.started,
        ) from e

    if not result.success:
        raise FunctionBuildError(
            func,
            result.error_message or f"{stage.value} failed",
            stage,
            diagnostic=result.output,
            exit_code=result.exit_code,
        )


def _remove_output(output: Path) -> None:
    """Delete a partial compiled output, logging rather than raising."""
    try:
        output.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove partial output %s: %s", output, e)


def _clear_outputs(source_root: Path) -> None:
    """Remove build/modules so every output comes from this build."""
    modules_dir = source_root / BUILD_DIR_NAME / MODULES_DIR_NAME
    if modules_dir.exists():
        logger.debug("Removing previous outputs in %s", modules_dir)
        shutil.rmtree(modules_dir)


def build_function(
    func: ModuleFunction,
    source_root: Path,
    settings: Settings,
) -> Path:
    """Compile and minify one function.

    Args:
        func: Function to build; its source file is the only entry point.
        source_root: Root of the source tree (tool working directory).
        settings: Supplies command templates, platform and timeout.

    Returns:
        Path of the compiled output.

    Raises:
        FunctionBuildError: If any step fails, including unexpected errors
            such as an unwritable output directory. No output is left behind.
    """
    output = compiled_output_path(source_root, func)
    values = {
        "entry": func.source_path,
        "outfile": output,
        "outdir": output.parent,
        "module": func.module,
        "function": func.function,
        "platform": settings.target_platform,
    }
    steps = [(BuildStage.COMPILE, settings.compile_command)]
    if settings.minify_command:
        steps.append((BuildStage.MINIFY, settings.minify_command))

    logger.info("Processing: %s", func)
    stage = BuildStage.COMPILE
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        for stage, template in steps:
            cmd = format_command(template, **values)
            _run_function_step(func, stage, cmd, source_root, settings.build_timeout)
            if not output.is_file():
                raise FunctionBuildError(
                    func,
                    f"{stage.value} reported success but wrote no output to {output}",
                    stage,
                )
    except FunctionBuildError:
        _remove_output(output)
        raise
    except Exception as e:
        _remove_output(output)
        raise FunctionBuildError(func, str(e), stage, tool_started=False) from e
    except BaseException:
        _remove_output(output)
        raise

    logger.info("Compiled: %s -> %s", func, output)
    return output


def build_per_function(
    inventory: list[ModuleFunction],
    source_root: Path,
    settings: Settings,
) -> BuildReport:
    """Build every function independently.

    Functions run on a thread pool bounded by max_concurrent_builds. A
    failing function is recorded and the others carry on. If the caller is
    interrupted, queued builds are cancelled and running tools are killed.

    Returns:
        BuildReport listing outputs and isolated failures.
    """
    report = BuildReport(strategy=BuildStrategy.PER_FUNCTION)
    if not inventory:
        logger.info("No functions to build")
        return report

    check_command_template(settings.compile_command)
    if settings.minify_command:
        check_command_template(settings.minify_command)

    _clear_outputs(source_root)

    outputs: dict[str, Path] = {}
    failures: dict[str, BuildFailure] = {}
    workers = min(settings.max_concurrent_builds, len(inventory))
    logger.info("Building %d function(s) with %d worker(s)", len(inventory), workers)

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="funcpack")
    try:
        futures = {
            executor.submit(build_function, func, source_root, settings): func
            for func in inventory
        }
        for future in as_completed(futures):
            func = futures[future]
            try:
                outputs[func.key] = future.result()
            except FunctionBuildError as e:
                failures[func.key] = e.to_failure()
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        terminate_active_tools()
        raise
    finally:
        executor.shutdown(wait=True)

    for func in inventory:
        if func.key in outputs:
            report.built.append(func)
            report.outputs[func.key] = str(outputs[func.key])
        elif func.key in failures:
            report.failures.append(failures[func.key])

    logger.info(
        "Built %d of %d function(s), %d failed",
        len(report.built),
        len(inventory),
        len(report.failures),
    )
    return report


def build(
    inventory: list[ModuleFunction],
    source_root: Path,
    settings: Settings | None = None,
    strategy: BuildStrategy | None = None,
) -> BuildReport:
    """Build an inventory with the configured strategy.

    An empty inventory is a successful no-op and runs no commands. When
    install_command is set it runs once before building.

    Args:
        inventory: Functions to build.
        source_root: Root of the source tree.
        settings: Application settings.
        strategy: Override for settings.build_strategy.

    Returns:
        BuildReport with compiled outputs and per-function failures.

    Raises:
        BatchBuildError: If the install or batch command fails.
    """
    if settings is None:
        settings = get_settings()
    strategy = BuildStrategy(strategy or settings.build_strategy)

    if not inventory:
        logger.info("No functions to build")
        return BuildReport(strategy=strategy)

    if settings.install_command:
        logger.info("Installing dependencies in %s", source_root)
        run_shell_step(
            settings.install_command,
            source_root,
            BuildStage.INSTALL,
            timeout=settings.build_timeout,
        )

    if strategy is BuildStrategy.BATCH:
        return build_batch(
            inventory,
            source_root,
            settings.build_command,
            timeout=settings.build_timeout,
        )
    return build_per_function(inventory, source_root, settings)


__all__ = [
    "BatchBuildError",
    "FunctionBuildError",
    "PartialBuildError",
    "build",
    "build_batch",
    "build_function",
    "build_per_function",
    "check_command_template",
    "run_shell_step",
]
