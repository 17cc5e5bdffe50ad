"""Build pipeline service.

This module provides the high-level pipeline API:
- run_pipeline(): discover, build (through the operation cache), package
- Packaging only the functions that built successfully
- Manifest generation for the provisioner

See DESIGN.md for the cache and failure policy.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from funcpack.builds.artifacts import (
    MANIFEST_FILENAME,
    describe_artifact,
    generate_manifest,
    write_manifest,
)
from funcpack.builds.cache import CacheStore
from funcpack.builds.cache_key import fingerprint_build
from funcpack.builds.models import BuildFailure, BuildReport, PipelineResult
from funcpack.builds.packager import PackagingError, pack
from funcpack.builds.runner import PartialBuildError, build
from funcpack.config import Settings, get_settings
from funcpack.functions.discovery import discover
from funcpack.functions.models import BUILD_DIR_NAME, ModuleFunction
from funcpack.types import ArtifactInfo, BuildStage, BuildStrategy

logger = logging.getLogger(__name__)


def cache_from_settings(settings: Settings) -> CacheStore:
    """Create the operation cache configured by settings."""
    return CacheStore(settings.cache_path, lock_timeout=settings.cache_lock_timeout)


def _cached_build(
    cache: CacheStore,
    key: str,
    inventory: list[ModuleFunction],
    source_root: Path,
    settings: Settings,
    strategy: BuildStrategy,
) -> tuple[BuildReport, bool]:
    """Run the build through the cache.

    A cached report is only replayed when its fingerprint matches the
    current inputs. Otherwise the entry is dropped and the build runs.

    Returns:
        Tuple of (report, is_cache_hit).
    """
    executed = False
    fingerprint = fingerprint_build(inventory, source_root, strategy)

    def operation() -> dict[str, object]:
        nonlocal executed
        executed = True
        report = build(inventory, source_root, settings=settings, strategy=strategy)
        report.fingerprint = fingerprint
        if report.failures:
            # Raising keeps a partial build out of the cache
            raise PartialBuildError(report)
        return report.model_dump(mode="json")

    try:
        value = cache.run_once(key, operation)
    except PartialBuildError as e:
        logger.warning("%s; not caching this build", e)
        return e.report, False

    try:
        report = BuildReport.model_validate(value)
    except ValidationError:
        if executed:
            raise
        logger.warning("Cached value for %r is not a build report; rebuilding", key)
    else:
        if executed or report.fingerprint == fingerprint:
            return report, not executed
        logger.warning("Cached build %r was made from other inputs; rebuilding", key)

    cache.forget(key)
    return _cached_build(cache, key, inventory, source_root, settings, strategy)


def unaccounted_failures(
    report: BuildReport,
    inventory: list[ModuleFunction],
) -> list[BuildFailure]:
    """Report discovered functions the build neither built nor failed."""
    seen = {f.key for f in report.built} | {f.key for f in report.failures}
    return [
        BuildFailure(
            module=func.module,
            function=func.function,
            stage=BuildStage.BUILD,
            message=f"{func}: not part of the {report.strategy.value} build",
        )
        for func in inventory
        if func.key not in seen
    ]


def package_report(
    report: BuildReport,
    source_root: Path,
) -> tuple[dict[str, str], list[ArtifactInfo], list[BuildFailure]]:
    """Package every successfully built function of a report.

    Returns:
        Tuple of (archive path per key, artifact descriptions, failures).
    """
    artifacts: dict[str, str] = {}
    infos: list[ArtifactInfo] = []
    failures: list[BuildFailure] = []

    for func in report.built:
        try:
            archive = pack(func, report.output_for(func))
        except PackagingError as e:
            logger.error("Packaging failed: %s", e)
            failures.append(
                BuildFailure(
                    module=func.module,
                    function=func.function,
                    stage=BuildStage.PACKAGE,
                    message=str(e),
                )
            )
            continue
        artifacts[func.key] = str(archive)
        infos.append(describe_artifact(func, archive, source_root))

    return artifacts, infos, failures


def run_pipeline(
    source_root: Path | None = None,
    extension: str | None = None,
    settings: Settings | None = None,
    cache: CacheStore | None = None,
    strategy: BuildStrategy | None = None,
    force: bool = False,
) -> PipelineResult:
    """Discover, build and package every function of a source tree.

    This is the main entry point for the build pipeline. It:
    1. Discovers functions under source_root
    2. Builds them through the operation cache (a cached build is replayed)
    3. Packages each successfully built function into <function>.zip
    4. Writes build/manifest.json

    Per-function build failures do not stop the run: the successful subset
    is packaged and every failure is returned. Whether a partial result is
    deployable is up to the caller.

    Args:
        source_root: Source tree root (default: settings.source_dir).
        extension: Source extension (default: settings.source_ext).
        settings: Application settings.
        cache: Operation cache (default: built from settings).
        strategy: Override for settings.build_strategy.
        force: Drop the cached build first so it runs again.

    Returns:
        PipelineResult with inventory, artifacts and failures.

    Raises:
        DiscoveryError: If the source root is invalid.
        BatchBuildError: If the install or batch build command fails.
        CacheWriteError: If a successful build cannot be cached.
    """
    if settings is None:
        settings = get_settings()
    if source_root is None:
        source_root = settings.source_dir
    if extension is None:
        extension = settings.source_ext
    if strategy is None:
        strategy = settings.build_strategy
    if cache is None:
        cache = cache_from_settings(settings)

    inventory = discover(Path(source_root), extension, settings.excluded_prefixes)
    root = Path(source_root).resolve()

    if force and cache.forget(settings.cache_key):
        logger.info("Forced rebuild: dropped cached %r", settings.cache_key)

    report, cache_hit = _cached_build(
        cache, settings.cache_key, inventory, root, settings, BuildStrategy(strategy)
    )
    if cache_hit:
        logger.info("Reusing cached build of %d function(s)", len(report.built))

    artifacts, infos, packaging_failures = package_report(report, root)
    failures = [
        *report.failures,
        *unaccounted_failures(report, inventory),
        *packaging_failures,
    ]

    manifest = generate_manifest(
        infos,
        strategy=report.strategy.value,
        cache_key=settings.cache_key,
        cache_hit=cache_hit,
        failures=failures,
    )
    manifest_path = write_manifest(manifest, root / BUILD_DIR_NAME / MANIFEST_FILENAME)

    logger.info(
        "Packaged %d of %d function(s), %d failure(s)",
        len(artifacts),
        len(inventory),
        len(failures),
    )
    return PipelineResult(
        inventory=inventory,
        artifacts=artifacts,
        artifact_info=infos,
        failures=failures,
        strategy=report.strategy,
        cache_hit=cache_hit,
        manifest_path=str(manifest_path),
    )


__all__ = [
    "cache_from_settings",
    "package_report",
    "run_pipeline",
    "unaccounted_failures",
]
