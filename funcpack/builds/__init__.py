"""Build orchestration module.

This module handles:
- Running external tools (install, bundle, minify)
- Batch and per-function build strategies
- Packaging compiled outputs into per-function zip archives
- The persisted operation cache
- Artifact manifests and the end-to-end pipeline
"""

from funcpack.builds.models import BuildFailure, BuildReport, PipelineResult

__all__ = ["BuildFailure", "BuildReport", "PipelineResult"]

# Lazy imports for submodules to avoid circular imports
# Access via funcpack.builds.runner, funcpack.builds.service, etc.
