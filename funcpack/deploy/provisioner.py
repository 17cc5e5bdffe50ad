"""Provisioner interface and deployment plan.

The infrastructure provisioner turns packaged functions into routable
compute endpoints. funcpack does not provision anything itself. It
describes the contract (Provisioner), supplies the resolvers the
provisioner needs, and writes a JSON deployment plan with one entry per
packaged function.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from funcpack.builds.models import PipelineResult
from funcpack.deploy.context import DeploymentContext
from funcpack.functions.models import ModuleFunction, dash_case

logger = logging.getLogger(__name__)

PLAN_VERSION = "1.0"
HANDLER_EXPORT = "default"

# Handlers read these at runtime
PLATFORM_ENV_VAR = "EXOBASE_PLATFORM"
SERVICE_ENV_VAR = "EXOBASE_SERVICE"

ArtifactResolver = Callable[[ModuleFunction], Path]
HandlerResolver = Callable[[ModuleFunction], str]


class Provisioner(Protocol):
    """Creates one routable endpoint per function and returns a public URL."""

    def provision(
        self,
        inventory: list[ModuleFunction],
        get_artifact: ArtifactResolver,
        get_handler: HandlerResolver,
        context: DeploymentContext,
    ) -> str: ...


def handler_name(func: ModuleFunction) -> str:
    """Return the handler of a function, e.g. ``ping.default``."""
    return f"{func.function}.{HANDLER_EXPORT}"


def resource_name(service_name: str, func: ModuleFunction) -> str:
    """Return the resource name of a function within a service."""
    return f"{dash_case(service_name)}-{func.resource_name}"


def artifact_resolver(result: PipelineResult) -> ArtifactResolver:
    """Map functions to their archives.

    The returned callable raises KeyError for a function that was not
    packaged.
    """
    return result.artifact_for


def build_environment(context: DeploymentContext) -> dict[str, str]:
    """Assemble the environment variables of every function."""
    env = {
        ev.name: ev.value for ev in context.deployment.config.environment_variables
    }
    env[PLATFORM_ENV_VAR] = context.platform.name
    env[SERVICE_ENV_VAR] = context.service.name
    return env


def resolve_url(context: DeploymentContext, api_url: str | None) -> str | None:
    """Return the custom domain when configured, else the API URL."""
    if context.service.domain is not None:
        return context.service.domain.fqd
    return api_url


def build_deployment_plan(
    context: DeploymentContext,
    result: PipelineResult,
) -> dict[str, Any]:
    """Describe the packaged functions for the provisioner.

    Only packaged functions are listed; failed ones are reported
    separately under ``failures``.
    """
    stack = context.stack
    env = build_environment(context)
    get_artifact = artifact_resolver(result)

    functions = [
        {
            "module": func.module,
            "function": func.function,
            "name": resource_name(context.service.name, func),
            "archive": str(get_artifact(func)),
            "handler": handler_name(func),
            "runtime": stack.runtime,
            "timeout": stack.timeout,
            "memory": stack.memory,
            "environment": env,
        }
        for func in result.packaged
    ]

    return {
        "version": PLAN_VERSION,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "service": dash_case(context.service.name),
        "platform": context.platform.name,
        "domain": context.service.domain.fqd if context.service.domain else None,
        "functions": functions,
        "failures": [f.key for f in result.failures],
    }


def write_deployment_plan(
    context: DeploymentContext,
    result: PipelineResult,
    output_path: Path,
) -> Path:
    """Write the deployment plan as JSON.

    Returns:
        Path to the written plan.
    """
    plan = build_deployment_plan(context, result)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(plan, f, indent=2, sort_keys=True)
    logger.info(
        "Wrote deployment plan for %d function(s) to %s",
        len(plan["functions"]),
        output_path,
    )
    return output_path


__all__ = [
    "ArtifactResolver",
    "HandlerResolver",
    "PLATFORM_ENV_VAR",
    "Provisioner",
    "SERVICE_ENV_VAR",
    "artifact_resolver",
    "build_deployment_plan",
    "build_environment",
    "handler_name",
    "resolve_url",
    "resource_name",
    "write_deployment_plan",
]
