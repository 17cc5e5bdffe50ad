"""Deployment glue for the infrastructure provisioner.

This module handles:
- Loading and validating the deployment context document
- Handler, resource name and environment resolution
- Writing the deployment plan consumed by the provisioner
"""

from funcpack.deploy.context import ContextError, DeploymentContext, load_context
from funcpack.deploy.provisioner import (
    Provisioner,
    build_deployment_plan,
    handler_name,
    write_deployment_plan,
)

__all__ = [
    "ContextError",
    "DeploymentContext",
    "Provisioner",
    "build_deployment_plan",
    "handler_name",
    "load_context",
    "write_deployment_plan",
]
