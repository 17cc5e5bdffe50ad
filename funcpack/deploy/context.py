"""Deployment context schema and loading.

The deployment context is a JSON document written by the deployment
platform. It names the target platform and its credentials, the service
being deployed, and the stack configuration (timeout, memory, build
command, environment variables). Keys are camelCase on disk.

YAML is accepted as well for hand-written contexts.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

DEFAULT_RUNTIME = "nodejs18.x"


class ContextError(Exception):
    """Raised when a deployment context cannot be loaded."""

    def __init__(self, message: str, code: str = "invalid_context") -> None:
        super().__init__(message)
        self.code = code


class ContextModel(BaseModel):
    """Base for context sections: camelCase aliases, unknown keys kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class AWSProviderSchema(ContextModel):
    """AWS credentials for the target account."""

    access_key_id: str | None = None
    access_key_secret: str | None = None
    region: str | None = None


class ProvidersSchema(ContextModel):
    """Cloud provider credentials keyed by provider name."""

    aws: AWSProviderSchema | None = None


class PlatformSchema(ContextModel):
    """Deployment platform identity."""

    name: str = Field(min_length=1)
    providers: ProvidersSchema = Field(default_factory=ProvidersSchema)


class DomainSchema(ContextModel):
    """Custom domain of a service.

    Attributes:
        fqd: Fully qualified domain name, e.g. ``api.example.com``.
    """

    fqd: str = Field(min_length=1)


class ServiceSchema(ContextModel):
    """The service being deployed."""

    name: str = Field(min_length=1)
    domain: DomainSchema | None = None


class EnvironmentVariableSchema(ContextModel):
    """A single ``name=value`` environment variable."""

    name: str = Field(min_length=1)
    value: str = ""


class StackConfigSchema(ContextModel):
    """Stack settings for the function hosting resources.

    Numeric values given as strings (``"30"``) are coerced to integers.
    """

    timeout: int = Field(default=30, ge=1)
    memory: int = Field(default=512, ge=128)
    build_command: str | None = None
    runtime: str = DEFAULT_RUNTIME


class DeploymentConfigSchema(ContextModel):
    """Configuration of a single deployment."""

    stack: StackConfigSchema = Field(default_factory=StackConfigSchema)
    environment_variables: list[EnvironmentVariableSchema] = Field(
        default_factory=list
    )


class DeploymentSchema(ContextModel):
    """Deployment section of the context."""

    id: str | None = None
    config: DeploymentConfigSchema = Field(default_factory=DeploymentConfigSchema)


class DeploymentContext(ContextModel):
    """Complete deployment context document.

    Attributes:
        platform: Target platform and provider credentials.
        service: Service identity and optional custom domain.
        deployment: Stack configuration and environment variables.
    """

    platform: PlatformSchema
    service: ServiceSchema
    deployment: DeploymentSchema = Field(default_factory=DeploymentSchema)

    @property
    def stack(self) -> StackConfigSchema:
        """Shortcut to deployment.config.stack."""
        return self.deployment.config.stack


def _load_mapping(path: Path) -> dict[str, Any]:
    """Read a JSON or YAML file that must hold a mapping."""
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ContextError(
            f"Expected a mapping in {path}, got {type(data).__name__}",
            code="invalid_format",
        )
    return data


def parse_context(data: dict[str, Any]) -> DeploymentContext:
    """Validate context data.

    Raises:
        ContextError: If data does not match the schema.
    """
    try:
        return DeploymentContext.model_validate(data)
    except ValidationError as e:
        raise ContextError(f"Invalid deployment context: {e}") from e


def load_context(path: Path) -> DeploymentContext:
    """Load and validate a deployment context file.

    Args:
        path: Path to a .json, .yaml or .yml file.

    Returns:
        Validated DeploymentContext.

    Raises:
        ContextError: If the file is missing, unparseable or invalid.
    """
    try:
        data = _load_mapping(path)
    except FileNotFoundError:
        raise ContextError(
            f"Deployment context not found: {path}", code="context_not_found"
        ) from None
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ContextError(
            f"Cannot parse deployment context {path}: {e}", code="invalid_format"
        ) from e
    return parse_context(data)


__all__ = [
    "AWSProviderSchema",
    "ContextError",
    "DEFAULT_RUNTIME",
    "DeploymentContext",
    "DomainSchema",
    "EnvironmentVariableSchema",
    "PlatformSchema",
    "ServiceSchema",
    "StackConfigSchema",
    "load_context",
    "parse_context",
]
