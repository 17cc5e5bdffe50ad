"""Configuration settings for funcpack.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > deployment context >
env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from funcpack.types import BuildStrategy

DEFAULT_COMPILE_COMMAND = (
    "npx esbuild {entry} --bundle --platform={platform} --outfile={outfile}"
)
DEFAULT_MINIFY_COMMAND = (
    "npx esbuild {outfile} --minify --allow-overwrite --outfile={outfile}"
)


def _default_excluded_prefixes() -> list[str]:
    """Return directory prefixes that are never treated as modules."""
    return ["build", "node_modules", ".", "__"]


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the FUNCPACK_ prefix.
    CLI flags and the deployment context can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="FUNCPACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Source layout
    source_dir: Path = Field(
        default=Path("source"),
        description="Root of the module tree (<module>/<function>.<ext>)",
    )
    source_ext: str = Field(
        default="ts",
        min_length=1,
        description="Extension of function source files",
    )
    excluded_prefixes: list[str] = Field(
        default_factory=_default_excluded_prefixes,
        description="Directory name prefixes excluded from module discovery",
    )

    # Build
    build_strategy: BuildStrategy = Field(
        default=BuildStrategy.PER_FUNCTION,
        description="Build every function separately or the whole tree at once",
    )
    install_command: str | None = Field(
        default=None,
        description="Shell command run once before building (e.g. 'yarn')",
    )
    build_command: str = Field(
        default="yarn && yarn build",
        description="Shell pipeline used by the batch strategy",
    )
    compile_command: str = Field(
        default=DEFAULT_COMPILE_COMMAND,
        description="Per-function compile command template",
    )
    minify_command: str | None = Field(
        default=DEFAULT_MINIFY_COMMAND,
        description="Per-function minify command template (unset to skip)",
    )
    target_platform: str = Field(
        default="node",
        description="Runtime platform profile passed to the compiler",
    )

    # Operation cache
    cache_path: Path = Field(
        default=Path(".funcpack-cache.json"),
        description="Operation cache store, relative to the working directory",
    )
    cache_key: str = Field(
        default="build",
        min_length=1,
        description="Cache key of the build operation",
    )
    cache_lock_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Seconds to wait for the cache lock",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Concurrency
    max_concurrent_builds: int = Field(
        default=2,
        ge=1,
        le=32,
        description="Maximum functions compiled in parallel",
    )

    # Timeouts (in seconds)
    build_timeout: int = Field(
        default=900,
        ge=1,
        description="Timeout for each external build tool invocation",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "DEFAULT_COMPILE_COMMAND",
    "DEFAULT_MINIFY_COMMAND",
    "Settings",
    "get_settings",
    "print_settings_json",
]
