"""Tests for deploy/context.py module."""

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from funcpack.deploy.context import (
    DEFAULT_RUNTIME,
    ContextError,
    DeploymentContext,
    load_context,
    parse_context,
)


def _context_data() -> dict[str, Any]:
    return {
        "platform": {
            "name": "exobase",
            "providers": {
                "aws": {
                    "accessKeyId": "AKIAEXAMPLE",
                    "accessKeySecret": "secret",
                    "region": "us-east-1",
                }
            },
        },
        "service": {"name": "myService", "domain": {"fqd": "api.example.com"}},
        "deployment": {
            "id": "d-123",
            "config": {
                "stack": {"timeout": "60", "memory": 1024, "buildCommand": "make"},
                "environmentVariables": [{"name": "STAGE", "value": "prod"}],
            },
        },
    }


class TestParseContext:
    """Tests for parse_context."""

    def test_camel_case_keys(self) -> None:
        """Keys are read from their camelCase form."""
        context = parse_context(_context_data())

        assert context.platform.providers.aws is not None
        assert context.platform.providers.aws.access_key_id == "AKIAEXAMPLE"
        assert context.stack.build_command == "make"
        assert context.deployment.config.environment_variables[0].name == "STAGE"

    def test_numeric_strings_coerced(self) -> None:
        """String numbers in the stack config become integers."""
        context = parse_context(_context_data())

        assert context.stack.timeout == 60
        assert context.stack.memory == 1024

    def test_defaults(self) -> None:
        """Only platform and service are required."""
        context = parse_context(
            {"platform": {"name": "exobase"}, "service": {"name": "svc"}}
        )

        assert context.stack.timeout == 30
        assert context.stack.memory == 512
        assert context.stack.runtime == DEFAULT_RUNTIME
        assert context.stack.build_command is None
        assert context.service.domain is None
        assert context.deployment.config.environment_variables == []

    def test_unknown_keys_kept(self) -> None:
        """Extra keys from the platform do not fail validation."""
        data = _context_data()
        data["service"]["tags"] = ["a"]

        context = parse_context(data)

        assert isinstance(context, DeploymentContext)

    def test_missing_service(self) -> None:
        """Should raise ContextError when a required section is missing."""
        with pytest.raises(ContextError) as exc_info:
            parse_context({"platform": {"name": "exobase"}})

        assert exc_info.value.code == "invalid_context"

    def test_memory_too_small(self) -> None:
        """Stack memory below the minimum is rejected."""
        data = _context_data()
        data["deployment"]["config"]["stack"]["memory"] = 64

        with pytest.raises(ContextError):
            parse_context(data)


class TestLoadContext:
    """Tests for load_context."""

    def test_load_json(self, tmp_path: Path) -> None:
        """Should load a JSON context file."""
        path = tmp_path / "context.json"
        path.write_text(json.dumps(_context_data()))

        context = load_context(path)

        assert context.service.name == "myService"

    def test_load_yaml(self, tmp_path: Path) -> None:
        """Should load a YAML context file."""
        path = tmp_path / "context.yaml"
        path.write_text(yaml.safe_dump(_context_data()))

        context = load_context(path)

        assert context.service.domain is not None
        assert context.service.domain.fqd == "api.example.com"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Should raise context_not_found for a missing file."""
        with pytest.raises(ContextError) as exc_info:
            load_context(tmp_path / "nope.json")

        assert exc_info.value.code == "context_not_found"

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Should raise invalid_format for unparseable JSON."""
        path = tmp_path / "context.json"
        path.write_text("{oops")

        with pytest.raises(ContextError) as exc_info:
            load_context(path)

        assert exc_info.value.code == "invalid_format"

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        """Should raise invalid_format when the document is not a mapping."""
        path = tmp_path / "context.yml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ContextError) as exc_info:
            load_context(path)

        assert exc_info.value.code == "invalid_format"
