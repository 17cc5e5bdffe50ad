"""Tests for functions/discovery.py and functions/models.py."""

from pathlib import Path

import pytest

from funcpack.functions.discovery import (
    DiscoveryError,
    discover,
    is_excluded,
    normalize_extension,
)
from funcpack.functions.models import (
    ModuleFunction,
    archive_path,
    compiled_output_path,
    dash_case,
)


def _pairs(inventory: list[ModuleFunction]) -> set[tuple[str, str]]:
    return {(f.module, f.function) for f in inventory}


class TestDiscover:
    """Tests for discover function."""

    def test_discovers_module_functions(self, source_tree: Path) -> None:
        """Should find every <module>/<function>.ts file."""
        inventory = discover(source_tree, "ts")

        assert _pairs(inventory) == {("api", "ping"), ("api", "broken")}
        ping = next(f for f in inventory if f.function == "ping")
        assert ping.source_path == (source_tree / "api" / "ping.ts").resolve()

    def test_multiple_modules(self, tmp_path: Path) -> None:
        """Should treat each subdirectory as a module."""
        for module, function in [("users", "get"), ("users", "create"), ("ops", "health")]:
            (tmp_path / module).mkdir(exist_ok=True)
            (tmp_path / module / f"{function}.ts").write_text("")

        inventory = discover(tmp_path, "ts")

        assert _pairs(inventory) == {
            ("users", "get"),
            ("users", "create"),
            ("ops", "health"),
        }

    def test_deterministic(self, source_tree: Path) -> None:
        """Repeated discovery over the same tree yields the same inventory."""
        first = discover(source_tree, "ts")
        second = discover(source_tree, "ts")

        assert _pairs(first) == _pairs(second)
        assert first == second

    def test_excludes_reserved_directories(self, source_tree: Path) -> None:
        """Build output, dependencies and hidden dirs are not modules."""
        for name in ("build", "node_modules", ".git", "__tests__"):
            (source_tree / name).mkdir()
            (source_tree / name / "index.ts").write_text("")

        inventory = discover(source_tree, "ts")

        assert {f.module for f in inventory} == {"api"}

    def test_custom_exclusions(self, source_tree: Path) -> None:
        """Exclusion prefixes should be configurable."""
        (source_tree / "dist").mkdir()
        (source_tree / "dist" / "x.ts").write_text("")

        inventory = discover(source_tree, "ts", excluded_prefixes=["dist"])

        assert {f.module for f in inventory} == {"api"}

    def test_ignores_other_extensions_and_files(self, source_tree: Path) -> None:
        """Only *.ts files inside module directories count."""
        (source_tree / "api" / "README.md").write_text("")
        (source_tree / "api" / "helper.js").write_text("")
        (source_tree / "api" / "types.d.ts").write_text("")
        (source_tree / "api" / "nested").mkdir()
        (source_tree / "api" / "nested" / "deep.ts").write_text("")
        (source_tree / "root.ts").write_text("")

        inventory = discover(source_tree, "ts")

        assert _pairs(inventory) == {("api", "ping"), ("api", "broken")}

    def test_empty_module_is_not_an_error(self, source_tree: Path) -> None:
        """A module without matching files contributes nothing."""
        (source_tree / "empty").mkdir()

        inventory = discover(source_tree, "ts")

        assert "empty" not in {f.module for f in inventory}

    def test_empty_root(self, tmp_path: Path) -> None:
        """An empty source root yields an empty inventory."""
        assert discover(tmp_path, "ts") == []

    def test_extension_with_dot(self, source_tree: Path) -> None:
        """A leading dot on the extension is accepted."""
        assert _pairs(discover(source_tree, ".ts")) == _pairs(
            discover(source_tree, "ts")
        )

    def test_missing_root(self, tmp_path: Path) -> None:
        """Should raise DiscoveryError for a missing root."""
        with pytest.raises(DiscoveryError) as exc_info:
            discover(tmp_path / "nope", "ts")
        assert exc_info.value.code == "source_not_found"

    def test_root_is_file(self, tmp_path: Path) -> None:
        """Should raise DiscoveryError when the root is a file."""
        file_path = tmp_path / "file.ts"
        file_path.write_text("")

        with pytest.raises(DiscoveryError) as exc_info:
            discover(file_path, "ts")
        assert exc_info.value.code == "source_not_directory"


class TestHelpers:
    """Tests for discovery helpers."""

    def test_normalize_extension(self) -> None:
        """Should strip dots and whitespace."""
        assert normalize_extension(".ts") == "ts"
        assert normalize_extension("js") == "js"

    def test_normalize_extension_empty(self) -> None:
        """Should reject an empty extension."""
        with pytest.raises(ValueError):
            normalize_extension(".")

    def test_is_excluded(self) -> None:
        """Should match on prefixes."""
        assert is_excluded("build", ["build"])
        assert is_excluded("build-cache", ["build"])
        assert is_excluded(".hidden", ["."])
        assert not is_excluded("api", ["build", "."])


class TestModuleFunction:
    """Tests for ModuleFunction and the output layout."""

    def test_key_and_names(self, tmp_path: Path) -> None:
        """Should expose key and resource name."""
        func = ModuleFunction(
            module="userAdmin", function="get_user", source_path=tmp_path / "x.ts"
        )
        assert func.key == "userAdmin/get_user"
        assert func.resource_name == "user-admin-get-user"
        assert str(func) == "userAdmin/get_user"

    def test_hashable(self, tmp_path: Path) -> None:
        """Functions can be used in sets."""
        a = ModuleFunction(module="api", function="ping", source_path=tmp_path)
        b = ModuleFunction(module="api", function="ping", source_path=tmp_path)
        assert len({a, b}) == 1

    def test_output_layout(self, tmp_path: Path) -> None:
        """Outputs live under build/modules/<module>/."""
        func = ModuleFunction(module="api", function="ping", source_path=tmp_path)
        assert compiled_output_path(tmp_path, func) == (
            tmp_path / "build" / "modules" / "api" / "ping.js"
        )
        assert archive_path(tmp_path, func) == (
            tmp_path / "build" / "modules" / "api" / "ping.zip"
        )

    def test_dash_case(self) -> None:
        """Should convert common naming styles."""
        assert dash_case("My Service") == "my-service"
        assert dash_case("myService_v2") == "my-service-v2"
        assert dash_case("--edge--") == "edge"
