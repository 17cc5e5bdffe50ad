"""Shared fixtures.

Build tests run real subprocesses: small Python scripts stand in for the
bundler and the minifier so no Node toolchain is required.
"""

import shlex
import sys
from pathlib import Path

import pytest

from funcpack.config import Settings

FAKE_BUNDLER = '''\
import pathlib
import sys

entry, outfile = pathlib.Path(sys.argv[1]), pathlib.Path(sys.argv[2])
source = entry.read_text()
if "syntax error" in source:
    sys.stderr.write(f"ERROR: {entry.name}:1:7: Unexpected token\\n")
    sys.exit(1)
outfile.write_text(f"// bundled from {entry.name}\\n{source}")
'''

FAKE_MINIFIER = '''\
import pathlib
import sys

path = pathlib.Path(sys.argv[1])
lines = [line.strip() for line in path.read_text().splitlines()]
path.write_text(";".join(l for l in lines if l and not l.startswith("//")))
'''

SLOW_BUNDLER = '''\
import pathlib
import sys
import time

entry, outfile, log = (pathlib.Path(arg) for arg in sys.argv[1:4])
with log.open("a") as f:
    f.write(f"{entry.name}\\n")
outfile.write_text("// partial output")
time.sleep(60)
'''

PING_SOURCE = "export default async function ping() {\n  return 'pong'\n}\n"
BROKEN_SOURCE = "export default syntax error (\n"


def python_command(script: Path, *args: str) -> str:
    """Return a command template running a script with this interpreter."""
    parts = [shlex.quote(sys.executable), shlex.quote(str(script)), *args]
    return " ".join(parts)


@pytest.fixture
def fake_tools(tmp_path: Path) -> dict[str, str]:
    """Write the fake bundler and minifier and return their templates."""
    tools_dir = tmp_path / "tools"
    tools_dir.mkdir()
    bundler = tools_dir / "bundle.py"
    bundler.write_text(FAKE_BUNDLER)
    minifier = tools_dir / "minify.py"
    minifier.write_text(FAKE_MINIFIER)
    return {
        "compile": python_command(bundler, "{entry}", "{outfile}"),
        "minify": python_command(minifier, "{outfile}"),
    }


@pytest.fixture
def tool_settings(fake_tools: dict[str, str], tmp_path: Path) -> Settings:
    """Settings wired to the fake tools and a private cache store."""
    return Settings(
        compile_command=fake_tools["compile"],
        minify_command=fake_tools["minify"],
        cache_path=tmp_path / "cache" / "store.json",
        cache_lock_timeout=5,
        max_concurrent_builds=2,
        build_timeout=60,
    )


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """Create source/api/{ping.ts, broken.ts}."""
    root = tmp_path / "source"
    api = root / "api"
    api.mkdir(parents=True)
    (api / "ping.ts").write_text(PING_SOURCE)
    (api / "broken.ts").write_text(BROKEN_SOURCE)
    return root


@pytest.fixture
def three_functions(tmp_path: Path) -> Path:
    """Source tree with jobs/alpha, jobs/beta (invalid) and jobs/gamma."""
    root = tmp_path / "three"
    jobs = root / "jobs"
    jobs.mkdir(parents=True)
    (jobs / "alpha.ts").write_text(PING_SOURCE)
    (jobs / "beta.ts").write_text(BROKEN_SOURCE)
    (jobs / "gamma.ts").write_text(PING_SOURCE)
    return root


@pytest.fixture
def slow_bundler(tmp_path: Path) -> tuple[str, Path]:
    """A bundler that writes a partial output and then hangs.

    Returns:
        Tuple of (compile command template, invocation log path).
    """
    tools_dir = tmp_path / "slow"
    tools_dir.mkdir()
    script = tools_dir / "bundle.py"
    script.write_text(SLOW_BUNDLER)
    log = tools_dir / "invocations.log"
    return python_command(script, "{entry}", "{outfile}", shlex.quote(str(log))), log
