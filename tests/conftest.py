"""Shared pytest fixtures for the buildwatch test suite.

Provides reusable fixtures for:
- Temporary project directories with a ``project.clj``
- Configs that point the build commands at the fake cljsbuild script
- Sample compiler output
- Mock subprocess helpers
"""

from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from buildwatch.config import CommandConfig, Config

FAKE_TOOL = Path(__file__).parent / "fixtures" / "fake_cljsbuild.py"


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary Leiningen project directory (auto-cleanup)."""
    project_dir = tmp_path / "my-app"
    project_dir.mkdir()
    (project_dir / "project.clj").write_text(
        '(defproject my-app "0.1.0-SNAPSHOT")\n', encoding="utf-8"
    )
    yield project_dir


@pytest.fixture
def project_file(tmp_project_dir: Path) -> Path:
    """Path to the ``project.clj`` inside the temporary project."""
    return tmp_project_dir / "project.clj"


# ---------------------------------------------------------------------------
# Configs wired to the fake build tool
# ---------------------------------------------------------------------------

@pytest.fixture
def make_config() -> Callable[..., Config]:
    """Factory for configs whose commands run ``fake_cljsbuild.py``.

    Usage:
        def test_x(make_config):
            config = make_config("fail")
    """
    def factory(scenario: str = "success", stop_timeout: float = 5.0) -> Config:
        def command(mode: str) -> list[str]:
            return [sys.executable, str(FAKE_TOOL), "--scenario", scenario, mode]

        return Config(
            commands=CommandConfig(
                auto=command("auto"),
                once=command("once"),
                clean=command("clean"),
            ),
            stop_timeout=stop_timeout,
            use_shell=False,
        )

    return factory


# ---------------------------------------------------------------------------
# Sample compiler output
# ---------------------------------------------------------------------------

@pytest.fixture
def failed_build_output() -> str:
    """Console output of a failed ``lein cljsbuild once`` run."""
    return textwrap.dedent("""\
        Compiling ClojureScript...
        Compiling "resources/public/js/app.js" failed.
        clojure.lang.ExceptionInfo: failed compiling file:src/app/core.cljs {:file #<File src/app/core.cljs>}
        \tat clojure.core$ex_info.invoke(core.clj:4403)
        Caused by: clojure.lang.ExceptionInfo: Unmatched delimiter ) at line 5 src/app/core.cljs {:tag :cljs/analysis-error}
        \tat clojure.core$ex_info.invoke(core.clj:4403)
        \tat cljs.analyzer$error.invoke(analyzer.cljc:588)
        Subprocess failed
    """)


@pytest.fixture
def successful_build_output() -> str:
    """Console output of a successful build with warnings."""
    return textwrap.dedent("""\
        Compiling ClojureScript...
        Compiling "resources/public/js/app.js" from ["src"]...
        WARNING: Use of undeclared Var app.core/x at line 3 src/app/core.cljs
        WARNING: Use of undeclared Var app.core/y at line 4 src/app/core.cljs
        Successfully compiled "resources/public/js/app.js" in 3.457 seconds.
    """)


# ---------------------------------------------------------------------------
# Mock Subprocess (generic)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
