from __future__ import annotations

import json
import os
import sqlite3
import textwrap
from pathlib import Path

import pytest

pytest_plugins = ["pytester"]


def _plugin_args(request: pytest.FixtureRequest) -> list[str]:
    # Installed distributions load the plugin through the pytest11 entry point.
    if request.config.pluginmanager.has_plugin("areport"):
        return []
    return ["-p", "areport.pytest_plugin"]


def test_plugin_reports_run_and_writes_last_run(pytester: pytest.Pytester, request: pytest.FixtureRequest) -> None:
    pytester.makefile(".yaml", areport="outputDir: results\nshowStackTrace: false\n")
    pytester.makepyfile(
        test_sample=textwrap.dedent(
            """
            import pytest


            def test_passes():
                assert True


            @pytest.mark.owner("payments")
            def test_fails():
                assert 1 == 2


            @pytest.mark.skip(reason="not today")
            def test_skipped():
                pass
            """
        )
    )

    result = pytester.runpytest(*_plugin_args(request), "--areport", "-s")

    result.assert_outcomes(passed=1, failed=1, skipped=1)
    assert result.ret == 1
    last_run = json.loads((pytester.path / "results" / ".last-run.json").read_text(encoding="utf-8"))
    assert last_run == {"status": "failed", "failedTests": ["test_sample.py::test_fails"]}
    summary = json.loads((pytester.path / "results" / "summary.json").read_text(encoding="utf-8"))
    owners = {test["testTitle"]: test["owningTeam"] for test in summary["tests"]}
    assert owners["test_fails"] == "payments"


def test_plugin_is_inert_without_flag(pytester: pytest.Pytester, request: pytest.FixtureRequest) -> None:
    pytester.makepyfile(test_sample="def test_passes():\n    assert True\n")

    result = pytester.runpytest(*_plugin_args(request))

    assert result.ret == 0
    assert not (pytester.path / "test-results").exists()


def test_parallel_run_is_reported_once_by_the_controller(
    pytester: pytest.Pytester,
    request: pytest.FixtureRequest,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    pytest.importorskip("xdist")
    src = Path(__file__).resolve().parents[1] / "src"
    monkeypatch.setenv("PYTHONPATH", os.pathsep.join(filter(None, [str(src), os.environ.get("PYTHONPATH")])))
    pytester.makefile(
        ".yaml",
        areport=textwrap.dedent(
            """
            outputDir: results
            publishToDb: true
            providers:
              database:
                kind: sqlite
                path: results/runs.sqlite
            """
        ),
    )
    pytester.makepyfile(
        test_parallel=textwrap.dedent(
            """
            import pytest


            @pytest.mark.owner("checkout")
            def test_one():
                pass


            def test_two():
                pass


            def test_three():
                pass


            def test_four():
                pass
            """
        )
    )

    result = pytester.runpytest_subprocess(*_plugin_args(request), "--areport", "-n", "2")

    result.assert_outcomes(passed=4)
    with sqlite3.connect(pytester.path / "results" / "runs.sqlite") as conn:
        runs = conn.execute("SELECT total_tests FROM test_runs").fetchall()
        results = conn.execute("SELECT COUNT(*) FROM test_results").fetchone()
    assert runs == [(4,)]
    assert results == (4,)
    summary = json.loads((pytester.path / "results" / "summary.json").read_text(encoding="utf-8"))
    owners = {test["testTitle"]: test["owningTeam"] for test in summary["tests"]}
    assert len(owners) == 4
    assert owners["test_one"] == "checkout"
    assert owners["test_two"] == "Unknown"
