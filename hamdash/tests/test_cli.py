import contextlib
import io
import json
import os
import unittest
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

from hamdash import cli
from hamdash.date_utils import format_iso, utc_now
from hamdash.models import BenchmarkState, ContextHealthEntry, Session, Task
from hamdash.snapshot import SessionSnapshot


def _at(hours_ago: float) -> str:
    return format_iso(utc_now() - timedelta(hours=hours_ago))


def _task(task_id: str, *, ham: bool, hours_ago: float, seconds: float, model: str = "claude-sonnet-4-6") -> Task:
    return Task(
        id=task_id,
        timestamp=_at(hours_ago),
        endTimestamp=_at(hours_ago - seconds / 3600),
        durationMs=seconds * 1000,
        durationSec=seconds,
        hamActive=ham,
        model=model,
        estimatedTokens=4000 if not ham else 1000,
    )


SESSIONS = (
    Session(
        sessionId="s1",
        startTime=_at(1),
        durationMs=600_000,
        inputTokens=2000,
        outputTokens=300,
        messageCount=4,
        isHamOn=True,
        routingStatus="routed",
        contextFileReads=["/work/demo-app/src/CLAUDE.md"],
        model="claude-sonnet-4-6",
    ),
)
HEALTH = (ContextHealthEntry(path="src", hasContextFile=True, status="green", fileSize=2000),)


def _snapshot(**overrides) -> SessionSnapshot:
    fields = {
        "projectPath": "/work/demo-app",
        "sessions": SESSIONS,
        "health": HEALTH,
        "parsedAt": _at(0),
    }
    fields.update(overrides)
    return SessionSnapshot(**fields)


def _run(argv: list[str], snapshot: SessionSnapshot) -> tuple[int, str]:
    out = io.StringIO()
    with patch.object(cli, "build_snapshot", return_value=snapshot) as build, contextlib.redirect_stdout(out):
        code = cli.main([*argv, "--project", "/work/demo-app"])
    if argv[0] != "serve":
        build.assert_called_once()
    return code, out.getvalue()


class CliTests(unittest.TestCase):
    def test_stats_text_and_json(self) -> None:
        code, text = _run(["stats", "--days", "7"], _snapshot())
        self.assertEqual(code, 0)
        self.assertIn("HAM Stats | demo-app (last 7 days)", text)
        self.assertIn("(1 with HAM, 100%)", text)

        code, raw = _run(["stats", "--json"], _snapshot())
        payload = json.loads(raw)
        self.assertEqual(payload["totalSessions"], 1)
        self.assertEqual(payload["projectName"], "demo-app")

    def test_relative_project_is_made_absolute(self) -> None:
        out = io.StringIO()
        with patch.object(cli, "build_snapshot", return_value=_snapshot()) as build, contextlib.redirect_stdout(out):
            cli.main(["stats", "--project", "."])
        project = build.call_args.args[0]
        self.assertTrue(project.is_absolute())
        self.assertEqual(project, Path(os.getcwd()))

    def test_days_must_be_positive(self) -> None:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            self.assertEqual(cli.main(["stats", "--days", "0"]), 2)
        self.assertIn("--days must be at least 1", out.getvalue())

    def test_insights_narrative_and_structured(self) -> None:
        _, text = _run(["insights"], _snapshot())
        self.assertTrue(text.startswith("One session in the last 30 days"))

        _, raw = _run(["insights", "--json"], _snapshot())
        self.assertEqual(json.loads(raw)["items"][0]["title"], "Strong HAM adoption")

    def test_carbon_summary_and_last_session(self) -> None:
        _, text = _run(["carbon"], _snapshot())
        self.assertIn("HAM Efficiency", text)
        self.assertIn("Last session:", text)

        _, text = _run(["carbon", "--last"], _snapshot())
        self.assertIn("4 prompts", text)
        self.assertIn("Files loaded this session:", text)
        self.assertIn("500 tokens  (1x)", text)

        _, text = _run(["carbon", "--last"], _snapshot(sessions=()))
        self.assertEqual(text.strip(), "No sessions found.")

    def test_benchmark_without_data(self) -> None:
        _, text = _run(["benchmark"], _snapshot())
        self.assertIn("No benchmark data found.", text)

    def test_benchmark_baseline_progress(self) -> None:
        snapshot = _snapshot(
            benchmarkState=BenchmarkState(mode="baseline", tasks_completed=5, tasks_target=10),
            tasks=(_task("b1", ham=False, hours_ago=5, seconds=120),),
        )
        _, text = _run(["benchmark"], snapshot)
        self.assertIn("5/10 tasks (50%)", text)
        self.assertIn("Baseline so far: 2m 0s avg time, 4.0K avg tokens", text)

    def test_benchmark_comparison_table_and_model_filter(self) -> None:
        snapshot = _snapshot(
            benchmarkState=BenchmarkState(mode="active", tasks_completed=10),
            tasks=(
                _task("b1", ham=False, hours_ago=5, seconds=120),
                _task("a1", ham=True, hours_ago=4, seconds=60),
                _task("o1", ham=True, hours_ago=3, seconds=30, model="claude-opus-4-6"),
            ),
        )
        _, text = _run(["benchmark"], snapshot)
        self.assertIn("HAM Benchmark Comparison", text)
        self.assertIn("│ Avg Tokens       │ 4.0K", text)
        self.assertIn("Estimated token savings: 6.0K across 2 active tasks", text)
        self.assertIn("Per-Model Breakdown:", text)
        self.assertIn("opus-4: 1 tasks (no baseline, 1 active)", text)

        _, text = _run(["benchmark", "--model", "opus"], snapshot)
        self.assertIn("Filtered to model: claude-opus-4-6", text)
        self.assertIn("Insufficient data for this model", text)

        _, text = _run(["benchmark", "--model", "gpt"], snapshot)
        self.assertIn('No tasks found for model matching "gpt"', text)

    def test_serve_builds_app_and_runs_uvicorn(self) -> None:
        with patch("hamdash.main.create_app", return_value="app") as create_app, patch("uvicorn.run") as run:
            code, text = _run(["serve", "--port", "9999", "--static-dir", "dist"], _snapshot())
        self.assertEqual(code, 0)
        create_app.assert_called_once()
        self.assertEqual(create_app.call_args.kwargs["static_dir"], "dist")
        run.assert_called_once()
        self.assertEqual(run.call_args.kwargs["port"], 9999)
        self.assertIn("Dashboard running at http://", text)


if __name__ == "__main__":
    unittest.main()
