import types
import unittest
from datetime import timedelta

from hamdash.date_utils import format_iso, utc_now
from hamdash.models import BenchmarkState, ContextHealthEntry, Session, Task
from hamdash.routers import benchmark as benchmark_router
from hamdash.routers import carbon as carbon_router
from hamdash.snapshot import SessionSnapshot

NOW = utc_now()


def _at(hours_ago: float) -> str:
    return format_iso(NOW - timedelta(hours=hours_ago))


class _FakeStore:
    def __init__(self, snapshot: SessionSnapshot) -> None:
        self.snapshot = snapshot

    async def get_snapshot(self) -> SessionSnapshot:
        return self.snapshot


SNAPSHOT = SessionSnapshot(
    projectPath="/work/demo-app",
    sessions=(
        Session(
            sessionId="s1",
            startTime=_at(3),
            endTime=_at(1),
            durationMs=2 * 3_600_000,
            inputTokens=1500,
            outputTokens=500,
            cacheReadTokens=300,
            messageCount=3,
            contextFileReads=["/work/demo-app/src/CLAUDE.md"],
            model="claude-sonnet-4-6",
        ),
    ),
    health=(
        ContextHealthEntry(path="src", hasContextFile=True, status="green", fileSize=4000),
        ContextHealthEntry(path="docs", hasContextFile=True, status="green", fileSize=40),
    ),
    tasks=(
        Task(
            id="t1",
            timestamp=_at(2.5),
            endTimestamp=_at(2),
            durationMs=1_800_000,
            durationSec=1800.0,
            hamActive=True,
            model="claude-sonnet-4-6",
        ),
    ),
    benchmarkState=BenchmarkState(mode="active", tasks_completed=4),
    parsedAt=_at(0),
)


def _request() -> types.SimpleNamespace:
    store = _FakeStore(SNAPSHOT)
    return types.SimpleNamespace(app=types.SimpleNamespace(state=types.SimpleNamespace(session_store=store)))


class CarbonRouterTests(unittest.IsolatedAsyncioTestCase):
    async def test_totals(self) -> None:
        payload = await carbon_router.get_carbon(_request(), days=7)
        self.assertEqual(payload["totalSessions"], 1)
        self.assertEqual(payload["totalRequests"], 3)
        self.assertEqual(payload["naiveBaselineTokens"], 1010)

    async def test_daily(self) -> None:
        rows = await carbon_router.get_carbon_daily(_request(), days=7)
        self.assertEqual(len(rows), 7)
        self.assertEqual(sum(row["sessions"] for row in rows), 1)

    async def test_sessions_and_files(self) -> None:
        sessions = await carbon_router.get_carbon_sessions(_request(), days=7)
        self.assertEqual(sessions[0]["filesLoaded"][0]["tokens"], 1000)

        files = await carbon_router.get_carbon_files(_request(), days=7)
        by_path = {row["path"]: row for row in files}
        self.assertEqual(by_path["src"]["loads7d"], 1)
        self.assertEqual(by_path["docs"]["status"], "stale")


class BenchmarkRouterTests(unittest.IsolatedAsyncioTestCase):
    async def test_state(self) -> None:
        state = await benchmark_router.get_state(_request())
        self.assertEqual(state["mode"], "active")
        self.assertEqual(state["tasks_completed"], 4)

    async def test_summary_and_comparison(self) -> None:
        summary = await benchmark_router.get_summary(_request(), days=7)
        self.assertEqual(summary["totalTasks"], 1)
        # a quarter of the session's 2000 tokens
        self.assertEqual(summary["avgTokens"], 500)

        comparison = await benchmark_router.get_comparison(_request(), days=7)
        self.assertTrue(comparison["hasData"])
        self.assertIsNone(comparison["baseline"])
        self.assertIsNone(comparison["comparison"])
        self.assertEqual(comparison["byModel"]["claude-sonnet-4-6"]["total"], 1)

    async def test_recent_tasks(self) -> None:
        rows = await benchmark_router.get_tasks(_request(), days=7, limit=5)
        self.assertEqual(rows[0]["id"], "t1")
        self.assertEqual(rows[0]["cacheRate"], 20.0)


if __name__ == "__main__":
    unittest.main()
