import types
import unittest
from datetime import timedelta
from unittest.mock import patch

from fastapi import HTTPException

from hamdash.date_utils import format_iso, utc_now
from hamdash.models import ContextHealthEntry, Session
from hamdash.routers import analytics as analytics_router
from hamdash.snapshot import SessionSnapshot


def _ago(hours: float) -> str:
    return format_iso(utc_now() - timedelta(hours=hours))


class _FakeStore:
    def __init__(self, snapshot: SessionSnapshot) -> None:
        self.snapshot = snapshot
        self.loads = 0

    async def get_snapshot(self) -> SessionSnapshot:
        self.loads += 1
        return self.snapshot


def _request(store) -> types.SimpleNamespace:
    return types.SimpleNamespace(app=types.SimpleNamespace(state=types.SimpleNamespace(session_store=store)))


SNAPSHOT = SessionSnapshot(
    projectPath="/work/demo-app",
    sessions=(
        Session(
            sessionId="s1",
            startTime=_ago(2),
            inputTokens=4000,
            outputTokens=400,
            fileReads=["/work/demo-app/src/CLAUDE.md", "/work/demo-app/src/a.py"],
            contextFileReads=["/work/demo-app/src/CLAUDE.md"],
            isHamOn=True,
            routingStatus="routed",
            primaryDirectory="src",
            model="claude-sonnet-4-6",
        ),
        Session(sessionId="s2", startTime=_ago(30), inputTokens=9000, fileReads=["/work/demo-app/lib/b.py"], primaryDirectory="lib"),
        Session(sessionId="old", startTime=_ago(24 * 90), inputTokens=1),
    ),
    health=(
        ContextHealthEntry(path="src", hasContextFile=True, status="green", fileSize=400),
        ContextHealthEntry(path="lib", status="red"),
    ),
    parsedAt=_ago(0),
)


class AnalyticsRouterTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = _FakeStore(SNAPSHOT)
        self.request = _request(self.store)

    async def test_stats_include_project_name_and_ham_version(self) -> None:
        with patch.object(analytics_router, "read_ham_version", return_value="1.2.3"):
            stats = await analytics_router.get_stats(self.request, days=30)
        self.assertEqual(stats["totalSessions"], 2)
        self.assertEqual(stats["hamOnCount"], 1)
        self.assertEqual(stats["coveragePercent"], 50)
        self.assertEqual(stats["projectName"], "demo-app")
        self.assertEqual(stats["hamVersion"], "1.2.3")

    async def test_daily_has_one_row_per_day(self) -> None:
        rows = await analytics_router.get_daily(self.request, days=7)
        self.assertEqual(len(rows), 7)
        self.assertEqual(sum(row["sessions"] for row in rows), 2)

    async def test_directories_and_sessions(self) -> None:
        directories = await analytics_router.get_directories(self.request, days=30)
        self.assertEqual({row["directory"] for row in directories}, {"src", "lib"})

        sessions = await analytics_router.get_sessions(self.request, days=365, limit=1)
        self.assertEqual([row["sessionId"] for row in sessions], ["s1"])
        self.assertEqual(sessions[0]["fileReads"], 2)

    async def test_health_is_serialized_entries(self) -> None:
        rows = await analytics_router.get_context_health(self.request)
        self.assertEqual([row["path"] for row in rows], ["src", "lib"])
        self.assertEqual(rows[1]["status"], "red")

    async def test_insights_variants(self) -> None:
        narrative = await analytics_router.get_insights(self.request, days=30)
        self.assertTrue(narrative["summary"].startswith("2 sessions over 30 days"))

        structured = await analytics_router.get_structured_insights(self.request, days=30)
        categories = [item["category"] for item in structured["items"]]
        self.assertEqual(categories[:3], ["ham_adoption", "context_routing", "coverage_gap"])

    async def test_aggregator_failure_becomes_http_500(self) -> None:
        with patch.object(analytics_router, "calculate_daily", side_effect=ValueError("bad data")):
            with self.assertRaises(HTTPException) as ctx:
                await analytics_router.get_daily(self.request, days=7)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.detail, "bad data")

    async def test_missing_store_is_503(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await analytics_router.get_daily(_request(None), days=7)
        self.assertEqual(ctx.exception.status_code, 503)


if __name__ == "__main__":
    unittest.main()
