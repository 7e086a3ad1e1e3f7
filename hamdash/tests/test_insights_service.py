import unittest
from datetime import datetime, timezone

from hamdash.models import ContextHealthEntry
from hamdash.services.insights import generate_insights, generate_structured_insights

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _stats(**overrides) -> dict:
    stats = {
        "totalSessions": 10,
        "hamOnCount": 9,
        "coveragePercent": 90,
        "routedCount": 6,
        "likelyRoutedCount": 2,
        "routedPercent": 80,
        "totalTokensSaved": 120_000,
        "totalCostSaved": 0.36,
        "totalInputTokens": 50_000,
        "totalCost": 1.25,
        "totalCacheRead": 0,
    }
    stats.update(overrides)
    return stats


def _daily(active: int, days: int = 7) -> list[dict]:
    return [{"date": f"2026-03-{i + 1:02d}", "sessions": 1 if i >= days - active else 0} for i in range(days)]


def _health(*statuses: str) -> list[ContextHealthEntry]:
    return [
        ContextHealthEntry(path=f"dir{i}", status=status, hasContextFile=status != "red")
        for i, status in enumerate(statuses)
    ]


class NarrativeInsightTests(unittest.TestCase):
    def test_no_sessions(self) -> None:
        result = generate_insights(_stats(totalSessions=0), [], [], 14)
        self.assertEqual(result["summary"], "No Claude Code sessions found for this project in the last 14 days.")

    def test_headline_and_strong_adoption(self) -> None:
        result = generate_insights(_stats(), _health("green", "green"), _daily(6), 30)
        self.assertEqual(result["summary"], "10 sessions over 30 days, averaging 5.0K tokens each. Total spend: $1.25.")
        joined = "\n".join(result["insights"])
        self.assertIn("90% of sessions are using HAM", joined)
        self.assertIn("80% of sessions follow Context Routing", joined)
        self.assertIn("Active 6 of the last 7 days", joined)
        self.assertIn("All 2 source directories have up-to-date CLAUDE.md files", joined)

    def test_single_session_headline(self) -> None:
        result = generate_insights(_stats(totalSessions=1, totalInputTokens=1500, totalCost=0.5), [], [], 3)
        self.assertTrue(result["summary"].startswith("One session in the last 3 days"))

    def test_missing_ham_and_routing_produce_calls_to_action(self) -> None:
        stats = _stats(hamOnCount=0, coveragePercent=0, routedCount=0, likelyRoutedCount=0, routedPercent=0)
        joined = "\n".join(generate_insights(stats, [], _daily(0), 30)["insights"])
        self.assertIn("No sessions are using HAM yet", joined)
        self.assertIn("No sessions are using Context Routing yet", joined)
        self.assertIn("No activity in the last 7 days.", joined)

    def test_red_directories_are_listed_with_overflow(self) -> None:
        joined = "\n".join(generate_insights(_stats(), _health(*["red"] * 4), [], 3)["insights"])
        self.assertIn("4 directories are missing CLAUDE.md files: dir0, dir1, dir2 and 1 more.", joined)

    def test_cache_rate_reported_when_high(self) -> None:
        joined = "\n".join(generate_insights(_stats(totalCacheRead=450_000), [], [], 3)["insights"])
        self.assertIn("Cache hit rate is 90%", joined)


class StructuredInsightTests(unittest.TestCase):
    def test_empty_project_has_no_adoption_items(self) -> None:
        result = generate_structured_insights(_stats(totalSessions=0), [], [], 3, now=NOW)
        self.assertEqual(result["items"], [])
        self.assertEqual(result["generatedAt"], "2026-03-10T12:00:00Z")
        self.assertEqual(result["totalSessions"], 0)

    def test_adoption_ladder(self) -> None:
        titles = [
            generate_structured_insights(_stats(**overrides), [], [], 3, now=NOW)["items"][0]["title"]
            for overrides in (
                {"hamOnCount": 0, "coveragePercent": 0},
                {"hamOnCount": 3, "coveragePercent": 30},
                {"hamOnCount": 6, "coveragePercent": 60},
                {},
            )
        ]
        self.assertEqual(
            titles,
            ["No sessions using HAM", "Low HAM adoption", "Moderate HAM adoption", "Strong HAM adoption"],
        )

    def test_routing_item_follows_adoption(self) -> None:
        items = generate_structured_insights(_stats(routedPercent=40), [], [], 3, now=NOW)["items"]
        self.assertEqual(items[1]["category"], "context_routing")
        self.assertEqual(items[1]["title"], "Partial Context Routing")

    def test_coverage_gap_severity_scales_with_count(self) -> None:
        def gap(count: int) -> dict:
            items = generate_structured_insights(_stats(), _health(*["red"] * count), [], 3, now=NOW)["items"]
            return next(item for item in items if item["category"] == "coverage_gap")

        self.assertEqual(gap(2)["severity"], "low")
        self.assertEqual(gap(3)["severity"], "medium")
        self.assertEqual(gap(6)["severity"], "high")
        self.assertEqual(gap(6)["data"]["count"], 6)
        self.assertIn("and 1 more", gap(6)["detail"])

    def test_stale_and_activity_items(self) -> None:
        items = generate_structured_insights(_stats(), _health("amber", "green"), _daily(5), 7, now=NOW)["items"]
        by_category = {item["category"]: item for item in items}
        self.assertEqual(by_category["stale_context"]["title"], "1 context file may be stale")
        self.assertEqual(by_category["activity"]["title"], "Consistent daily usage")

    def test_activity_skipped_for_short_windows(self) -> None:
        items = generate_structured_insights(_stats(), [], _daily(0, days=3), 3, now=NOW)["items"]
        self.assertNotIn("activity", {item["category"] for item in items})


if __name__ == "__main__":
    unittest.main()
