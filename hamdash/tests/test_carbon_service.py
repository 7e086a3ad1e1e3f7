import unittest
from datetime import datetime, timezone

from hamdash.models import ContextHealthEntry, Session
from hamdash.services.carbon import (
    calculate_carbon,
    calculate_carbon_daily,
    calculate_carbon_files,
    calculate_carbon_sessions,
    classify_context_file,
    get_model_carbon,
    naive_baseline_tokens,
    session_energy,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
PROJECT = "/p"


def _entry(path: str, size: int, has_file: bool = True) -> ContextHealthEntry:
    return ContextHealthEntry(path=path, hasContextFile=has_file, status="green" if has_file else "red", fileSize=size)


HEALTH = [_entry(".", 4000), _entry("src", 800), _entry("old", 400), _entry("lib", 0, has_file=False)]


class EnergyModelTests(unittest.TestCase):
    def test_energy_is_deterministic_and_positive(self) -> None:
        first = session_energy(10_000, 500, "claude-sonnet-4-6")
        second = session_energy(10_000, 500, "claude-sonnet-4-6")
        self.assertEqual(first, second)
        self.assertGreater(first.energy_wh, 0)
        self.assertAlmostEqual(first.co2e_grams, first.energy_wh * 0.385)

    def test_unknown_model_uses_default_parameters(self) -> None:
        self.assertEqual(get_model_carbon("mystery-model"), get_model_carbon("default"))
        self.assertEqual(get_model_carbon(None), get_model_carbon("default"))
        self.assertEqual(
            session_energy(1000, 100, "mystery-model"),
            session_energy(1000, 100, "default"),
        )

    def test_dated_model_resolves_through_canonical_name(self) -> None:
        self.assertEqual(get_model_carbon("claude-opus-4-6-20260101"), get_model_carbon("claude-opus-4-6"))

    def test_more_input_means_more_energy(self) -> None:
        small = session_energy(1000, 100, "claude-haiku-4-5-20251001")
        large = session_energy(100_000, 100, "claude-haiku-4-5-20251001")
        self.assertGreater(large.energy_wh, small.energy_wh)

    def test_naive_baseline_sums_existing_context_files(self) -> None:
        # 4000 + 800 + 400 bytes at ~4 chars per token
        self.assertEqual(naive_baseline_tokens(HEALTH), 1300)
        self.assertEqual(naive_baseline_tokens([]), 0)


class CarbonAggregationTests(unittest.TestCase):
    def test_totals_compare_against_naive_baseline(self) -> None:
        sessions = [
            Session(
                sessionId="a",
                startTime="2026-03-09T10:00:00Z",
                inputTokens=130,
                outputTokens=50,
                messageCount=2,
                model="claude-sonnet-4-6",
            )
        ]
        result = calculate_carbon(sessions, 30, HEALTH, now=NOW)
        self.assertEqual(result["totalSessions"], 1)
        self.assertEqual(result["totalRequests"], 2)
        self.assertEqual(result["naiveBaselineTokens"], 1300)
        # 130 actual vs 2600 baseline input tokens
        self.assertEqual(result["tokenEfficiency"], 95.0)
        self.assertGreater(result["totalCO2e"]["saved_grams"], 0)
        self.assertGreater(result["totalEnergy"]["baseline_wh"], result["totalEnergy"]["actual_wh"])
        self.assertEqual(result["trackingSince"], "2026-03-09T10:00:00Z")

    def test_empty_window_reports_zeroes(self) -> None:
        result = calculate_carbon([], 7, HEALTH, now=NOW)
        self.assertEqual(result["totalSessions"], 0)
        self.assertEqual(result["tokenEfficiency"], 0.0)
        self.assertEqual(result["totalCO2e"]["saved_grams"], 0.0)
        self.assertIsNone(result["trackingSince"])

    def test_daily_rows_are_zero_filled(self) -> None:
        sessions = [Session(sessionId="a", startTime="2026-03-10T08:00:00Z", inputTokens=10, messageCount=1)]
        rows = calculate_carbon_daily(sessions, 3, HEALTH, now=NOW)
        self.assertEqual([r["date"] for r in rows], ["2026-03-08", "2026-03-09", "2026-03-10"])
        self.assertEqual(rows[0]["sessions"], 0)
        self.assertEqual(rows[2]["sessions"], 1)
        self.assertEqual(rows[2]["tokens_saved"], 1290)

    def test_sessions_list_context_files_with_load_counts(self) -> None:
        sessions = [
            Session(
                sessionId="a",
                startTime="2026-03-09T10:00:00Z",
                inputTokens=500,
                contextFileReads=["/p/src/CLAUDE.md", "/p/src/CLAUDE.md", "/p/CLAUDE.md"],
            )
        ]
        rows = calculate_carbon_sessions(sessions, 30, PROJECT, HEALTH, now=NOW, context_filename="CLAUDE.md")
        self.assertEqual(len(rows), 1)
        loaded = {item["path"]: item for item in rows[0]["filesLoaded"]}
        self.assertEqual(loaded["/p/src/CLAUDE.md"]["loadCount"], 2)
        self.assertEqual(loaded["/p/src/CLAUDE.md"]["tokens"], 200)
        self.assertEqual(loaded["/p/CLAUDE.md"]["tokens"], 1000)
        self.assertEqual(rows[0]["prompts"], 1)


class ContextFileStatusTests(unittest.TestCase):
    def test_classification_thresholds(self) -> None:
        self.assertEqual(classify_context_file(5000, 0.0, 0, False), "stale")
        self.assertEqual(classify_context_file(2000, 6.0, 42, True), "split_this")
        self.assertEqual(classify_context_file(300, 11.0, 77, True), "consider_splitting")
        self.assertEqual(classify_context_file(100, 1.0, 7, True), "ok")

    def test_recently_loaded_file_is_not_stale_without_recent_loads(self) -> None:
        self.assertEqual(classify_context_file(100, 0.0, 0, True), "ok")

    def test_file_rows_count_loads_per_absolute_path(self) -> None:
        sessions = [
            Session(sessionId="recent", startTime="2026-03-09T10:00:00Z", contextFileReads=["/p/src/CLAUDE.md"]),
            Session(sessionId="recent2", startTime="2026-03-08T10:00:00Z", contextFileReads=["src/CLAUDE.md"]),
            Session(sessionId="older", startTime="2026-02-28T10:00:00Z", contextFileReads=["/p/old/CLAUDE.md"]),
        ]
        rows = calculate_carbon_files(sessions, 30, PROJECT, HEALTH, now=NOW, context_filename="CLAUDE.md")
        by_path = {row["path"]: row for row in rows}

        self.assertEqual(rows[0]["path"], "src")
        self.assertEqual(by_path["src"]["loads7d"], 2)
        self.assertEqual(by_path["src"]["loadsPerDay"], 0.3)
        self.assertEqual(by_path["src"]["status"], "ok")
        self.assertEqual(by_path["old"]["loads7d"], 0)
        self.assertEqual(by_path["old"]["status"], "ok")
        self.assertEqual(by_path["."]["status"], "stale")
        self.assertNotIn("lib", by_path)


if __name__ == "__main__":
    unittest.main()
