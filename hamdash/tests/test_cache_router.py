import types
import unittest

from fastapi import HTTPException

from hamdash.models import Session
from hamdash.routers import cache as cache_router
from hamdash.snapshot import SessionSnapshot


class _FakeStore:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.refresh_calls = 0
        self.snapshot = SessionSnapshot(projectPath="/work/demo-app")

    async def refresh(self) -> SessionSnapshot:
        self.refresh_calls += 1
        if self.fail:
            raise OSError("permission denied")
        self.snapshot = SessionSnapshot(
            projectPath="/work/demo-app",
            sessions=(Session(sessionId="a"), Session(sessionId="b")),
            warnings=("Skipped broken.jsonl: invalid utf-8",),
            sessionDir="/home/me/.claude/projects/-work-demo-app",
            parsedAt="2026-03-10T12:00:00Z",
        )
        return self.snapshot


def _request(store) -> types.SimpleNamespace:
    return types.SimpleNamespace(app=types.SimpleNamespace(state=types.SimpleNamespace(session_store=store)))


class CacheRouterTests(unittest.IsolatedAsyncioTestCase):
    async def test_status_before_first_refresh(self) -> None:
        payload = await cache_router.get_status(_request(_FakeStore()))
        self.assertEqual(payload["status"], "ok")
        self.assertFalse(payload["loaded"])
        self.assertEqual(payload["projectName"], "demo-app")
        self.assertEqual(payload["sessionCount"], 0)
        self.assertFalse(payload["observability"])

    async def test_refresh_reports_new_snapshot(self) -> None:
        store = _FakeStore()
        payload = await cache_router.refresh_snapshot(_request(store))
        self.assertEqual(store.refresh_calls, 1)
        self.assertEqual(
            payload,
            {
                "refreshed": True,
                "sessionCount": 2,
                "taskCount": 0,
                "warnings": ["Skipped broken.jsonl: invalid utf-8"],
                "parsedAt": "2026-03-10T12:00:00Z",
            },
        )

        status = await cache_router.get_status(_request(store))
        self.assertTrue(status["loaded"])
        self.assertEqual(status["warningCount"], 1)

    async def test_get_refresh_alias(self) -> None:
        payload = await cache_router.refresh_snapshot_get(_request(_FakeStore()))
        self.assertTrue(payload["refreshed"])

    async def test_refresh_failure_is_http_500(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await cache_router.refresh_snapshot(_request(_FakeStore(fail=True)))
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("permission denied", ctx.exception.detail)

    async def test_run_service_passes_http_errors_through(self) -> None:
        def not_found() -> None:
            raise HTTPException(status_code=404, detail="nope")

        with self.assertRaises(HTTPException) as ctx:
            cache_router.run_service("x", not_found)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(cache_router.run_service("x", sum, [1, 2]), 3)


if __name__ == "__main__":
    unittest.main()
