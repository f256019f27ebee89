import asyncio
import unittest

import numpy as np

from securescan.schemas import Assessment
from securescan.services.capture import CaptureErrorKind
from securescan.session import (
    BLOCKED_INDICATOR,
    CAPTURE_FAILED_NOTICE,
    NO_CODE_NOTICE,
    Screen,
    ScanSession,
)
from securescan.store import MemoryStorage, ResultStore


class FakeAssess:
    """Records each URL it is asked about and answers with a canned payload."""

    def __init__(self, **payload):
        self.payload = payload
        self.calls = []

    async def __call__(self, url):
        self.calls.append(url)
        return Assessment.model_validate(self.payload)


class SlowAssess(FakeAssess):
    def __init__(self, **payload):
        super().__init__(**payload)
        self.release = asyncio.Event()

    async def __call__(self, url):
        self.calls.append(url)
        await self.release.wait()
        return Assessment.model_validate(self.payload)


class FakeCamera:
    def __init__(self, frames):
        self.frames = list(frames)
        self.released = False

    def isOpened(self):
        return True

    def read(self):
        if self.frames:
            return True, self.frames.pop(0)
        return True, None

    def release(self):
        self.released = True


HIGH_RISK_PAYLOAD = {
    "riskScore": 85,
    "riskLevel": "high-risk",
    "indicators": ["lookalike domain"],
    "recommendation": "Do not visit",
    "analysis": "...",
}


class TestScanPipeline(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.storage = MemoryStorage()
        self.store = ResultStore(self.storage)

    def make_session(self, assess) -> ScanSession:
        return ScanSession(self.store, assess=assess, capture_interval=0)

    async def test_high_risk_result_is_recorded_and_blocked(self):
        assess = FakeAssess(**HIGH_RISK_PAYLOAD)
        session = self.make_session(assess)

        result = await session.submit("http://example.com")

        self.assertEqual(result.risk_level, "high-risk")
        self.assertEqual(result.risk_score, 85)
        self.assertEqual(self.store.history[0], result)
        self.assertTrue(self.store.is_blocked("http://example.com"))
        self.assertTrue(session.alert)
        self.assertIs(session.screen, Screen.RESULT)
        self.assertEqual(session.current_result, result)
        self.assertFalse(session.busy)

    async def test_second_submission_takes_blocked_branch(self):
        assess = FakeAssess(**HIGH_RISK_PAYLOAD)
        session = self.make_session(assess)
        first = await session.submit("http://example.com")
        session.dismiss_alert(go_home=True)

        second = await session.submit("http://example.com")

        self.assertEqual(assess.calls, ["http://example.com"])
        self.assertEqual(second.risk_score, 100)
        self.assertEqual(second.risk_level, "high-risk")
        self.assertEqual(second.indicators, [BLOCKED_INDICATOR])
        self.assertNotEqual(second.id, first.id)
        self.assertEqual(self.store.history, [first])
        self.assertTrue(session.alert)
        self.assertIs(session.screen, Screen.RESULT)

    async def test_blocked_url_skips_assessment(self):
        self.store.block("http://evil.example")
        assess = FakeAssess(riskScore=5, riskLevel="safe")
        session = self.make_session(assess)

        result = await session.submit("http://evil.example")

        self.assertEqual(assess.calls, [])
        self.assertEqual(result.risk_score, 100)
        self.assertTrue(result.id.startswith("blocked-"))
        self.assertEqual(self.store.history, [])
        self.assertEqual(self.store.blocked_urls, ["http://evil.example"])

    async def test_safe_result_is_not_blocked(self):
        session = self.make_session(
            FakeAssess(riskScore=5, riskLevel="safe", indicators=[], recommendation="Go", analysis="Clean")
        )

        result = await session.submit("https://example.org")

        self.assertEqual(result.risk_level, "safe")
        self.assertEqual(result.indicators, [])
        self.assertFalse(self.store.is_blocked("https://example.org"))
        self.assertFalse(session.alert)

    async def test_missing_recommendation_defaults_to_empty(self):
        session = self.make_session(
            FakeAssess(riskScore=40, riskLevel="suspicious", indicators=["short link"], analysis="...")
        )

        result = await session.submit("http://bit.ly/x")

        self.assertEqual(result.recommendation, "")

    async def test_missing_score_and_level_use_literal_defaults(self):
        """An empty answer becomes score 0 with level suspicious, exactly as received."""
        session = self.make_session(FakeAssess())

        result = await session.submit("http://example.com")

        self.assertEqual(result.risk_score, 0)
        self.assertEqual(result.risk_level, "suspicious")
        self.assertEqual(result.indicators, [])
        self.assertEqual(result.analysis, "")

    async def test_empty_url_is_refused(self):
        assess = FakeAssess(riskScore=5, riskLevel="safe")
        session = self.make_session(assess)

        self.assertIsNone(await session.submit(""))
        self.assertEqual(assess.calls, [])
        self.assertIs(session.screen, Screen.HOME)

    async def test_single_assessment_in_flight(self):
        assess = SlowAssess(riskScore=5, riskLevel="safe")
        session = self.make_session(assess)

        pending = asyncio.create_task(session.submit("http://one.example"))
        await asyncio.sleep(0)
        self.assertTrue(session.busy)
        self.assertIs(session.screen, Screen.SCANNING)

        self.assertIsNone(await session.submit("http://two.example"))
        self.assertFalse(session.start_scan())

        assess.release.set()
        result = await pending

        self.assertEqual(assess.calls, ["http://one.example"])
        self.assertEqual(result.url, "http://one.example")
        self.assertFalse(session.busy)

    async def test_timestamps_never_go_backwards(self):
        ticks = iter([1000.0, 999.0])
        session = ScanSession(
            self.store, assess=FakeAssess(riskScore=5, riskLevel="safe"), clock=lambda: next(ticks)
        )

        first = await session.submit("http://a.example")
        second = await session.submit("http://b.example")

        self.assertEqual(first.timestamp, 1_000_000)
        self.assertGreaterEqual(second.timestamp, first.timestamp)


class TestNavigation(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = ResultStore(MemoryStorage())
        self.session = ScanSession(
            self.store, assess=FakeAssess(riskScore=5, riskLevel="safe"), capture_interval=0
        )

    async def test_scan_result_history_round_trip(self):
        session = self.session
        self.assertIs(session.screen, Screen.HOME)

        self.assertTrue(session.start_scan())
        self.assertIs(session.screen, Screen.SCANNING)

        result = await session.submit("https://example.org")
        self.assertIs(session.screen, Screen.RESULT)

        session.rescan()
        self.assertIs(session.screen, Screen.SCANNING)
        session.cancel()
        self.assertIs(session.screen, Screen.HOME)

        session.show_history()
        self.assertIs(session.screen, Screen.HISTORY)
        session.back()
        self.assertIs(session.screen, Screen.HOME)

        selected = session.select(result.id)
        self.assertEqual(selected, result)
        self.assertIs(session.screen, Screen.RESULT)
        self.assertEqual(session.current_result, result)

    async def test_select_does_not_reassess(self):
        result = await self.session.submit("https://example.org")
        self.session.back()

        self.session.select(result.id)

        self.assertEqual(self.session.assess.calls, ["https://example.org"])
        self.assertEqual(len(self.store.history), 1)

    def test_select_unknown_id(self):
        self.assertIsNone(self.session.select("missing"))
        self.assertIs(self.session.screen, Screen.HOME)

    def test_state_snapshot(self):
        self.store.block("http://evil.example")
        state = self.session.state

        self.assertIs(state.screen, Screen.HOME)
        self.assertIsNone(state.current_result)
        self.assertEqual(state.blocked_urls, ["http://evil.example"])

    async def test_dismiss_alert(self):
        self.session.alert = True
        self.session.dismiss_alert()
        self.assertFalse(self.session.alert)

        self.session.alert = True
        self.session.navigate(Screen.RESULT)
        self.session.dismiss_alert(go_home=True)
        self.assertFalse(self.session.alert)
        self.assertIs(self.session.screen, Screen.HOME)


class TestImageUpload(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = ResultStore(MemoryStorage())
        self.assess = FakeAssess(riskScore=45, riskLevel="suspicious")
        self.session = ScanSession(self.store, assess=self.assess)

    async def test_no_code_only_sets_notice(self):
        result = await self.session.scan_image(b"png-bytes", lambda image: None)

        self.assertIsNone(result)
        self.assertEqual(self.session.notice, NO_CODE_NOTICE)
        self.assertIs(self.session.screen, Screen.HOME)
        self.assertEqual(self.assess.calls, [])
        self.assertEqual(self.store.history, [])

    async def test_decoded_url_is_scanned(self):
        result = await self.session.scan_image(b"png-bytes", lambda image: "http://qr.example")

        self.assertEqual(result.url, "http://qr.example")
        self.assertEqual(self.assess.calls, ["http://qr.example"])
        self.assertIsNone(self.session.notice)


class TestLiveCapture(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = ResultStore(MemoryStorage())
        self.assess = FakeAssess(**HIGH_RISK_PAYLOAD)
        self.session = ScanSession(self.store, assess=self.assess, capture_interval=0)

    async def test_decoded_frame_runs_pipeline(self):
        marked = np.ones((2, 2), dtype=np.uint8)
        camera = FakeCamera([None, marked])

        def decode(frame):
            return "http://example.com" if frame is not None else None

        task = self.session.start_camera(lambda: camera, decode)
        self.assertIs(self.session.screen, Screen.SCANNING)
        result = await task

        self.assertEqual(result.url, "http://example.com")
        self.assertTrue(camera.released)
        self.assertIs(self.session.screen, Screen.RESULT)
        self.assertTrue(self.store.is_blocked("http://example.com"))

    async def test_cancel_stops_polling_without_assessment(self):
        camera = FakeCamera([])
        task = self.session.start_camera(lambda: camera, lambda frame: None)
        await asyncio.sleep(0.01)

        self.session.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertTrue(camera.released)
        self.assertIs(self.session.screen, Screen.HOME)
        self.assertEqual(self.assess.calls, [])

    async def test_capture_error_keeps_scanning_screen(self):
        class ClosedCamera(FakeCamera):
            def isOpened(self):
                return False

        camera = ClosedCamera([])
        result = await self.session.start_camera(lambda: camera, lambda frame: None)

        self.assertIsNone(result)
        self.assertIs(self.session.screen, Screen.SCANNING)
        self.assertEqual(self.session.capture_error, CaptureErrorKind.NOT_FOUND)
        self.assertIn("No camera found", self.session.notice)

    async def test_retry_after_capture_error(self):
        closed = FakeCamera([])
        closed.isOpened = lambda: False
        await self.session.start_camera(lambda: closed, lambda frame: None)

        marked = np.ones((2, 2), dtype=np.uint8)
        camera = FakeCamera([marked])
        result = await self.session.start_camera(lambda: camera, lambda frame: "http://example.com")

        self.assertIsNone(self.session.capture_error)
        self.assertEqual(result.url, "http://example.com")

    async def test_failure_after_decode_returns_home_with_notice(self):
        async def failing_assess(url):
            raise RuntimeError("assessment exploded")

        session = ScanSession(self.store, assess=failing_assess, capture_interval=0)
        camera = FakeCamera([np.ones((2, 2), dtype=np.uint8)])

        task = session.start_camera(lambda: camera, lambda frame: "http://example.com")
        with self.assertLogs("securescan.session", level="ERROR"):
            with self.assertRaises(RuntimeError):
                await task
            await asyncio.sleep(0)

        self.assertTrue(camera.released)
        self.assertIs(session.screen, Screen.HOME)
        self.assertEqual(session.notice, CAPTURE_FAILED_NOTICE)
        self.assertFalse(session.busy)
        self.assertEqual(session.state.history, [])


if __name__ == "__main__":
    unittest.main()
