"""
Scan session: which screen is showing, which result is displayed, and the
scan pipeline that turns a decoded or typed URL into a stored verdict.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

import numpy as np

from securescan.schemas import Assessment, ScanResult, Screen
from securescan.services import assessment_client
from securescan.services.capture import CaptureErrorKind, capture_until_decoded
from securescan.services.risk import HIGH_RISK, SUSPICIOUS
from securescan.store import ResultStore

logger = logging.getLogger(__name__)

BLOCKED_INDICATOR = "This URL was previously blocked due to high security risks."
BLOCKED_RECOMMENDATION = "Do not attempt to access this URL."
BLOCKED_ANALYSIS = "Automatically blocked by SecureScan AI protection system."

NO_CODE_NOTICE = "No QR code found in this image. Please try another one."
CAPTURE_FAILED_NOTICE = "Scanning failed unexpectedly. Please try again."


@dataclass
class AppState:
    screen: Screen = Screen.HOME
    current_result: Optional[ScanResult] = None
    history: List[ScanResult] = field(default_factory=list)
    blocked_urls: List[str] = field(default_factory=list)

Assess = Callable[[str], Awaitable[Assessment]]

class ScanSession:
    def __init__(
        self,
        store: ResultStore,
        assess: Assess = assessment_client.assess,
        clock: Callable[[], float] = time.time,
        capture_interval: float = 1 / 30,
        max_read_failures: int = 30,
    ):
        self.store = store
        self.assess = assess
        self.clock = clock
        self.capture_interval = capture_interval
        self.max_read_failures = max_read_failures

        self.screen = Screen.HOME
        self.current_result: Optional[ScanResult] = None
        self.busy = False
        self.alert = False
        self.notice: Optional[str] = None
        self.capture_error: Optional[CaptureErrorKind] = None

        self._capture_task: Optional[asyncio.Task] = None
        self._last_timestamp = 0

    @property
    def state(self) -> AppState:
        return AppState(
            screen=self.screen,
            current_result=self.current_result,
            history=self.store.history,
            blocked_urls=self.store.blocked_urls,
        )

    # ---------------------------------------------------------
    # NAVIGATION
    # ---------------------------------------------------------
    def navigate(self, screen: Screen, result: Optional[ScanResult] = None) -> None:
        screen = Screen(screen)
        if self.screen is Screen.SCANNING and screen is not Screen.SCANNING:
            self._stop_capture()
        if screen is Screen.SCANNING:
            self.capture_error = None
        self.screen = screen
        self.notice = None
        if result is not None:
            self.current_result = result

    def start_scan(self) -> bool:
        if self.busy:
            return False
        self.navigate(Screen.SCANNING)
        return True

    def cancel(self) -> None:
        self.navigate(Screen.HOME)

    def rescan(self) -> bool:
        return self.start_scan()

    def back(self) -> None:
        self.navigate(Screen.HOME)

    def show_history(self) -> None:
        self.navigate(Screen.HISTORY)

    def select(self, result_id: str) -> Optional[ScanResult]:
        result = self.store.find(result_id)
        if result is not None:
            self.navigate(Screen.RESULT, result)
        return result

    def dismiss_alert(self, go_home: bool = False) -> None:
        self.alert = False
        if go_home:
            self.navigate(Screen.HOME)

    # ---------------------------------------------------------
    # SCAN PIPELINE
    # ---------------------------------------------------------
    async def submit(self, url: str) -> Optional[ScanResult]:
        """
        Run a decoded or typed URL through the block list and the assessment.

        Returns the new ScanResult, or None when the submission is refused
        (empty URL, or another assessment is still pending).
        """
        if not url or self.busy:
            return None

        if self.store.is_blocked(url):
            result = ScanResult(
                id=f"blocked-{uuid.uuid4().hex}",
                url=url,
                timestamp=self._now(),
                risk_score=100,
                risk_level=HIGH_RISK,
                indicators=[BLOCKED_INDICATOR],
                recommendation=BLOCKED_RECOMMENDATION,
                analysis=BLOCKED_ANALYSIS,
            )
            logger.info("Short-circuited previously blocked URL %s", url)
            self.navigate(Screen.RESULT, result)
            self.alert = True
            return result

        self.navigate(Screen.SCANNING)
        self.busy = True
        try:
            assessment = await self.assess(url)
        finally:
            self.busy = False

        # literal defaults, not derived: a missing score still reads as suspicious
        result = ScanResult(
            id=uuid.uuid4().hex,
            url=url,
            timestamp=self._now(),
            risk_score=assessment.risk_score or 0,
            risk_level=assessment.risk_level or SUSPICIOUS,
            indicators=assessment.indicators or [],
            recommendation=assessment.recommendation or "",
            analysis=assessment.analysis or "",
        )

        self.store.record(result)
        if result.risk_level == HIGH_RISK:
            self.store.block(url)
            self.alert = True

        self.navigate(Screen.RESULT, result)
        return result

    async def scan_image(
        self,
        image_bytes: bytes,
        decode_image: Callable[[bytes], Optional[str]],
    ) -> Optional[ScanResult]:
        payload = decode_image(image_bytes)
        if not payload:
            self.notice = NO_CODE_NOTICE
            return None
        return await self.submit(payload)

    # ---------------------------------------------------------
    # LIVE CAPTURE
    # ---------------------------------------------------------
    def start_camera(
        self,
        open_camera: Callable[[], Any],
        decode: Callable[[np.ndarray], Optional[str]],
    ) -> Optional[asyncio.Task]:
        """
        Start polling the camera in a task owned by the scanning screen.
        Leaving the scanning screen cancels the task and releases the camera.
        """
        if self.busy:
            return None
        if self.screen is not Screen.SCANNING:
            self.navigate(Screen.SCANNING)

        self._stop_capture()
        self.capture_error = None
        task = asyncio.create_task(self._run_capture(open_camera, decode))
        task.add_done_callback(self._capture_done)
        self._capture_task = task
        return task

    async def _run_capture(self, open_camera, decode) -> Optional[ScanResult]:
        outcome = await capture_until_decoded(
            open_camera,
            decode,
            interval=self.capture_interval,
            max_read_failures=self.max_read_failures,
        )
        # the camera is released by now; detach so leaving scanning won't cancel us
        self._capture_task = None

        if outcome.error:
            logger.warning("Camera capture failed: %s", outcome.error.value)
            self.capture_error = outcome.error
            self.notice = outcome.message
            return None

        return await self.submit(outcome.payload)

    def _capture_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return

        logger.error("Camera scan failed", exc_info=exc)
        if self._capture_task is task:
            self._capture_task = None
        elif self._capture_task is not None:
            # a newer capture owns the scanning screen
            return
        self.busy = False
        self.navigate(Screen.HOME)
        self.notice = CAPTURE_FAILED_NOTICE

    def _stop_capture(self) -> None:
        task, self._capture_task = self._capture_task, None
        if task is not None and not task.done():
            task.cancel()

    def _now(self) -> int:
        now = int(self.clock() * 1000)
        self._last_timestamp = max(now, self._last_timestamp)
        return self._last_timestamp
