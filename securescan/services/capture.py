"""
Live QR Capture

Polls a camera for frames and runs them through the decoder until a code is
found. The device is opened on entry and released on every exit path,
including cancellation of the surrounding task.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class CaptureErrorKind(str, Enum):
    NOT_FOUND = "not-found"
    PERMISSION_DENIED = "permission-denied"
    BUSY = "busy"
    UNSUPPORTED = "unsupported"


CAPTURE_ERROR_MESSAGES = {
    CaptureErrorKind.NOT_FOUND: "No camera found on this device. Please ensure your camera is connected.",
    CaptureErrorKind.PERMISSION_DENIED: "Camera access was denied. We need your permission to scan QR codes.",
    CaptureErrorKind.BUSY: (
        "Camera is already in use by another application. "
        "Please close other apps using the camera and try again."
    ),
    CaptureErrorKind.UNSUPPORTED: "Camera capture is not supported on this system.",
}


@dataclass
class CaptureOutcome:
    payload: Optional[str] = None
    error: Optional[CaptureErrorKind] = None

    @property
    def message(self) -> Optional[str]:
        return CAPTURE_ERROR_MESSAGES.get(self.error) if self.error else None


def open_camera(index: int = 0) -> cv2.VideoCapture:
    return cv2.VideoCapture(index)


def _release_late(opening: asyncio.Future) -> None:
    if not opening.cancelled() and opening.exception() is None:
        opening.result().release()


async def capture_until_decoded(
    opener: Callable[[], Any],
    decode: Callable[[np.ndarray], Optional[str]],
    interval: float = 1 / 30,
    max_read_failures: int = 30,
) -> CaptureOutcome:
    """
    Read frames until `decode` returns a payload.

    Opening the device, reading a frame and decoding it all block, so each
    runs in a worker thread and the event loop keeps serving requests.

    Args:
        opener: returns an object with the cv2.VideoCapture interface
                (isOpened / read / release)
        decode: frame -> payload or None
        interval: seconds to wait between frames
        max_read_failures: consecutive unreadable frames before giving up

    Returns:
        CaptureOutcome with either `payload` or `error` set
    """
    opening = asyncio.ensure_future(asyncio.to_thread(opener))
    try:
        camera = await asyncio.shield(opening)
    except asyncio.CancelledError:
        # the device may still open after we stop waiting
        opening.add_done_callback(_release_late)
        raise
    except PermissionError:
        return CaptureOutcome(error=CaptureErrorKind.PERMISSION_DENIED)
    except cv2.error as exc:
        logger.warning("Camera backend unavailable: %s", exc)
        return CaptureOutcome(error=CaptureErrorKind.UNSUPPORTED)

    reading = None
    try:
        if not camera.isOpened():
            return CaptureOutcome(error=CaptureErrorKind.NOT_FOUND)

        failures = 0
        while True:
            reading = asyncio.ensure_future(asyncio.to_thread(camera.read))
            ok, frame = await asyncio.shield(reading)
            if ok:
                failures = 0
                payload = await asyncio.to_thread(decode, frame)
                if payload:
                    return CaptureOutcome(payload=payload)
            else:
                failures += 1
                if failures >= max_read_failures:
                    return CaptureOutcome(error=CaptureErrorKind.BUSY)

            await asyncio.sleep(interval)
    finally:
        if reading is not None and not reading.done():
            # never release the device under a read that is still running
            await asyncio.wait([reading])
        camera.release()
