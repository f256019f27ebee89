from typing import Optional

import cv2
import numpy as np
from pyzbar.pyzbar import ZBarSymbol
from pyzbar.pyzbar import decode as pyzbar_decode


def attempt_decode(frame: np.ndarray) -> Optional[str]:
    """
    Decode a single camera frame or still image.
    Returns the first QR payload found, or None when the frame holds no code.
    """
    if frame is None or frame.size == 0:
        return None

    try:
        decoded_objects = pyzbar_decode(frame, symbols=[ZBarSymbol.QRCODE])
        if not decoded_objects:
            return None

        return decoded_objects[0].data.decode("utf-8")
    except Exception:
        # an unreadable frame is just a frame without a code
        return None


def decode_image_bytes(image_bytes: bytes) -> Optional[str]:
    """
    Takes raw uploaded image bytes (PNG, JPG, ...) and returns decoded QR string or None.
    """
    if not image_bytes:
        return None

    try:
        # Convert bytes → numpy array → CV2 image
        nparr = np.frombuffer(image_bytes, np.uint8)
        img = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    except cv2.error:
        return None

    if img is None:
        return None

    return attempt_decode(img)
