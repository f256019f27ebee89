import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from securescan.config import settings
from securescan.schemas import Assessment
from securescan.services.risk import degraded_assessment

logger = logging.getLogger(__name__)


async def assess(url: str, client: Optional[httpx.AsyncClient] = None) -> Assessment:
    """
    Ask the assessment endpoint about a URL.

    Exactly one POST per call. Any transport error, error status or
    malformed body is answered with the degraded-mode record instead of
    raising, so callers always get an Assessment back.
    """
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.assessment_timeout) as own_client:
                resp = await own_client.post(settings.assessment_api_url, json={"url": url})
        else:
            resp = await client.post(settings.assessment_api_url, json={"url": url})

        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        return Assessment.model_validate(data)
    except (httpx.HTTPError, ValueError, ValidationError) as exc:
        # json decoding errors are ValueErrors too
        logger.warning("AI analysis failed for %s: %s", url, exc)
        return Assessment.model_validate(degraded_assessment())
