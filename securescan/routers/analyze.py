# securescan/routers/analyze.py
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from securescan.schemas import URLRequest
from securescan.services.assessment_service import analyze_url

router = APIRouter(prefix="/api", tags=["analyze"])


@router.post("/analyze")
async def analyze(payload: Optional[URLRequest] = None):
    """
    Risk-assess a single URL with the AI backend.
    Answers 400 without a URL and 500 with the degraded-mode record when the backend fails.
    """
    if payload is None or not payload.url:
        return JSONResponse(status_code=400, content={"error": "URL is required"})

    outcome = await analyze_url(payload.url)
    return JSONResponse(status_code=500 if outcome.degraded else 200, content=outcome.payload)
