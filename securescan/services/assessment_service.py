"""
AI-Powered URL Risk Assessment

Sends a URL to the AI backend with a fixed analyst instruction and a
structured-output schema, then attaches the derived risk level. Any
backend failure is answered with the shared degraded-mode record.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from securescan.schemas import AIAssessment, AnalysisResponse, clamp_score
from securescan.services import ai_backend
from securescan.services.risk import classify, degraded_assessment

logger = logging.getLogger(__name__)

ASSESSMENT_PROMPT = """Analyze the following URL for cybersecurity threats: {url}.
Focus on:
1. Malicious redirects (is this a shortened link or a gateway to a known bad site?)
2. Phishing patterns (lookalike domains, suspicious TLDs).
3. Malware distribution signatures.
4. Social engineering tactics in the URL structure.

Act as a professional cybersecurity analyst.
Provide a risk score from 0 to 100 (0 being perfectly safe, 100 being extremely dangerous).
List specific threat indicators if any.
Provide a clear recommendation."""

ASSESSMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "riskScore": {"type": "number"},
        "indicators": {"type": "array", "items": {"type": "string"}},
        "recommendation": {"type": "string"},
        "analysis": {"type": "string"},
    },
    "required": ["riskScore", "indicators", "recommendation", "analysis"],
    "additionalProperties": False,
}

Backend = Callable[[str, Dict[str, Any]], Awaitable[str]]


@dataclass
class AnalysisOutcome:
    payload: Dict[str, Any]
    degraded: bool = False


def build_prompt(url: str) -> str:
    return ASSESSMENT_PROMPT.format(url=url)


async def analyze_url(url: str, backend: Optional[Backend] = None) -> AnalysisOutcome:
    """
    Main entrypoint. Returns an AnalysisOutcome whose payload is:
    {
      "riskScore": int,
      "indicators": [..],
      "recommendation": str,
      "analysis": str,
      "riskLevel": "safe"|"suspicious"|"high-risk"
    }
    """
    backend = backend or ai_backend.generate_json
    try:
        raw = await backend(build_prompt(url), ASSESSMENT_SCHEMA)
        data = AIAssessment.model_validate(json.loads(raw or "{}"))

        score = clamp_score(data.risk_score)
        response = AnalysisResponse(
            risk_score=score,
            indicators=data.indicators,
            recommendation=data.recommendation,
            analysis=data.analysis,
            risk_level=classify(score),
        )
        return AnalysisOutcome(payload=response.model_dump(by_alias=True))
    except Exception:
        logger.exception("AI analysis failed for %s", url)
        return AnalysisOutcome(payload=degraded_assessment(), degraded=True)
