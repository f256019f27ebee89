"""
Risk level classification shared by the assessment client and the
assessment service, plus the degraded-mode record both of them fall back to.
"""

import copy
from typing import Any, Dict

SUSPICIOUS_THRESHOLD = 30
HIGH_RISK_THRESHOLD = 70

SAFE = "safe"
SUSPICIOUS = "suspicious"
HIGH_RISK = "high-risk"

DEGRADED_ASSESSMENT: Dict[str, Any] = {
    "riskScore": 50,
    "riskLevel": SUSPICIOUS,
    "indicators": ["Analysis failed due to network error"],
    "recommendation": "Proceed with extreme caution. Manual verification required.",
    "analysis": "We were unable to complete the AI-powered deep scan at this time.",
}


def classify(score: float) -> str:
    """
    Map a 0-100 risk score onto a risk level.

    Returns:
        "safe" below 30, "suspicious" from 30 up to 70, "high-risk" from 70.
    """
    if score < SUSPICIOUS_THRESHOLD:
        return SAFE
    if score < HIGH_RISK_THRESHOLD:
        return SUSPICIOUS
    return HIGH_RISK


def degraded_assessment() -> Dict[str, Any]:
    """Fresh copy of the degraded-mode record, safe to hand to callers."""
    return copy.deepcopy(DEGRADED_ASSESSMENT)
