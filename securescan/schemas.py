import math
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

RiskLevel = Literal["safe", "suspicious", "high-risk"]


class Screen(str, Enum):
    HOME = "home"
    SCANNING = "scanning"
    RESULT = "result"
    HISTORY = "history"


def clamp_score(value):
    """Round numeric scores and squeeze them into 0-100; leave anything else for validation."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            raise ValueError("risk score must be a finite number")
        return min(max(int(round(value)), 0), 100)
    return value


class ScanResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    url: str = Field(min_length=1)
    timestamp: int
    risk_score: int = Field(alias="riskScore", ge=0, le=100)
    risk_level: RiskLevel = Field(alias="riskLevel")
    indicators: List[str] = Field(default_factory=list)
    recommendation: str = ""
    analysis: str = ""


class Assessment(BaseModel):
    """Partial ScanResult as answered by the assessment endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    risk_score: Optional[int] = Field(default=None, alias="riskScore")
    risk_level: Optional[RiskLevel] = Field(default=None, alias="riskLevel")
    indicators: Optional[List[str]] = None
    recommendation: Optional[str] = None
    analysis: Optional[str] = None

    @field_validator("risk_score", mode="before")
    @classmethod
    def round_score(cls, value):
        return clamp_score(value)


class AIAssessment(BaseModel):
    """Structured output requested from the AI backend."""

    risk_score: float = Field(alias="riskScore")
    indicators: List[str]
    recommendation: str
    analysis: str


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    risk_score: int = Field(alias="riskScore", ge=0, le=100)
    indicators: List[str]
    recommendation: str
    analysis: str
    risk_level: RiskLevel = Field(alias="riskLevel")

    @field_validator("risk_score", mode="before")
    @classmethod
    def round_score(cls, value):
        return clamp_score(value)


class URLRequest(BaseModel):
    url: Optional[str] = None


class NavigateRequest(BaseModel):
    screen: Screen


class SessionState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    screen: Screen
    current_result: Optional[ScanResult] = Field(default=None, alias="currentResult")
    history: List[ScanResult]
    blocked_urls: List[str] = Field(alias="blockedUrls")
    busy: bool = False
    alert: bool = False
    notice: Optional[str] = None
    capture_error: Optional[str] = Field(default=None, alias="captureError")
