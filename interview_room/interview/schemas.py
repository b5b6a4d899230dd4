"""
Structured schemas for collaborator payloads and user input.
"""
import re
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..config import SCORE_STRONG_THRESHOLD, SCORE_MODERATE_THRESHOLD

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

RECOMMENDATION_LABELS = {
    "hire": "Recommended to Hire",
    "consider": "Consider for Role",
}


class AnalysisResult(BaseModel):
    """Scoring collaborator's verdict on a finished interview."""
    score: int = Field(ge=0, le=100)
    analysis: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    recommendation: Literal["hire", "consider", "not_recommended"]

    @field_validator("score", mode="before")
    @classmethod
    def _round_score(cls, value: Any) -> Any:
        if isinstance(value, float):
            return int(round(value))
        return value

    @field_validator("recommendation", mode="before")
    @classmethod
    def _normalize_recommendation(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace(" ", "_").replace("-", "_")
        return value

    @property
    def score_band(self) -> str:
        if self.score >= SCORE_STRONG_THRESHOLD:
            return "strong"
        if self.score >= SCORE_MODERATE_THRESHOLD:
            return "moderate"
        return "weak"

    @property
    def recommendation_label(self) -> str:
        return RECOMMENDATION_LABELS.get(self.recommendation, "Needs Improvement")


class Credentials(BaseModel):
    """Sign-in / sign-up form input."""
    email: str
    password: str
    full_name: Optional[str] = None
    sign_up: bool = False

    @field_validator("email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        value = value.strip()
        if not _EMAIL_RE.match(value):
            raise ValueError("Please enter a valid email address")
        return value

    @field_validator("password")
    @classmethod
    def _valid_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value

    @model_validator(mode="after")
    def _name_required_for_sign_up(self) -> "Credentials":
        if self.sign_up and not (self.full_name or "").strip():
            raise ValueError("Please enter your full name")
        return self


def parse_question_list(result: Any, limit: int) -> List[str]:
    """
    Validate a ``generate_questions`` result.

    Raises:
        ValueError: if the result is not a non-empty list of non-blank strings
    """
    if not isinstance(result, list) or not result:
        raise ValueError(f"Expected a non-empty list of questions, got {type(result).__name__}")
    questions = []
    for item in result:
        if not isinstance(item, str) or not item.strip():
            raise ValueError(f"Invalid question entry: {item!r}")
        questions.append(item.strip())
    return questions[:limit]


def parse_analysis(result: Any) -> AnalysisResult:
    """
    Validate an ``analyze_responses`` result.

    Raises:
        ValueError: if the payload does not match ``AnalysisResult``
    """
    try:
        return AnalysisResult.model_validate(result)
    except ValidationError as e:
        raise ValueError(f"Invalid analysis payload: {e}") from e


def first_validation_message(error: ValidationError) -> str:
    """The user-facing message of the first failed field."""
    errors = error.errors()
    if not errors:
        return str(error)
    message = errors[0].get("msg", "")
    return message.removeprefix("Value error, ")
