"""Pydantic schemas for AI results and the HTTP API.

The three result models (``BugAnalysisResult``, ``CodeAnalysisResult`` and
``SuggestionList``) are the only place model output is checked. Every field
carries a before-validator that replaces a missing, mistyped or out-of-range
value with its default or nearest bound, so :func:`normalize` never fails on
a JSON object.
"""
import math
from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

Number = Union[int, float]

DEFAULT_CATEGORY = "Unknown"
DEFAULT_SEVERITY = "Medium"
DEFAULT_CONFIDENCE = 0.5
DEFAULT_QUALITY_SCORE = 50.0
DEFAULT_METRIC = 5.0


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _as_number(value: Any) -> Optional[Number]:
    """Return *value* as a number, or None if it is not one.

    JSON booleans are not numbers here, numeric strings are.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    if isinstance(number, float) and math.isnan(number):
        return None
    return number


def _clamped(low: float, high: float, default: float) -> BeforeValidator:
    def coerce(value: Any) -> float:
        number = _as_number(value)
        if number is None:
            return default
        return float(max(low, min(high, number)))

    return BeforeValidator(coerce)


def _text(default: str) -> BeforeValidator:
    return BeforeValidator(lambda value: value if isinstance(value, str) else default)


def _line_number(value: Any) -> int:
    number = _as_number(value)
    if number is None or number in (math.inf, -math.inf):
        return 0
    return max(0, int(number))


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _object_list(value: Any) -> List[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _object(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


StringList = Annotated[List[str], BeforeValidator(_string_list)]
Metric = Annotated[float, _clamped(1.0, 10.0, DEFAULT_METRIC)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _Result(_CamelModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# AI results
# ---------------------------------------------------------------------------


class BugAnalysisResult(_Result):
    category: Annotated[str, _text(DEFAULT_CATEGORY)] = DEFAULT_CATEGORY
    severity: Annotated[str, _text(DEFAULT_SEVERITY)] = DEFAULT_SEVERITY
    possible_causes: StringList = Field(default_factory=list)
    suggested_fixes: StringList = Field(default_factory=list)
    confidence: Annotated[float, _clamped(0.0, 1.0, DEFAULT_CONFIDENCE)] = (
        DEFAULT_CONFIDENCE
    )


class CodeIssue(_Result):
    type: Annotated[str, _text("")] = ""
    severity: Annotated[str, _text("")] = ""
    # 0 means the issue applies to the file as a whole.
    line: Annotated[int, BeforeValidator(_line_number)] = 0
    message: Annotated[str, _text("")] = ""
    suggestion: Annotated[str, _text("")] = ""


class CodeMetrics(_Result):
    complexity: Metric = DEFAULT_METRIC
    maintainability: Metric = DEFAULT_METRIC
    testability: Metric = DEFAULT_METRIC


class CodeAnalysisResult(_Result):
    quality_score: Annotated[float, _clamped(0.0, 100.0, DEFAULT_QUALITY_SCORE)] = (
        DEFAULT_QUALITY_SCORE
    )
    issues: Annotated[List[CodeIssue], BeforeValidator(_object_list)] = Field(
        default_factory=list
    )
    suggestions: StringList = Field(default_factory=list)
    metrics: Annotated[CodeMetrics, BeforeValidator(_object)] = Field(
        default_factory=CodeMetrics
    )


class SuggestionList(_Result):
    suggestions: StringList = Field(default_factory=list)


ResultT = TypeVar("ResultT", bound=_Result)


def normalize(schema: Type[ResultT], payload: dict) -> ResultT:
    """Coerce a parsed JSON object into *schema*, defaulting and clamping."""
    return schema.model_validate(payload)


# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------

Priority = Literal["low", "medium", "high", "critical"]
Status = Literal["open", "in_progress", "resolved", "closed"]


class BugCreate(_CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    priority: Priority = "medium"
    status: Status = "open"
    project_id: Optional[str] = None
    reporter_id: Optional[str] = None
    assignee_id: Optional[str] = None
    stack_trace: Optional[str] = None
    reproduction_steps: Optional[str] = None


class BugUpdate(_CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    assignee_id: Optional[str] = None
    stack_trace: Optional[str] = None
    reproduction_steps: Optional[str] = None


class BugOut(_CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str]
    priority: Priority
    status: Status
    project_id: Optional[str]
    reporter_id: Optional[str]
    assignee_id: Optional[str]
    stack_trace: Optional[str]
    reproduction_steps: Optional[str]
    ai_analysis: Optional[BugAnalysisResult]
    created_at: datetime
    updated_at: datetime


class CodeAnalysisCreate(_CamelModel):
    project_id: str = Field(min_length=1)
    file_path: str = Field(min_length=1)
    code: str = Field(min_length=1)
    language: str = Field(min_length=1)


class CodeAnalysisOut(_CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    file_path: str
    language: str
    quality_score: float
    suggestions: List[str]
    metrics: CodeMetrics
    ai_insights: List[CodeIssue]
    created_at: datetime


class SuggestionRequest(_CamelModel):
    context: str = Field(min_length=1)
    language: str = Field(min_length=1)
    requirements: str = Field(min_length=1)


class SuggestionResponse(BaseModel):
    suggestions: List[str]
