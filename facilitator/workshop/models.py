# facilitator/workshop/models.py
from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

QuestionCategory = Literal["fact", "feeling", "finding", "future", "focus"]

CATEGORIES: tuple[QuestionCategory, ...] = (
    "fact", "feeling", "finding", "future", "focus"
)
CATEGORY_LABELS: dict[str, str] = {
    "fact": "事实类",
    "feeling": "感受类",
    "finding": "分析类",
    "future": "行动类",
    "focus": "聚焦类",
}
DEFAULT_CATEGORY: QuestionCategory = "fact"
AI_AUTHOR = "AI"


def new_id() -> str:
    """Random identifier for questions and action items."""
    return uuid.uuid4().hex


class CamelModel(BaseModel):
    """Model whose wire format uses camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TopicData(CamelModel):
    """The workshop topic as entered in stage 1."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    title: str = ""
    background: str = ""
    pain_points: str = ""
    tried_actions: str = ""

    @property
    def is_ready(self) -> bool:
        """Title, background and pain points are all filled in."""
        return bool(self.title and self.background and self.pain_points)


class EvaluationDimensions(CamelModel):
    focus: int = Field(0, ge=0, le=10)
    result_oriented: int = Field(0, ge=0, le=10)
    single_issue: int = Field(0, ge=0, le=10)
    uncertainty: int = Field(0, ge=0, le=10)
    controllability: int = Field(0, ge=0, le=10)
    learning: int = Field(0, ge=0, le=10)


class TopicExample(CamelModel):
    title: str
    description: str = ""


class TopicEvaluation(CamelModel):
    """Topic quality evaluation returned by the evaluate-topic stream."""
    total_score: int = Field(ge=0, le=10)
    dimensions: EvaluationDimensions = Field(default_factory=EvaluationDimensions)
    suggestions: list[str] = Field(default_factory=list)
    examples: list[TopicExample] = Field(default_factory=list)


class PreMortemData(CamelModel):
    """Risk pre-analysis returned by the pre-mortem stream."""
    warning: str
    risk_factors: list[str] = Field(default_factory=list)
    focus_areas: list[str] = Field(default_factory=list)


class Question(CamelModel):
    """A brainstormed question."""
    id: str = Field(default_factory=new_id)
    text: str
    author: str
    category: QuestionCategory = DEFAULT_CATEGORY
    category_label: str = CATEGORY_LABELS[DEFAULT_CATEGORY]
    is_golden: bool = False
    is_shadow: bool = False
    adopted: bool | None = True


class RadarData(CamelModel):
    """Per-category count of adopted questions (the 5F radar)."""
    fact: int = 0
    feeling: int = 0
    finding: int = 0
    future: int = 0
    focus: int = 0

    @classmethod
    def from_questions(cls, questions: list[Question]) -> RadarData:
        counts = dict.fromkeys(CATEGORIES, 0)
        for question in questions:
            if question.adopted is False:
                continue
            counts[question.category] += 1
        return cls(**counts)

    def missing_dimensions(self, threshold: int = 2) -> list[str]:
        """Categories whose count is below ``threshold``."""
        return [c for c in CATEGORIES if getattr(self, c) < threshold]


class ActionItem(CamelModel):
    id: str = Field(default_factory=new_id)
    owner: str = ""
    action: str = ""
    deadline: str = ""


class ActionPlanEntry(BaseModel):
    """Action item as persisted with a workshop."""
    owner: str = ""
    action: str = ""
    deadline: str = ""


class QuestionClassification(CamelModel):
    """5F classification of a single question."""
    category: QuestionCategory = DEFAULT_CATEGORY
    category_label: str = ""
    is_closed: bool | None = None
    suggestion: str | None = None

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        return value or DEFAULT_CATEGORY

    @model_validator(mode="after")
    def _default_label(self) -> QuestionClassification:
        if not self.category_label:
            self.category_label = CATEGORY_LABELS[self.category]
        return self

    @classmethod
    def default(cls) -> QuestionClassification:
        return cls(category=DEFAULT_CATEGORY)


class ShadowQuestion(CamelModel):
    """AI-suggested question filling a 5F coverage gap."""
    text: str
    category: QuestionCategory
    category_label: str = ""

    @model_validator(mode="after")
    def _default_label(self) -> ShadowQuestion:
        if not self.category_label:
            self.category_label = CATEGORY_LABELS[self.category]
        return self


class ShadowQuestionSet(CamelModel):
    missing_alert: str = ""
    questions: list[ShadowQuestion] = Field(default_factory=list)

    @field_validator("missing_alert", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return value or ""


class WorkshopRecord(CamelModel):
    """Normalized workshop record posted for persistence."""
    topic_title: str = ""
    topic_background: str = ""
    topic_pain_points: str = ""
    topic_tried_actions: str = ""
    total_score: int = Field(0, ge=0, le=10)
    golden_questions: list[str] = Field(default_factory=list)
    participants: list[str] = Field(default_factory=list)
    reflections: str = ""
    action_plan: list[ActionPlanEntry] = Field(default_factory=list)
    summary_report: str = ""

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _decode_json_list(value: Any) -> Any:
    """Accept JSON-text columns as well as already decoded arrays."""
    if value is None:
        return []
    if isinstance(value, str):
        return json.loads(value or "[]")
    return value


class WorkshopSummary(BaseModel):
    """History list row."""
    id: int
    topic_title: str = ""
    total_score: int = 0
    participants: list[str] = Field(default_factory=list)
    summary_report: str = ""
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("participants", mode="before")
    @classmethod
    def _decode_participants(cls, value: Any) -> Any:
        return _decode_json_list(value)

    @field_validator("topic_title", "summary_report", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return value or ""


class WorkshopDetail(WorkshopSummary):
    """Full persisted workshop row."""
    topic_background: str = ""
    topic_pain_points: str = ""
    topic_tried_actions: str = ""
    golden_questions: list[str] = Field(default_factory=list)
    reflections: str = ""
    action_plan: list[ActionPlanEntry] = Field(default_factory=list)

    @field_validator("golden_questions", "action_plan", mode="before")
    @classmethod
    def _decode_json_columns(cls, value: Any) -> Any:
        return _decode_json_list(value)

    @field_validator(
        "topic_background", "topic_pain_points", "topic_tried_actions",
        "reflections", mode="before",
    )
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return value or ""


def newest_first(rows: list[WorkshopSummary]) -> list[WorkshopSummary]:
    """Order history rows by ``created_at`` descending, undated rows last."""
    def key(row: WorkshopSummary) -> tuple[bool, float]:
        if row.created_at is None:
            return (False, 0.0)
        return (True, row.created_at.timestamp())

    return sorted(rows, key=key, reverse=True)
