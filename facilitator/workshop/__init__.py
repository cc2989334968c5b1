"""
Workshop domain: typed records and the in-memory session store.

The stage service lives in ``facilitator.workshop.service``.
"""

from __future__ import annotations

from .models import (
    CATEGORY_LABELS,
    ActionItem,
    PreMortemData,
    Question,
    QuestionClassification,
    RadarData,
    ShadowQuestion,
    ShadowQuestionSet,
    TopicData,
    TopicEvaluation,
    WorkshopDetail,
    WorkshopRecord,
    WorkshopSummary,
)
from .session import WorkshopSession

__all__ = [
    "CATEGORY_LABELS",
    "ActionItem",
    "PreMortemData",
    "Question",
    "QuestionClassification",
    "RadarData",
    "ShadowQuestion",
    "ShadowQuestionSet",
    "TopicData",
    "TopicEvaluation",
    "WorkshopDetail",
    "WorkshopRecord",
    "WorkshopSession",
    "WorkshopSummary",
]
