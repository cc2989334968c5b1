"""
In-memory workshop session.

Owns the canonical state of one facilitation workshop across its four stages.
State changes only through the command methods below; readers use the
attributes and derived properties.
"""

from __future__ import annotations

import logging
from typing import Any

from .models import (
    AI_AUTHOR,
    ActionItem,
    ActionPlanEntry,
    PreMortemData,
    Question,
    RadarData,
    ShadowQuestion,
    TopicData,
    TopicEvaluation,
    WorkshopRecord,
)

logger = logging.getLogger(__name__)

FIRST_STAGE = 1
LAST_STAGE = 4
DEFAULT_PARTICIPANT = "我"


class WorkshopSession:
    """Command-applying store for one workshop."""

    def __init__(self, participant_name: str = DEFAULT_PARTICIPANT) -> None:
        self.participant_name = participant_name
        self.reset()

    def reset(self) -> None:
        """Return to an empty stage-1 workshop."""
        self.current_stage: int = FIRST_STAGE
        self.topic = TopicData()
        self.evaluation: TopicEvaluation | None = None
        self.pre_mortem: PreMortemData | None = None
        self.questions: list[Question] = []
        self.radar = RadarData()
        self.shadow_suggestions: list[ShadowQuestion] = []
        self.missing_alert: str = ""
        self.reflections: str = ""
        self.action_plan: list[ActionItem] = []
        self.summary_report: str = ""
        self.is_saved: bool = False

    # ------------------------------------------------------------------ #
    # Stage 1-2                                                          #
    # ------------------------------------------------------------------ #

    def set_topic(self, topic: TopicData | dict[str, Any]) -> TopicData:
        if isinstance(topic, dict):
            topic = TopicData.model_validate(topic)
        else:
            # Re-validate so whitespace is trimmed for caller-built instances.
            topic = TopicData.model_validate(topic.model_dump())
        self.topic = topic
        return topic

    def set_evaluation(self, evaluation: TopicEvaluation | None) -> None:
        self.evaluation = evaluation

    def set_pre_mortem(self, data: PreMortemData | None) -> None:
        self.pre_mortem = data

    # ------------------------------------------------------------------ #
    # Stage 3                                                            #
    # ------------------------------------------------------------------ #

    def add_question(self, question: Question) -> Question:
        self.questions.append(question)
        self.recompute_radar()
        return question

    def update_question(self, question_id: str, **updates: Any) -> Question:
        for index, question in enumerate(self.questions):
            if question.id == question_id:
                updated = question.model_copy(update=updates)
                self.questions[index] = updated
                self.recompute_radar()
                return updated
        raise KeyError(f"Unknown question id: {question_id}")

    def toggle_golden(self, question_id: str) -> Question:
        question = self.get_question(question_id)
        return self.update_question(question_id, is_golden=not question.is_golden)

    def get_question(self, question_id: str) -> Question:
        for question in self.questions:
            if question.id == question_id:
                return question
        raise KeyError(f"Unknown question id: {question_id}")

    def recompute_radar(self) -> RadarData:
        self.radar = RadarData.from_questions(self.questions)
        return self.radar

    def set_shadow_suggestions(
        self, missing_alert: str, suggestions: list[ShadowQuestion]
    ) -> None:
        self.missing_alert = missing_alert
        self.shadow_suggestions = list(suggestions)

    def take_shadow_suggestion(self, text: str) -> ShadowQuestion | None:
        """Remove a pending suggestion by text and return it."""
        for suggestion in self.shadow_suggestions:
            if suggestion.text == text:
                self.shadow_suggestions = [
                    s for s in self.shadow_suggestions if s.text != text
                ]
                return suggestion
        return None

    @property
    def golden_questions(self) -> list[Question]:
        return [q for q in self.questions if q.is_golden]

    @property
    def participants(self) -> list[str]:
        """Unique human authors in order of first appearance."""
        seen: dict[str, None] = {}
        for question in self.questions:
            if question.author != AI_AUTHOR:
                seen.setdefault(question.author, None)
        return list(seen)

    # ------------------------------------------------------------------ #
    # Stage 4                                                            #
    # ------------------------------------------------------------------ #

    def set_reflections(self, text: str) -> None:
        self.reflections = text

    def add_action_item(self, item: ActionItem | None = None) -> ActionItem:
        item = item or ActionItem()
        self.action_plan.append(item)
        return item

    def update_action_item(self, item_id: str, **updates: Any) -> ActionItem:
        for index, item in enumerate(self.action_plan):
            if item.id == item_id:
                updated = item.model_copy(update=updates)
                self.action_plan[index] = updated
                return updated
        raise KeyError(f"Unknown action item id: {item_id}")

    def remove_action_item(self, item_id: str) -> None:
        self.action_plan = [i for i in self.action_plan if i.id != item_id]

    def set_summary_report(self, text: str) -> None:
        self.summary_report = text

    def mark_saved(self, saved: bool = True) -> None:
        self.is_saved = saved

    # ------------------------------------------------------------------ #
    # Navigation                                                         #
    # ------------------------------------------------------------------ #

    def advance_to(self, stage: int) -> None:
        """Move to ``stage``; stage 4 needs at least one golden question."""
        if not FIRST_STAGE <= stage <= LAST_STAGE:
            raise ValueError(
                f"stage must be between {FIRST_STAGE} and {LAST_STAGE}"
            )
        if stage == LAST_STAGE and not self.golden_questions:
            raise ValueError("Select at least one golden question first")
        logger.info(f"Workshop stage {self.current_stage} -> {stage}")
        self.current_stage = stage

    # ------------------------------------------------------------------ #
    # Payloads                                                           #
    # ------------------------------------------------------------------ #

    def summary_request(self) -> dict[str, Any]:
        """Body for the generate-summary stream."""
        return {
            "topic": self.topic.model_dump(by_alias=True),
            "goldenQuestions": [q.text for q in self.golden_questions],
            "reflections": self.reflections,
            "actionPlan": [a.model_dump(by_alias=True) for a in self.action_plan],
        }

    def to_record(self, summary_report: str) -> WorkshopRecord:
        """Snapshot the session as a persistable record."""
        return WorkshopRecord(
            topic_title=self.topic.title,
            topic_background=self.topic.background,
            topic_pain_points=self.topic.pain_points,
            topic_tried_actions=self.topic.tried_actions,
            total_score=self.evaluation.total_score if self.evaluation else 0,
            golden_questions=[q.text for q in self.golden_questions],
            participants=self.participants,
            reflections=self.reflections,
            action_plan=[
                ActionPlanEntry(
                    owner=a.owner, action=a.action, deadline=a.deadline
                )
                for a in self.action_plan
            ],
            summary_report=summary_report,
        )
