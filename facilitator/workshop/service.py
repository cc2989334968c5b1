"""
Workshop service orchestrating the four facilitation stages.

This module connects the completion client, the in-memory session and the
workshop repository:
- Stage 1: topic evaluation (streamed, structured result)
- Stage 2: pre-mortem risk analysis (streamed, structured result)
- Stage 3: question classification and blind-spot detection (plain JSON)
- Stage 4: summary report generation (streamed, free text) and persistence

Failures of AI calls never propagate to the caller. They are logged with a
retryable flag and leave the session state as it was before the call.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from facilitator.history.repositories.base import (
    MAX_HISTORY_ROWS,
    RepositoryError,
    WorkshopRepository,
)
from facilitator.llm.client import WorkshopAPIClient
from facilitator.llm.exceptions import WorkshopClientError
from facilitator.llm.models import ENDPOINTS, EndpointName
from facilitator.llm.streaming.consumer import CancellationToken, ProgressCallback
from facilitator.logging_utils import WorkshopErrorHandler, log_operation

from .models import (
    AI_AUTHOR,
    PreMortemData,
    Question,
    QuestionClassification,
    ShadowQuestion,
    ShadowQuestionSet,
    TopicData,
    TopicEvaluation,
    WorkshopDetail,
    WorkshopSummary,
)
from .session import WorkshopSession

logger = logging.getLogger(__name__)

DEFAULT_BLIND_SPOT_THRESHOLD = 2


class WorkshopService:
    """Runs workshop stages against the completion API."""

    def __init__(
        self,
        client: WorkshopAPIClient,
        repo: WorkshopRepository,
        session: WorkshopSession | None = None,
        workshop_config: dict[str, Any] | None = None,
    ):
        workshop_config = workshop_config or {}
        self.client = client
        self.repo = repo
        self.history_limit: int = workshop_config.get(
            "history_limit", MAX_HISTORY_ROWS
        )
        self.blind_spot_threshold: int = workshop_config.get(
            "blind_spot_threshold", DEFAULT_BLIND_SPOT_THRESHOLD
        )
        if session is None:
            participant = workshop_config.get("participant_name")
            session = (
                WorkshopSession(participant) if participant else WorkshopSession()
            )
        self.session = session

    # ------------------------------------------------------------------ #
    # Stage 1-2                                                          #
    # ------------------------------------------------------------------ #

    async def evaluate_topic(
        self,
        topic: TopicData | dict[str, Any] | None = None,
        *,
        cancel: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> TopicEvaluation | None:
        """
        Stream a quality evaluation of the topic.

        Returns None when the call fails or yields no usable evaluation; the
        previous evaluation is kept in that case.

        Raises:
            ValueError: If title, background or pain points are blank.
        """
        if topic is not None:
            self.session.set_topic(topic)
        if not self.session.topic.is_ready:
            raise ValueError("Title, background and pain points are required")

        evaluation = await self._structured_call(
            EndpointName.EVALUATE_TOPIC,
            self.session.topic.model_dump(by_alias=True),
            TopicEvaluation,
            cancel=cancel,
            timeout=timeout,
        )
        if evaluation is not None:
            self.session.set_evaluation(evaluation)
        return evaluation

    async def run_pre_mortem(
        self,
        *,
        cancel: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> PreMortemData | None:
        """Stream the pre-mortem risk analysis for the current topic."""
        if not self.session.topic.title:
            raise ValueError("A topic title is required for the pre-mortem")

        data = await self._structured_call(
            EndpointName.PRE_MORTEM,
            {"topic": self.session.topic.model_dump(by_alias=True)},
            PreMortemData,
            cancel=cancel,
            timeout=timeout,
        )
        if data is not None:
            self.session.set_pre_mortem(data)
        return data

    async def _structured_call(
        self,
        name: EndpointName,
        payload: dict[str, Any],
        result_model: type[Any],
        *,
        cancel: CancellationToken | None,
        timeout: float | None,
    ) -> Any | None:
        endpoint = ENDPOINTS[name]
        try:
            return await self.client.complete(
                endpoint,
                payload,
                result_model=result_model,
                cancel=cancel,
                timeout=timeout,
            )
        except WorkshopClientError as e:
            WorkshopErrorHandler.report(e, name.value, {"path": endpoint.path})
            return None

    # ------------------------------------------------------------------ #
    # Stage 3                                                            #
    # ------------------------------------------------------------------ #

    async def classify_question(
        self, text: str, author: str | None = None
    ) -> Question:
        """
        Classify a question into a 5F dimension and record it.

        The question is always recorded; a failed classification falls back
        to the fact dimension.
        """
        text = text.strip()
        if not text:
            raise ValueError("Question text must not be empty")

        endpoint = ENDPOINTS[EndpointName.CLASSIFY_QUESTION]
        try:
            classification = await self.client.complete(
                endpoint,
                {"question": text, "topicContext": self.session.topic.title},
                result_model=QuestionClassification,
            )
        except WorkshopClientError as e:
            WorkshopErrorHandler.report(
                e, EndpointName.CLASSIFY_QUESTION.value, {"path": endpoint.path}
            )
            classification = QuestionClassification.default()

        question = Question(
            text=text,
            author=author or self.session.participant_name,
            category=classification.category,
            category_label=classification.category_label,
            adopted=True,
        )
        self.session.add_question(question)
        logger.info(
            f"Recorded question as {question.category}: {question.text!r}"
        )
        return question

    def missing_dimensions(self) -> list[str]:
        """5F dimensions below the blind-spot threshold."""
        return self.session.radar.missing_dimensions(self.blind_spot_threshold)

    async def detect_blind_spots(self) -> ShadowQuestionSet:
        """
        Ask for shadow questions covering under-represented dimensions.

        The result replaces the pending suggestions. On failure the pending
        suggestions are cleared and an empty set is returned.
        """
        topic = self.session.topic
        payload = {
            "topicContext": f"{topic.title} {topic.pain_points}",
            "radarData": self.session.radar.model_dump(),
            "existingQuestions": [q.text for q in self.session.questions],
        }

        endpoint = ENDPOINTS[EndpointName.SHADOW_QUESTIONS]
        try:
            result = await self.client.complete(
                endpoint, payload, result_model=ShadowQuestionSet
            )
        except WorkshopClientError as e:
            WorkshopErrorHandler.report(
                e, EndpointName.SHADOW_QUESTIONS.value, {"path": endpoint.path}
            )
            result = ShadowQuestionSet()

        self.session.set_shadow_suggestions(result.missing_alert, result.questions)
        return result

    def adopt_shadow_question(self, text: str) -> Question | None:
        """Record a pending shadow suggestion as an AI-authored question."""
        suggestion = self.session.take_shadow_suggestion(text)
        if suggestion is None:
            return None
        return self.session.add_question(self._shadow_to_question(suggestion))

    def reject_shadow_question(self, text: str) -> bool:
        return self.session.take_shadow_suggestion(text) is not None

    @staticmethod
    def _shadow_to_question(suggestion: ShadowQuestion) -> Question:
        return Question(
            text=suggestion.text,
            author=AI_AUTHOR,
            category=suggestion.category,
            category_label=suggestion.category_label,
            is_shadow=True,
            adopted=True,
        )

    # ------------------------------------------------------------------ #
    # Stage 4                                                            #
    # ------------------------------------------------------------------ #

    async def generate_summary(
        self,
        *,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> str | None:
        """
        Stream the summary report and persist the workshop once it finishes.

        Every progress update replaces ``session.summary_report`` before being
        forwarded to ``on_progress``. A failed or cancelled stream restores the
        previous report and saved flag. The workshop is saved exactly once
        after the stream ends and only when the report is non-empty.

        Returns:
            The final report text, or None if the stream failed.
        """
        endpoint = ENDPOINTS[EndpointName.GENERATE_SUMMARY]
        previous_report = self.session.summary_report
        previous_saved = self.session.is_saved

        async def progress(text: str) -> None:
            self.session.set_summary_report(text)
            if on_progress is not None:
                outcome = on_progress(text)
                if inspect.isawaitable(outcome):
                    await outcome

        try:
            report = await self.client.complete(
                endpoint,
                self.session.summary_request(),
                on_progress=progress,
                cancel=cancel,
                timeout=timeout,
            )
        except WorkshopClientError as e:
            WorkshopErrorHandler.report(
                e, EndpointName.GENERATE_SUMMARY.value, {"path": endpoint.path}
            )
            self.session.set_summary_report(previous_report)
            self.session.mark_saved(previous_saved)
            return None

        self.session.set_summary_report(report)
        if not report:
            logger.info("Summary stream finished empty; workshop not saved")
            return report

        await self.save_workshop(report)
        return report

    async def save_workshop(self, summary_report: str) -> WorkshopDetail | None:
        """Persist the current session with ``summary_report``."""
        record = self.session.to_record(summary_report)
        try:
            detail = await self.repo.save_workshop(record)
        except (WorkshopClientError, RepositoryError) as e:
            WorkshopErrorHandler.report(e, "save_workshop")
            self.session.mark_saved(False)
            return None
        self.session.mark_saved(True)
        return detail

    # ------------------------------------------------------------------ #
    # History                                                            #
    # ------------------------------------------------------------------ #

    @log_operation("list_history")
    async def list_history(self, limit: int | None = None) -> list[WorkshopSummary]:
        """Finished workshops, newest first."""
        return await self.repo.list_workshops(limit or self.history_limit)

    @log_operation("get_history_detail")
    async def get_history_detail(self, workshop_id: int) -> WorkshopDetail | None:
        return await self.repo.get_workshop(workshop_id)
