# facilitator/history/repositories/http_repo.py
from __future__ import annotations

import logging

from facilitator.history.repositories.base import (
    MAX_HISTORY_ROWS,
    WorkshopRepository,
    clamp_limit,
)
from facilitator.llm.client import WorkshopAPIClient
from facilitator.llm.exceptions import ResponseFormatError, TransportFailure
from facilitator.llm.models import WORKSHOPS_PATH
from facilitator.workshop.models import (
    WorkshopDetail,
    WorkshopRecord,
    WorkshopSummary,
    newest_first,
)

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404


class HttpWorkshopRepo(WorkshopRepository):
    """
    WorkshopRepository backed by the backend's ``/api/workshops`` routes.
    """

    def __init__(self, client: WorkshopAPIClient):
        self.client = client

    async def save_workshop(self, record: WorkshopRecord) -> WorkshopDetail:
        data = await self.client.request_json(
            "POST", WORKSHOPS_PATH, record.to_payload()
        )
        if not isinstance(data, dict):
            raise ResponseFormatError(
                "Expected the created workshop row", endpoint=WORKSHOPS_PATH
            )
        detail = WorkshopDetail.model_validate(data)
        logger.info(f"Saved workshop {detail.id}: {detail.topic_title!r}")
        return detail

    async def list_workshops(
        self, limit: int = MAX_HISTORY_ROWS
    ) -> list[WorkshopSummary]:
        data = await self.client.request_json("GET", WORKSHOPS_PATH)
        if not isinstance(data, list):
            raise ResponseFormatError(
                "Expected a list of workshop rows", endpoint=WORKSHOPS_PATH
            )
        rows = [WorkshopSummary.model_validate(row) for row in data]
        return newest_first(rows)[:clamp_limit(limit)]

    async def get_workshop(self, workshop_id: int) -> WorkshopDetail | None:
        path = f"{WORKSHOPS_PATH}/{workshop_id}"
        try:
            data = await self.client.request_json("GET", path)
        except TransportFailure as e:
            if e.status_code == HTTP_NOT_FOUND:
                return None
            raise
        return WorkshopDetail.model_validate(data)

    async def close(self) -> None:
        # The client is shared with the completion calls and closed by its owner.
        return None
