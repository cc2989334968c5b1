#!/usr/bin/env python3
"""
Tests for the HTTP workshop repository.
"""

import json
import random
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from facilitator.history.repositories.base import MAX_HISTORY_ROWS
from facilitator.history.repositories.http_repo import HttpWorkshopRepo
from facilitator.llm.client import WorkshopAPIClient
from facilitator.llm.exceptions import ResponseFormatError, TransportFailure
from facilitator.llm.models import ClientConfig
from facilitator.workshop.models import WorkshopRecord

BASE_TIME = datetime(2026, 5, 1, 9, 0, tzinfo=UTC)


def history_rows(count: int) -> list[dict]:
    rows = [
        {
            "id": i,
            "topic_title": f"workshop {i}",
            "total_score": i % 11,
            "participants": json.dumps(["小王"]),
            "summary_report": "",
            "created_at": (BASE_TIME + timedelta(minutes=i)).isoformat(),
            "completed_at": (BASE_TIME + timedelta(minutes=i)).isoformat(),
        }
        for i in range(count)
    ]
    random.Random(7).shuffle(rows)
    return rows


def make_repo(handler) -> HttpWorkshopRepo:
    client = WorkshopAPIClient(
        ClientConfig(base_url="http://backend.test"),
        transport=httpx.MockTransport(handler),
    )
    return HttpWorkshopRepo(client)


class TestHttpWorkshopRepo:
    """Test the /api/workshops routes."""

    @pytest.mark.asyncio
    async def test_list_returns_fifty_newest_in_order(self):
        rows = history_rows(60)

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == "/api/workshops"
            return httpx.Response(200, json=rows)

        repo = make_repo(handler)
        result = await repo.list_workshops()

        assert len(result) == MAX_HISTORY_ROWS
        assert [r.id for r in result] == list(range(59, 9, -1))
        assert result[0].participants == ["小王"]

    @pytest.mark.asyncio
    async def test_list_respects_smaller_limit(self):
        repo = make_repo(lambda r: httpx.Response(200, json=history_rows(5)))
        result = await repo.list_workshops(limit=2)
        assert [r.id for r in result] == [4, 3]

    @pytest.mark.asyncio
    async def test_list_rejects_non_list(self):
        repo = make_repo(lambda r: httpx.Response(200, json={"error": "x"}))
        with pytest.raises(ResponseFormatError):
            await repo.list_workshops()

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/workshops/42"
            return httpx.Response(404, json={"error": "Workshop not found"})

        assert await make_repo(handler).get_workshop(42) is None

    @pytest.mark.asyncio
    async def test_get_server_error_propagates(self):
        repo = make_repo(lambda r: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(TransportFailure) as exc_info:
            await repo.get_workshop(1)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_get_detail(self):
        row = {
            "id": 9,
            "topic_title": "t",
            "topic_background": "b",
            "golden_questions": json.dumps(["g"]),
            "action_plan": json.dumps([{"owner": "o", "action": "a", "deadline": "d"}]),
            "participants": [],
            "reflections": None,
            "created_at": "2026-05-01T09:00:00Z",
        }
        detail = await make_repo(lambda r: httpx.Response(200, json=row)).get_workshop(9)
        assert detail is not None
        assert detail.golden_questions == ["g"]
        assert detail.action_plan[0].owner == "o"

    @pytest.mark.asyncio
    async def test_save_posts_camel_case_record(self):
        posted = {}

        def handler(request: httpx.Request) -> httpx.Response:
            posted.update(json.loads(request.content))
            return httpx.Response(200, json={"id": 1, "topic_title": "t"})

        detail = await make_repo(handler).save_workshop(
            WorkshopRecord(topic_title="t", total_score=5, summary_report="s")
        )
        assert detail.id == 1
        assert posted["topicTitle"] == "t"
        assert posted["totalScore"] == 5
        assert posted["summaryReport"] == "s"
        assert posted["goldenQuestions"] == []
