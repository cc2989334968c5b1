# facilitator/history/repositories/base.py
from __future__ import annotations

from typing import Protocol

from facilitator.workshop.models import (
    WorkshopDetail,
    WorkshopRecord,
    WorkshopSummary,
)

# Hard cap on history rows returned by any repository.
MAX_HISTORY_ROWS = 50


class RepositoryError(Exception):
    """A local workshop store could not complete an operation."""
    pass


class WorkshopRepository(Protocol):
    """
    Interface for storing and retrieving finished workshops.
    """

    async def save_workshop(self, record: WorkshopRecord) -> WorkshopDetail:
        """
        Store one finished workshop and return the created row.
        """
        ...

    async def list_workshops(
        self, limit: int = MAX_HISTORY_ROWS
    ) -> list[WorkshopSummary]:
        """
        Return summary rows newest first, never more than MAX_HISTORY_ROWS.
        """
        ...

    async def get_workshop(self, workshop_id: int) -> WorkshopDetail | None:
        """
        Return the full row for ``workshop_id`` or None when it does not exist.
        """
        ...

    async def close(self) -> None:
        """
        Release any held connection.
        """
        ...


def clamp_limit(limit: int) -> int:
    """Keep a requested row count within 1..MAX_HISTORY_ROWS."""
    return max(1, min(limit, MAX_HISTORY_ROWS))
