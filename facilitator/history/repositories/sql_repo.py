# facilitator/history/repositories/sql_repo.py
from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from facilitator.history.repositories.base import (
    MAX_HISTORY_ROWS,
    RepositoryError,
    WorkshopRepository,
    clamp_limit,
)
from facilitator.workshop.models import (
    WorkshopDetail,
    WorkshopRecord,
    WorkshopSummary,
)

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = (
    "id, topic_title, total_score, participants, summary_report, "
    "created_at, completed_at"
)


class AsyncSqlWorkshopRepo(WorkshopRepository):
    """
    SQLite implementation of WorkshopRepository.

    Keeps the same table layout as the backend so a workshop can be stored
    locally when no backend is configured. JSON-valued fields are stored as
    JSON text.
    """

    def __init__(self, db_path: str = "workshops.db"):
        self.db_path = db_path
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._connection_lock = asyncio.Lock()  # Serialize database access
        self._connection: aiosqlite.Connection | None = None

    async def _initialize(self) -> None:
        """
        Lazily create the table and index on first use.
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return

            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row

            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")
            await self._connection.execute("PRAGMA busy_timeout=30000")

            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS workshops (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    topic_title TEXT NOT NULL DEFAULT '',
                    topic_background TEXT NOT NULL DEFAULT '',
                    topic_pain_points TEXT NOT NULL DEFAULT '',
                    topic_tried_actions TEXT NOT NULL DEFAULT '',
                    total_score INTEGER NOT NULL DEFAULT 0,
                    golden_questions TEXT NOT NULL DEFAULT '[]',
                    participants TEXT NOT NULL DEFAULT '[]',
                    reflections TEXT NOT NULL DEFAULT '',
                    action_plan TEXT NOT NULL DEFAULT '[]',
                    summary_report TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    completed_at TEXT NOT NULL
                )
            """)
            await self._connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_workshops_created
                ON workshops(created_at)
            """)
            await self._connection.commit()
            self._initialized = True
            logger.info(f"Workshop store ready at {self.db_path}")

    async def close(self) -> None:
        """
        Close the persistent database connection.
        """
        if self._connection:
            await self._connection.close()
            self._connection = None
            self._initialized = False

    async def __aenter__(self) -> AsyncSqlWorkshopRepo:
        """Async context manager entry."""
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def save_workshop(self, record: WorkshopRecord) -> WorkshopDetail:
        await self._initialize()

        if not self._connection:
            raise RuntimeError("Database connection not available")

        now = datetime.now(UTC).isoformat()
        async with self._connection_lock:
            try:
                row = await self._insert(record, now)
            except aiosqlite.Error as e:
                logger.error(f"Failed to save workshop {record.topic_title!r}: {e}")
                raise RepositoryError(f"Failed to save workshop: {e}") from e

        if row is None:
            raise RepositoryError("Inserted workshop row not found")
        logger.info(f"Saved workshop {row['id']}: {record.topic_title!r}")
        return WorkshopDetail.model_validate(self._row_to_dict(row))

    async def _insert(self, record: WorkshopRecord, now: str) -> Any:
        """Insert one row and read it back; caller holds the connection lock."""
        if not self._connection:
            raise RuntimeError("Database connection not available")
        cursor = await self._connection.execute("""
            INSERT INTO workshops (
                topic_title, topic_background, topic_pain_points,
                topic_tried_actions, total_score, golden_questions,
                participants, reflections, action_plan, summary_report,
                created_at, completed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            record.topic_title,
            record.topic_background,
            record.topic_pain_points,
            record.topic_tried_actions,
            record.total_score,
            json.dumps(record.golden_questions, ensure_ascii=False),
            json.dumps(record.participants, ensure_ascii=False),
            record.reflections,
            json.dumps(
                [entry.model_dump() for entry in record.action_plan],
                ensure_ascii=False,
            ),
            record.summary_report,
            now,
            now,
        ))
        workshop_id = cursor.lastrowid
        await cursor.close()
        await self._connection.commit()

        cursor = await self._connection.execute(
            "SELECT * FROM workshops WHERE id = ?", (workshop_id,)
        )
        row = await cursor.fetchone()
        await cursor.close()
        return row

    async def list_workshops(
        self, limit: int = MAX_HISTORY_ROWS
    ) -> list[WorkshopSummary]:
        await self._initialize()

        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            cursor = await self._connection.execute(
                f"SELECT {SUMMARY_COLUMNS} FROM workshops "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (clamp_limit(limit),)
            )
            rows = await cursor.fetchall()
            await cursor.close()
        return [
            WorkshopSummary.model_validate(self._row_to_dict(row)) for row in rows
        ]

    async def get_workshop(self, workshop_id: int) -> WorkshopDetail | None:
        await self._initialize()

        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            cursor = await self._connection.execute(
                "SELECT * FROM workshops WHERE id = ?", (workshop_id,)
            )
            row = await cursor.fetchone()
            await cursor.close()
        return WorkshopDetail.model_validate(self._row_to_dict(row)) if row else None

    def _row_to_dict(self, row: Any) -> dict[str, Any]:
        """
        Convert a database row into a plain dict; JSON columns stay as text
        and are decoded by the models.
        """
        return {key: row[key] for key in row.keys()}
