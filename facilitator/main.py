"""
Command-line runner for a facilitation workshop.

Usage:
    python -m facilitator.main run workshop.json
    python -m facilitator.main history
    python -m facilitator.main show <id>

The workshop file holds the inputs a facilitator would type into the four
stage screens:

    {
      "topic": {"title": ..., "background": ..., "painPoints": ...,
                "triedActions": ...},
      "questions": ["...", {"text": "...", "author": "...", "golden": true}],
      "adoptShadowQuestions": false,
      "reflections": "...",
      "actionPlan": [{"owner": ..., "action": ..., "deadline": ...}]
    }
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Any

from facilitator.config import Configuration
from facilitator.history.repositories.base import WorkshopRepository
from facilitator.history.repositories.http_repo import HttpWorkshopRepo
from facilitator.history.repositories.sql_repo import AsyncSqlWorkshopRepo
from facilitator.llm.client import WorkshopAPIClient
from facilitator.llm.models import ClientConfig
from facilitator.llm.streaming.consumer import CancellationToken
from facilitator.logging_utils import operation_context
from facilitator.workshop.models import ActionItem
from facilitator.workshop.service import WorkshopService

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)


def configure_logging(config: Configuration) -> None:
    """Apply the configured level and format to the root logger."""
    logging_config = config.get_logging_config()
    level = logging_config.get("level", "INFO")
    root = logging.getLogger()
    root.setLevel(level)
    fmt = logging_config.get("format")
    if fmt:
        for handler in root.handlers:
            handler.setFormatter(logging.Formatter(fmt))


def create_client(config: Configuration) -> WorkshopAPIClient:
    """Create the backend client from the validated configuration sections."""
    client_config = ClientConfig.from_sections(
        config.get_api_config(),
        config.get_http_client_config(),
        config.get_streaming_config(),
        api_token=config.api_token,
    )
    logging.info(f"Using workshop backend at {client_config.base_url}")
    return WorkshopAPIClient(client_config)


def create_repository(
    config: Configuration, client: WorkshopAPIClient
) -> WorkshopRepository:
    """Create repository instance based on configuration."""
    repo_config = config.get_repository_config()
    if repo_config["backend"] == "sqlite":
        db_path = repo_config["path"]
        logging.info(f"Using AsyncSqlWorkshopRepo with database path: {db_path}")
        return AsyncSqlWorkshopRepo(db_path)
    logging.info("Using HttpWorkshopRepo")
    return HttpWorkshopRepo(client)


def load_workshop_file(path: str) -> dict[str, Any]:
    """Load the workshop inputs from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict) or "topic" not in data:
        raise ValueError(f"{path} must be a JSON object with a 'topic' key")
    return data


class SummaryPrinter:
    """Writes only the newly streamed part of the summary to stdout."""

    def __init__(self) -> None:
        self.printed = 0

    def __call__(self, text: str) -> None:
        sys.stdout.write(text[self.printed:])
        sys.stdout.flush()
        self.printed = len(text)


async def run_workshop(
    service: WorkshopService,
    inputs: dict[str, Any],
    cancel: CancellationToken,
) -> int:
    """Drive the four stages; returns a process exit code."""
    session = service.session

    # Stage 1
    evaluation = await service.evaluate_topic(inputs["topic"], cancel=cancel)
    if evaluation is not None:
        logging.info(f"Topic score: {evaluation.total_score}/10")
        for suggestion in evaluation.suggestions:
            logging.info(f"Suggestion: {suggestion}")
    if cancel.cancelled:
        return 130

    # Stage 2
    session.advance_to(2)
    pre_mortem = await service.run_pre_mortem(cancel=cancel)
    if pre_mortem is not None:
        logging.info(f"Pre-mortem warning: {pre_mortem.warning}")
    if cancel.cancelled:
        return 130

    # Stage 3
    session.advance_to(3)
    entries = inputs.get("questions", [])
    async with operation_context("brainstorm", context={"questions": len(entries)}):
        for entry in entries:
            if isinstance(entry, str):
                entry = {"text": entry}
            question = await service.classify_question(
                entry["text"], author=entry.get("author")
            )
            if entry.get("golden"):
                session.toggle_golden(question.id)

    missing = service.missing_dimensions()
    if missing:
        logging.info(f"Under-represented dimensions: {', '.join(missing)}")
        shadow = await service.detect_blind_spots()
        if shadow.missing_alert:
            logging.info(shadow.missing_alert)
        if inputs.get("adoptShadowQuestions"):
            for suggestion in list(session.shadow_suggestions):
                service.adopt_shadow_question(suggestion.text)

    if not session.golden_questions:
        logging.error("Mark at least one question as golden to continue")
        return 1

    # Stage 4
    session.advance_to(4)
    session.set_reflections(inputs.get("reflections", ""))
    for item in inputs.get("actionPlan", []):
        session.add_action_item(ActionItem.model_validate(item))

    report = await service.generate_summary(
        on_progress=SummaryPrinter(), cancel=cancel
    )
    sys.stdout.write("\n")
    if report is None:
        return 130 if cancel.cancelled else 1
    logging.info(f"Workshop saved: {session.is_saved}")
    return 0 if session.is_saved else 1


async def show_history(service: WorkshopService) -> int:
    for row in await service.list_history():
        created = row.created_at.isoformat() if row.created_at else "-"
        print(f"{row.id}\t{created}\t{row.total_score}\t{row.topic_title}")
    return 0


async def show_detail(service: WorkshopService, workshop_id: int) -> int:
    detail = await service.get_history_detail(workshop_id)
    if detail is None:
        logging.error(f"Workshop {workshop_id} not found")
        return 1
    print(detail.model_dump_json(indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="facilitator")
    parser.add_argument("--config", help="Path to an alternative config.yaml")
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Run a workshop from a JSON file")
    run.add_argument("workshop_file")
    commands.add_parser("history", help="List finished workshops")
    show = commands.add_parser("show", help="Show one finished workshop")
    show.add_argument("workshop_id", type=int)
    return parser


async def main(argv: list[str] | None = None) -> int:
    """Main entry point with graceful cancellation on SIGINT/SIGTERM."""
    args = build_parser().parse_args(argv)
    config = Configuration(args.config)
    configure_logging(config)

    cancel = CancellationToken()

    def signal_handler() -> None:
        """Cancel the in-flight stream on shutdown signals."""
        logging.info("Received shutdown signal, cancelling workshop...")
        cancel.cancel("shutdown signal")

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)

    async with create_client(config) as client:
        repo = create_repository(config, client)
        service = WorkshopService(
            client, repo, workshop_config=config.get_workshop_config()
        )
        try:
            if args.command == "run":
                return await run_workshop(
                    service, load_workshop_file(args.workshop_file), cancel
                )
            if args.command == "history":
                return await show_history(service)
            return await show_detail(service, args.workshop_id)
        except Exception as e:
            logging.error(f"Application error: {e}")
            raise
        finally:
            await repo.close()
            logging.info("Application shutdown complete")


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
