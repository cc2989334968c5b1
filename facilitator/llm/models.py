"""
Endpoint and client dataclasses for the workshop completion API.

Every AI call in the workshop goes through one of the endpoints registered
here. The ``streaming`` flag decides whether the response arrives as an SSE
stream of ``{content}`` frames or as a single JSON body.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EndpointName(Enum):
    """Completion endpoints used by the workshop stages."""
    EVALUATE_TOPIC = "evaluate_topic"
    PRE_MORTEM = "pre_mortem"
    CLASSIFY_QUESTION = "classify_question"
    SHADOW_QUESTIONS = "shadow_questions"
    GENERATE_SUMMARY = "generate_summary"


@dataclass(frozen=True)
class CompletionEndpoint:
    """A completion endpoint and how its response is read."""
    name: EndpointName
    path: str
    streaming: bool
    free_text: bool = False


ENDPOINTS: dict[EndpointName, CompletionEndpoint] = {
    EndpointName.EVALUATE_TOPIC: CompletionEndpoint(
        EndpointName.EVALUATE_TOPIC, "/api/evaluate-topic", streaming=True
    ),
    EndpointName.PRE_MORTEM: CompletionEndpoint(
        EndpointName.PRE_MORTEM, "/api/pre-mortem", streaming=True
    ),
    EndpointName.CLASSIFY_QUESTION: CompletionEndpoint(
        EndpointName.CLASSIFY_QUESTION, "/api/classify-question", streaming=False
    ),
    EndpointName.SHADOW_QUESTIONS: CompletionEndpoint(
        EndpointName.SHADOW_QUESTIONS, "/api/shadow-questions", streaming=False
    ),
    EndpointName.GENERATE_SUMMARY: CompletionEndpoint(
        EndpointName.GENERATE_SUMMARY,
        "/api/generate-summary",
        streaming=True,
        free_text=True,
    ),
}

WORKSHOPS_PATH = "/api/workshops"


@dataclass(frozen=True)
class ClientConfig:
    """HTTP client configuration."""
    base_url: str
    api_token: str | None = None

    # Connection settings
    max_connections: int = 10
    max_keepalive: int = 5
    connect_timeout: float = 10.0
    read_timeout: float | None = 60.0
    write_timeout: float = 10.0
    pool_timeout: float = 10.0

    # Streaming
    stream_timeout: float | None = None
    require_event_stream: bool = True

    @classmethod
    def from_sections(
        cls,
        api_config: dict[str, Any],
        http_config: dict[str, Any],
        streaming_config: dict[str, Any],
        api_token: str | None = None,
    ) -> ClientConfig:
        """Build from the validated configuration sections."""
        return cls(
            base_url=api_config["base_url"],
            api_token=api_token,
            max_connections=http_config["max_connections"],
            max_keepalive=http_config["max_keepalive"],
            connect_timeout=http_config["connect_timeout"],
            read_timeout=http_config["read_timeout"],
            write_timeout=http_config["write_timeout"],
            pool_timeout=http_config["pool_timeout"],
            stream_timeout=streaming_config["stream_timeout"],
            require_event_stream=streaming_config["require_event_stream"],
        )
