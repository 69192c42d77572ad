"""Progress events emitted by an investigation run, and their SSE framing."""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field


class ProgressKind(str, Enum):
    """Kinds of entries in the investigation log shown to the user."""

    STATUS = "status"
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    LLM_RESULT = "llm-result"
    VULN_RESULT = "vuln-result"


class ProgressEvent(BaseModel):
    """One append-only entry of an investigation's progress log."""

    model_config = ConfigDict(frozen=True)

    kind: ProgressKind = Field(description="Entry kind", examples=["status"])
    message: str = Field(description="Human-readable log line", examples=["Starting LLM training data trace..."])
    payload: Any = Field(default=None, description="Structured stage output, if any")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_sse(self) -> "SSEEvent":
        return SSEEvent(event=SSEEventType.PROGRESS, data=self.model_dump(mode="json"))


ProgressSink = Callable[[ProgressEvent], None]


def discard_progress(_: ProgressEvent) -> None:
    """Default sink for callers that do not watch progress."""


# --- SSE framing ---


class SSEEventType(str, Enum):
    """SSE event names on the investigation stream."""

    PROGRESS = "progress"
    HEARTBEAT = "heartbeat"
    COMPLETE = "complete"
    ERROR = "error"


class SSEEvent(BaseModel):
    """Base SSE event model."""

    event: SSEEventType = Field(description="Event type identifier")
    data: dict[str, Any] = Field(description="Event payload data")

    def format(self) -> str:
        """Format as SSE message: 'event: type\\ndata: json\\n\\n'."""
        return f"event: {self.event.value}\ndata: {json.dumps(self.data, ensure_ascii=False)}\n\n"


class HeartbeatEvent(SSEEvent):
    """Keep-alive sent as an SSE comment so clients need no handler for it."""

    event: SSEEventType = SSEEventType.HEARTBEAT
    data: dict[str, Any] = Field(default_factory=dict)

    def format(self) -> str:
        return ": keepalive\n\n"


class CompleteEvent(SSEEvent):
    """Terminal event carrying the finished StructuredReport."""

    event: SSEEventType = SSEEventType.COMPLETE
    data: dict[str, Any] = Field(
        description="StructuredReport serialized",
        examples=[{"title": "...", "overall_risk": "high", "investigation_results": {"found_pdfs": []}}],
    )


class ErrorEvent(SSEEvent):
    """Terminal event when the investigation fails."""

    event: SSEEventType = SSEEventType.ERROR
    data: dict[str, str] = Field(
        description="Safe error message and error type",
        examples=[
            {
                "error": "Unable to generate the investigation report. Please try again.",
                "error_type": "SynthesisError",
            }
        ],
    )
