"""Data models for the support bot.

Remote resources (assistants, runs, messages) are the openai SDK's own
types; this module adds the enums and helpers the application reads them
through, plus its API payloads and result variants.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from openai.types.beta.threads import (
    Annotation,
    Message,
    RequiredActionFunctionToolCall,
    Run,
)
from pydantic import BaseModel

from .errors import UnsupportedOutcomeError


# ============================================================================
# Assistants API Views
# ============================================================================

class RunStatus(str, Enum):
    """Lifecycle status of a run."""
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({
    RunStatus.CANCELLED,
    RunStatus.FAILED,
    RunStatus.COMPLETED,
    RunStatus.INCOMPLETE,
    RunStatus.EXPIRED,
})


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageOrder(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


def run_status(run: Run) -> RunStatus:
    return RunStatus(run.status)


def run_tool_calls(run: Run) -> List[RequiredActionFunctionToolCall]:
    """Tool calls the run is waiting on, empty when none."""
    action = run.required_action
    if action is None or action.submit_tool_outputs is None:
        return []
    return list(action.submit_tool_outputs.tool_calls or [])


def text_parts(message: Message) -> List[str]:
    """Values of the message's text content parts, in order; other part types are skipped."""
    return [part.text.value for part in message.content if part.type == "text" and part.text]


def message_text(message: Message) -> str:
    """All non-empty text parts joined by newlines."""
    return "\n".join(value for value in text_parts(message) if value)


def message_annotations(message: Message) -> List[Annotation]:
    return [
        annotation
        for part in message.content if part.type == "text" and part.text
        for annotation in part.text.annotations
    ]


def annotation_file_id(annotation: Annotation) -> Optional[str]:
    """File referenced by a citation or file-path annotation."""
    source = getattr(annotation, "file_citation", None) or getattr(annotation, "file_path", None)
    return source.file_id if source is not None else None


# ============================================================================
# HTTP API Models
# ============================================================================

class SendMessageRequest(BaseModel):
    content: str


class MessageRow(BaseModel):
    """Renderable chat row."""
    alignment: str
    text: str
    timestamp: str


class MessagesResponse(BaseModel):
    rows: List[MessageRow]
    run_status: Optional[str] = None


class ChatReply(BaseModel):
    finish_reason: str
    content: Optional[str] = None
    error: Optional[str] = None


class WindowPosition(BaseModel):
    x: float
    y: float


# ============================================================================
# Internal State Models
# ============================================================================

@dataclass
class RunOutcome:
    """Terminal result of polling a run.

    ``kind`` is one of the terminal statuses; ``last_error`` is the
    service's error message for runs that did not complete.
    """
    run: Run
    kind: RunStatus
    last_error: Optional[str] = None

    @classmethod
    def from_run(cls, run: Run) -> "RunOutcome":
        error = run.last_error.message if run.last_error is not None else None
        return cls(run=run, kind=run_status(run), last_error=error)

    @property
    def succeeded(self) -> bool:
        return self.kind == RunStatus.COMPLETED


class FinishReason(str, Enum):
    """Why a chat completion stopped."""
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    FUNCTION_CALL = "function_call"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "FinishReason":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class CompletionOutcome:
    """Result of one chat completion turn.

    Exactly one of ``content`` and ``error`` is meaningful: ``content`` for
    STOP, ``error`` for every other finish reason.
    """
    finish_reason: FinishReason
    content: Optional[str] = None
    error: Optional[UnsupportedOutcomeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
