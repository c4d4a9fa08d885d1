"""Lightweight chat session over the chat completions endpoint.

Keeps a bounded local history instead of a remote thread. Finish reasons
other than "stop" come back as CompletionOutcome values carrying an
UnsupportedOutcomeError; nothing is raised for them.
"""

import logging
from typing import Any, Callable, Dict, List

from .errors import UnsupportedOutcomeError
from .gateway import ChatClient
from .models import CompletionOutcome, FinishReason

logger = logging.getLogger(__name__)

MAX_MESSAGES = 100

_UNSUPPORTED_DETAILS = {
    FinishReason.TOOL_CALLS: "tool calls are not handled by the chat session",
    FinishReason.LENGTH: "incomplete output, token limit reached",
    FinishReason.CONTENT_FILTER: "content omitted by a content filter",
    FinishReason.FUNCTION_CALL: "function calls are deprecated in favor of tool calls",
}

ReplyListener = Callable[[str], None]


class ChatSession:
    """Chat completion session with a history window of MAX_MESSAGES."""

    def __init__(self, chat_client: ChatClient):
        self._chat_client = chat_client
        self._messages: List[Dict[str, Any]] = []
        self._listeners: List[ReplyListener] = []

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return list(self._messages)

    def subscribe(self, listener: ReplyListener):
        self._listeners.append(listener)

    def unsubscribe(self, listener: ReplyListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start_session(self):
        self._cleanup()

    def end_session(self):
        self._cleanup()

    def _cleanup(self):
        self._messages.clear()
        self._listeners.clear()

    def _append(self, message: Dict[str, Any]):
        self._messages.append(message)
        if len(self._messages) > MAX_MESSAGES:
            del self._messages[0]

    async def add_message(self, content: str) -> CompletionOutcome:
        """Append a user message and request the assistant's reply."""
        self._append({"role": "user", "content": content})
        choice = await self._chat_client.complete_chat(self._messages)

        raw_reason = choice.finish_reason if choice is not None else None
        reason = FinishReason.parse(raw_reason)
        if reason != FinishReason.STOP:
            detail = _UNSUPPORTED_DETAILS.get(reason, f"unrecognized finish reason {raw_reason!r}")
            logger.warning(f"Chat completion not usable: {reason.value} ({detail})")
            return CompletionOutcome(
                finish_reason=reason,
                error=UnsupportedOutcomeError(reason.value, detail),
            )

        text = choice.message.content or ""
        self._append({"role": "assistant", "content": text})

        if text.strip():
            for listener in list(self._listeners):
                listener(text)

        return CompletionOutcome(finish_reason=reason, content=text)
