"""Onboarding specialist assistant.

Answers sub-queries the main assistant delegates through the
CallOnboardingAgent tool. Every query runs on a fresh thread and only the
assistant's reply text is returned, never the history.
"""

import logging
from typing import List, Optional

from openai.types.beta.threads import Message

from .errors import ConfigurationError, InvalidStateError, RunTimeoutError
from .gateway import OpenAIClient
from .models import MessageOrder, MessageRole, text_parts
from .run_loop import DEFAULT_POLL_INTERVAL, poll_run
from .state import ConversationState

logger = logging.getLogger(__name__)


class OnboardingAssistant:
    """
    Specialist bound to one pre-provisioned assistant.

    Usage flow:
    1. initialize() fetches the assistant identity.
    2. handle_customer_message() answers one query per call.
    3. cleanup() or dispose() drops local state.
    """

    def __init__(
        self,
        openai_client: OpenAIClient,
        assistant_id: Optional[str],
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        run_timeout: Optional[float] = None,
    ):
        if not assistant_id:
            raise ConfigurationError("Onboarding assistant id is not configured")
        self.assistant_id = assistant_id
        self.poll_interval = poll_interval
        self.run_timeout = run_timeout
        self._openai_client = openai_client
        self._state = ConversationState()

    @property
    def is_initialized(self) -> bool:
        return self._state.assistant is not None and self._state.client is not None

    @property
    def thread_id(self) -> Optional[str]:
        """Thread of the most recent query, if any."""
        return self._state.thread_id

    async def initialize(self):
        """Reset, then fetch the fixed assistant identity."""
        self.cleanup()
        client = self._openai_client.get_assistant_client()
        self._state.assistant = await client.get_assistant(self.assistant_id)
        self._state.client = client
        logger.info(f"Onboarding assistant ready: {self.assistant_id}")

    def cleanup(self):
        """Drop local state. Safe to call repeatedly; no network calls."""
        self._state.reset()

    async def handle_customer_message(self, content: str) -> str:
        """
        Answer one query on a new thread.

        Returns the latest assistant reply text, or an empty string when
        the assistant produced none. A blank query returns an empty string
        without contacting the service.
        """
        if self._state.assistant is None or self._state.client is None:
            raise InvalidStateError("Onboarding assistant is not initialized. Call initialize() first.")

        if not content or not content.strip():
            logger.warning("Blank onboarding query, returning empty answer")
            return ""

        client = self._state.client
        run = await client.create_thread_and_run(self._state.assistant.id, content)
        self._state.thread_id = run.thread_id

        try:
            outcome = await poll_run(
                client,
                run.thread_id,
                run.id,
                interval=self.poll_interval,
                timeout=self.run_timeout,
            )
        except RunTimeoutError:
            await client.cancel_run(run.thread_id, run.id)
            raise
        if not outcome.succeeded:
            logger.warning(f"Onboarding run {run.id} ended as {outcome.kind.value}: {outcome.last_error}")

        messages = await client.get_messages(run.thread_id, order=MessageOrder.DESCENDING)
        return latest_assistant_text(messages)

    def dispose(self):
        self.cleanup()


def latest_assistant_text(messages: List[Message]) -> str:
    """
    Pick the reply text out of a descending message listing.

    Takes the last assistant message in the listing, then the last
    non-empty text part within it.
    """
    assistant_messages = [m for m in messages if m.role == MessageRole.ASSISTANT]
    if not assistant_messages:
        return ""

    parts = [value for value in text_parts(assistant_messages[-1]) if value]
    return parts[-1] if parts else ""
