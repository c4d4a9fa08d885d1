"""
Main support orchestrator.

Owns one assistant identity and at most one thread for the lifetime of a
session. Each customer message starts a run on that thread; the run is
polled to a terminal status, CallOnboardingAgent tool calls are delegated
to the onboarding assistant along the way, and listeners receive the full
thread history once the run is done.

Not safe for overlapping calls on one instance: callers must await each
handle_customer_message() before sending the next.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import openai
from openai.types.beta.threads import RequiredActionFunctionToolCall

from .errors import InvalidArgumentError, InvalidStateError, RunTimeoutError
from .gateway import AssistantClient, OpenAIClient
from .models import MessageOrder, MessageRole, RunOutcome
from .onboarding import OnboardingAssistant
from .run_loop import DEFAULT_POLL_INTERVAL, poll_run
from .state import ConversationState, MessageListeners

logger = logging.getLogger(__name__)

ONBOARDING_FUNCTION = "CallOnboardingAgent"

ONBOARDING_TOOL = {
    "type": "function",
    "function": {
        "name": ONBOARDING_FUNCTION,
        "description": "Ask the onboarding specialist a question about getting started with the product.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The customer's onboarding question."},
            },
            "required": ["query"],
        },
    },
}


class Orchestrator:
    """
    Conversation orchestrator for the primary support assistant.

    Usage flow:
    1. initialize() creates or fetches the assistant.
    2. handle_customer_message() for each user input.
    3. Attach to message_received to receive thread history.
    4. cleanup() or dispose() when finished, or use ``async with``.
    """

    def __init__(
        self,
        openai_client: OpenAIClient,
        *,
        assistant_id: Optional[str] = None,
        name: str = "SupportBot",
        instructions: str = "",
        model: str = "gpt-4o-mini",
        onboarding: Optional[OnboardingAssistant] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        run_timeout: Optional[float] = None,
    ):
        self.assistant_id = assistant_id
        self.name = name
        self.instructions = instructions
        self.model = model
        self.poll_interval = poll_interval
        self.run_timeout = run_timeout
        self.onboarding = onboarding
        self.message_received = MessageListeners()
        self._openai_client = openai_client
        self._state = ConversationState()

    async def __aenter__(self) -> "Orchestrator":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.dispose()

    @property
    def is_initialized(self) -> bool:
        return self._state.assistant is not None and self._state.client is not None

    @property
    def thread_id(self) -> Optional[str]:
        return self._state.thread_id

    @property
    def current_assistant_id(self) -> Optional[str]:
        return self._state.assistant.id if self._state.assistant else None

    async def initialize(self):
        """
        Reset all local state, then establish the assistant identity.

        Fetches the configured assistant when an id was given, otherwise
        creates a new one. The onboarding assistant is initialized too.
        """
        self.cleanup()

        client = self._openai_client.get_assistant_client()
        if self.assistant_id:
            assistant = await client.get_assistant(self.assistant_id)
        else:
            assistant = await client.create_assistant(
                name=self.name,
                instructions=self.instructions,
                model=self.model,
                tools=self._tools(),
            )
        self._state.assistant = assistant
        self._state.client = client
        logger.info(f"Orchestrator ready with assistant {assistant.id}")

        if self.onboarding is not None:
            await self.onboarding.initialize()

    def cleanup(self):
        """Drop identity, thread, client and listeners. No network calls."""
        if self.onboarding is not None:
            self.onboarding.cleanup()
        self._state.reset()
        self.message_received.clear()

    def dispose(self):
        self.cleanup()
        if self.onboarding is not None:
            self.onboarding.dispose()

    async def handle_customer_message(self, content: str) -> RunOutcome:
        """
        Send one customer message and wait for the assistant to finish.

        The first message creates the thread; later ones append to it.
        Listeners receive the full ascending history once the run is
        terminal. Remote errors propagate unchanged.
        """
        if self._state.assistant is None:
            raise InvalidStateError("Assistant is not initialized. Call initialize() first.")

        if not content or not content.strip():
            raise InvalidArgumentError("Content cannot be empty or whitespace.")

        if self._state.client is None:
            raise InvalidStateError("Assistant client is not initialized. Call initialize() first.")

        client = self._state.client
        assistant_id = self._state.assistant.id

        if not self._state.thread_id:
            run = await client.create_thread_and_run(assistant_id, content)
            self._state.thread_id = run.thread_id
        else:
            await client.create_message(self._state.thread_id, MessageRole.USER, content)
            run = await client.create_run(self._state.thread_id, assistant_id)

        try:
            outcome = await poll_run(
                client,
                self._state.thread_id,
                run.id,
                interval=self.poll_interval,
                timeout=self.run_timeout,
                on_tool_call=self._handle_tool_call,
            )
        except RunTimeoutError:
            await self._abandon_run(client, run.id)
            raise

        if not outcome.succeeded:
            logger.warning(f"Run {run.id} ended as {outcome.kind.value}: {outcome.last_error}")

        await self._notify_messages(client)
        return outcome

    async def _abandon_run(self, client: AssistantClient, run_id: str):
        """
        Cancel a run that outlived the poll bound.

        The service rejects new messages on a thread with an active run, so
        when the cancel itself fails the thread is dropped and the next
        message starts a new one.
        """
        try:
            await client.cancel_run(self._state.thread_id, run_id)
        except openai.APIError as e:
            logger.warning(f"Could not cancel run {run_id}, dropping thread {self._state.thread_id}: {e}")
            self._state.thread_id = None

    async def _handle_tool_call(self, tool_call: RequiredActionFunctionToolCall) -> Optional[str]:
        if tool_call.function.name != ONBOARDING_FUNCTION or self.onboarding is None:
            return None

        query = parse_query(tool_call.function.arguments)
        logger.info(f"Delegating to onboarding assistant: {query[:80]!r}")
        return await self.onboarding.handle_customer_message(query)

    async def _notify_messages(self, client: AssistantClient):
        # Oldest first; listeners replace their view with this list
        messages = await client.get_messages(self._state.thread_id, order=MessageOrder.ASCENDING)
        self.message_received.emit(messages)

    def _tools(self) -> List[Dict[str, Any]]:
        return [ONBOARDING_TOOL] if self.onboarding is not None else []


def parse_query(arguments: Optional[str]) -> str:
    """Extract the ``query`` string from tool-call arguments, "" if absent or malformed."""
    if not arguments:
        return ""
    try:
        data = json.loads(arguments)
    except json.JSONDecodeError:
        logger.debug(f"Ignoring malformed tool arguments: {arguments[:100]}")
        return ""

    if isinstance(data, dict) and isinstance(data.get("query"), str):
        return data["query"]
    return ""
