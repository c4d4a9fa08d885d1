"""OpenAI Assistants API client.

Thin handles over the openai SDK. Every call raises an openai.APIError
subclass on failure (APIStatusError for non-2xx responses,
APIConnectionError for transport failures). Errors are not caught here;
callers decide on retry policy.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from openai import AsyncOpenAI
from openai.types.beta import Assistant
from openai.types.beta.threads import Message, Run
from openai.types.chat.chat_completion import Choice

from .errors import InvalidStateError
from .models import MessageOrder, MessageRole

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
PAGE_LIMIT = 100


def _require_run(run: Optional[Run]):
    # The SDK does not validate payloads, so a reply without an id still parses
    if run is None or not getattr(run, "id", None) or not getattr(run, "thread_id", None):
        raise InvalidStateError("Failed to create a run.")


class AssistantClient:
    """
    Handle for the assistants, threads, runs and messages endpoints.

    Handles:
    - Assistant creation and lookup
    - Thread and run creation
    - Run status retrieval, tool output submission and cancellation
    - Message listing across every page
    """

    def __init__(self, client: AsyncOpenAI):
        self._client = client

    async def create_assistant(
        self,
        name: str,
        instructions: str,
        model: str,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Assistant:
        """Create a new assistant with fixed configuration."""
        assistant = await self._client.beta.assistants.create(
            model=model,
            name=name,
            instructions=instructions,
            tools=tools or [],
        )
        logger.info(f"Created assistant {assistant.id} ({name}, {model})")
        return assistant

    async def get_assistant(self, assistant_id: str) -> Assistant:
        """Fetch an existing assistant by id."""
        assistant = await self._client.beta.assistants.retrieve(assistant_id)
        logger.debug(f"Fetched assistant {assistant.id}")
        return assistant

    async def create_thread_and_run(self, assistant_id: str, content: str) -> Run:
        """Create a thread seeded with one user message and start a run on it."""
        run = await self._client.beta.threads.create_and_run(
            assistant_id=assistant_id,
            thread={"messages": [{"role": MessageRole.USER.value, "content": content}]},
        )
        _require_run(run)
        logger.info(f"Started thread {run.thread_id} with run {run.id}")
        return run

    async def create_message(self, thread_id: str, role: MessageRole, content: str) -> Message:
        """Append a message to an existing thread."""
        return await self._client.beta.threads.messages.create(
            thread_id,
            role=role.value,
            content=content,
        )

    async def create_run(self, thread_id: str, assistant_id: str) -> Run:
        """Start a run against an existing thread."""
        run = await self._client.beta.threads.runs.create(thread_id, assistant_id=assistant_id)
        _require_run(run)
        logger.info(f"Started run {run.id} on thread {thread_id}")
        return run

    async def get_run(self, thread_id: str, run_id: str) -> Run:
        """Fetch current run status."""
        return await self._client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)

    async def submit_tool_output(
        self,
        thread_id: str,
        run_id: str,
        tool_call_id: str,
        output: str,
    ) -> Run:
        """Answer one tool call of a run that requires action."""
        run = await self._client.beta.threads.runs.submit_tool_outputs(
            run_id,
            thread_id=thread_id,
            tool_outputs=[{"tool_call_id": tool_call_id, "output": output}],
        )
        logger.debug(f"Submitted tool output for {tool_call_id} on run {run_id} -> {run.status}")
        return run

    async def cancel_run(self, thread_id: str, run_id: str) -> Run:
        """Ask the service to stop a run so the thread accepts messages again."""
        run = await self._client.beta.threads.runs.cancel(run_id, thread_id=thread_id)
        logger.info(f"Cancelled run {run_id} on thread {thread_id} -> {run.status}")
        return run

    async def get_messages(
        self,
        thread_id: str,
        order: MessageOrder = MessageOrder.ASCENDING,
    ) -> List[Message]:
        """List every message of a thread in the requested order."""
        messages: List[Message] = []
        # Iterating the paginator fetches further pages until has_more is false
        async for message in self._client.beta.threads.messages.list(
            thread_id,
            order=order.value,
            limit=PAGE_LIMIT,
        ):
            messages.append(message)

        logger.debug(f"Fetched {len(messages)} messages from thread {thread_id}")
        return messages


class ChatClient:
    """Chat completions against one model."""

    def __init__(self, client: AsyncOpenAI, model: str):
        self._client = client
        self.model = model

    async def complete_chat(self, messages: List[Dict[str, Any]]) -> Optional[Choice]:
        """Return the first choice of a non-streaming completion, None when there is none."""
        completion = await self._client.chat.completions.create(model=self.model, messages=messages)
        return completion.choices[0] if completion.choices else None


class OpenAIClient:
    """
    Owns the connection to the remote service.

    Client handles obtained from it share one AsyncOpenAI instance and its
    httpx.AsyncClient, and stay valid until close().
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        max_retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=timeout,
            max_retries=max_retries,
            http_client=http_client,
        )

    def get_assistant_client(self) -> AssistantClient:
        return AssistantClient(self.client)

    def get_chat_client(self, model: str) -> ChatClient:
        return ChatClient(self.client, model)

    async def close(self):
        """Close the SDK client and its HTTP connection pool."""
        await self.client.close()
