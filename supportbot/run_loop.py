"""
Run polling loop shared by the orchestrator and the onboarding assistant.

A run is polled at a fixed interval until its status is terminal. Tool
calls the run is waiting on are handed to a callback whose text output is
submitted back to the run; submission moves the run forward, so polling
simply continues afterwards.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from openai.types.beta.threads import RequiredActionFunctionToolCall

from .errors import RunTimeoutError
from .gateway import AssistantClient
from .models import RunOutcome, run_status, run_tool_calls

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.25

# Returns the tool output text, or None to leave the call unanswered.
ToolCallHandler = Callable[[RequiredActionFunctionToolCall], Awaitable[Optional[str]]]


async def poll_run(
    client: AssistantClient,
    thread_id: str,
    run_id: str,
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    timeout: Optional[float] = None,
    on_tool_call: Optional[ToolCallHandler] = None,
) -> RunOutcome:
    """
    Poll a run until it reaches a terminal status.

    Raises RunTimeoutError once ``timeout`` seconds have elapsed without a
    terminal status. With no timeout the loop only ends on a terminal
    status or when the awaiting task is cancelled.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout else None
    seen_tool_call_ids: Set[str] = set()
    polls = 0

    while True:
        await asyncio.sleep(interval)
        run = await client.get_run(thread_id, run_id)
        status = run_status(run)
        polls += 1

        for tool_call in run_tool_calls(run):
            # Dedupe: a run can report the same call again before our submission lands
            if tool_call.id in seen_tool_call_ids:
                continue
            seen_tool_call_ids.add(tool_call.id)

            output = None
            if on_tool_call is not None:
                output = await on_tool_call(tool_call)

            if output is None:
                logger.warning(
                    f"Unanswered tool call {tool_call.id} ({tool_call.function.name}) on run {run_id}"
                )
                continue

            logger.info(f"Tool call {tool_call.function.name} answered ({len(output)} chars)")
            await client.submit_tool_output(thread_id, run_id, tool_call.id, output)

        if status.is_terminal:
            logger.info(f"Run {run_id} finished as {status.value} after {polls} polls")
            return RunOutcome.from_run(run)

        if deadline is not None and loop.time() >= deadline:
            logger.error(f"Run {run_id} exceeded {timeout}s, last status {status.value}")
            raise RunTimeoutError(run_id, timeout, status.value)
