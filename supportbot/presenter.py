"""Session presenter: maps thread history into renderable chat rows."""

import logging
from datetime import datetime
from typing import List, Optional

from openai.types.beta.threads import Message

from .models import MessageRole, MessageRow, RunOutcome, message_text
from .orchestrator import Orchestrator

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%I:%M %p"


def to_row(message: Message) -> MessageRow:
    """User messages align right, assistant messages left."""
    alignment = "right" if message.role == MessageRole.USER else "left"
    created = datetime.fromtimestamp(message.created_at) if message.created_at else datetime.now()
    return MessageRow(
        alignment=alignment,
        text=message_text(message),
        timestamp=created.strftime(TIMESTAMP_FORMAT),
    )


class ChatPresenter:
    """
    UI-facing holder of the orchestrator.

    load() and unload() follow the view lifecycle. Every notification
    replaces ``rows`` wholesale.
    """

    def __init__(self, orchestrator: Orchestrator):
        self.orchestrator = orchestrator
        self.rows: List[MessageRow] = []
        self.last_outcome: Optional[RunOutcome] = None

    async def load(self):
        self.rows = []
        await self.orchestrator.initialize()
        self.orchestrator.message_received.add(self._on_messages)

    def unload(self):
        self.orchestrator.message_received.remove(self._on_messages)
        self.orchestrator.cleanup()
        self.rows = []

    async def reset(self):
        """Start a fresh conversation."""
        self.unload()
        await self.load()

    async def send(self, text: str) -> RunOutcome:
        self.last_outcome = await self.orchestrator.handle_customer_message(text)
        return self.last_outcome

    def _on_messages(self, messages: List[Message]):
        self.rows = [to_row(m) for m in messages]
        logger.debug(f"Rendered {len(self.rows)} rows")
