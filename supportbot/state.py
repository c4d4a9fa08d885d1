"""Conversation state and message listeners."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from openai.types.beta import Assistant
from openai.types.beta.threads import Message

from .gateway import AssistantClient

logger = logging.getLogger(__name__)

MessageListener = Callable[[List[Message]], None]


@dataclass
class ConversationState:
    """
    Local state of one conversation.

    Tracks:
    - Assistant identity (set on initialize)
    - Client handle used for every remote call
    - Thread id (set on the first message)
    """
    assistant: Optional[Assistant] = None
    client: Optional[AssistantClient] = None
    thread_id: Optional[str] = None

    def reset(self):
        """Drop every reference. The remote thread is left as is."""
        self.assistant = None
        self.client = None
        self.thread_id = None


class MessageListeners:
    """
    Observer list for "messages updated" notifications.

    Listeners are called synchronously, in registration order, with the
    full ordered message history of the thread.
    """

    def __init__(self):
        self._listeners: List[MessageListener] = []

    def add(self, listener: MessageListener):
        self._listeners.append(listener)

    def remove(self, listener: MessageListener):
        """Detach a listener; unknown listeners are ignored."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def clear(self):
        self._listeners.clear()

    def emit(self, messages: List[Message]):
        # Copy so a listener may detach itself while being notified
        for listener in list(self._listeners):
            listener(messages)
        logger.debug(f"Notified {len(self._listeners)} listeners with {len(messages)} messages")

    def __len__(self) -> int:
        return len(self._listeners)
