"""Application context built once at startup and passed to every component."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

import httpx

from .chat_session import ChatSession
from .config import Config
from .gateway import OpenAIClient
from .onboarding import OnboardingAssistant
from .orchestrator import Orchestrator
from .presenter import ChatPresenter
from .window_settings import LocalSettings, WindowPositionStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Every long-lived collaborator of one running application."""
    config: Config
    openai_client: OpenAIClient
    orchestrator: Orchestrator
    presenter: ChatPresenter
    chat_session: ChatSession
    window_positions: WindowPositionStore
    # The orchestrator assumes sequential sends; the HTTP host serializes them
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @classmethod
    def build(
        cls,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AppContext":
        """Wire components from a validated config. No network calls."""
        config.validate()

        openai_client = OpenAIClient(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            transport=transport,
        )

        onboarding = None
        if config.onboarding_assistant_id:
            onboarding = OnboardingAssistant(
                openai_client,
                config.onboarding_assistant_id,
                poll_interval=config.poll_interval,
                run_timeout=config.run_timeout_or_none,
            )
        else:
            logger.warning("No SUPPORTBOT_ONBOARDING_ASSISTANT_ID configured - onboarding delegation disabled")

        orchestrator = Orchestrator(
            openai_client,
            assistant_id=config.assistant_id,
            name=config.assistant_name,
            instructions=config.assistant_instructions,
            model=config.model,
            onboarding=onboarding,
            poll_interval=config.poll_interval,
            run_timeout=config.run_timeout_or_none,
        )

        return cls(
            config=config,
            openai_client=openai_client,
            orchestrator=orchestrator,
            presenter=ChatPresenter(orchestrator),
            chat_session=ChatSession(openai_client.get_chat_client(config.chat_model)),
            window_positions=WindowPositionStore(LocalSettings(config.settings_path)),
        )

    async def close(self):
        """Release everything in reverse order of acquisition."""
        self.chat_session.end_session()
        self.presenter.unload()
        self.orchestrator.dispose()
        await self.openai_client.close()

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> AsyncIterator["AppContext"]:
        """Build the context, load the presenter, and always release on exit."""
        ctx = cls.build(config, transport=transport)
        try:
            ctx.chat_session.start_session()
            await ctx.presenter.load()
            yield ctx
        finally:
            await ctx.close()
            logger.info("Application context closed")
