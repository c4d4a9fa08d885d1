"""
Support Bot - Main Entry Point

Local chat server in front of an OpenAI assistant. A primary assistant
handles the conversation and delegates onboarding questions to a
specialist assistant through a function tool.

Usage:
    python -m supportbot.main

Environment Variables:
    OPENAI_API_KEY                      - Service credential (required)
    OPENAI_BASE_URL                     - API base URL (default: https://api.openai.com/v1)
    SUPPORTBOT_ASSISTANT_ID             - Existing primary assistant; created when unset
    SUPPORTBOT_ONBOARDING_ASSISTANT_ID  - Onboarding specialist; delegation disabled when unset
    SUPPORTBOT_MODEL                    - Model for a created assistant (default: gpt-4o-mini)
    SUPPORTBOT_POLL_INTERVAL            - Seconds between run polls (default: 0.25)
    SUPPORTBOT_RUN_TIMEOUT              - Max seconds per run, 0 for no bound (default: 300)
    SUPPORTBOT_MAX_RETRIES              - SDK retries for transient remote errors (default: 2)
    SUPPORTBOT_SETTINGS_PATH            - Local settings file
    SUPPORTBOT_LOG_LEVEL                - Log level (default: INFO)
    SUPPORTBOT_LOG_FILE                 - Daily rotating log file, 7 kept
    SUPPORTBOT_HOST / SUPPORTBOT_PORT   - Server address (default: 127.0.0.1:8000)
"""

import logging
import sys
from contextlib import asynccontextmanager
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

import httpx
import openai
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api import router as api_router
from .config import Config
from .context import AppContext
from .errors import ConfigurationError, InvalidArgumentError, InvalidStateError, RunTimeoutError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: Config):
    """Log to stdout, plus a daily rotating file when configured."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(TimedRotatingFileHandler(config.log_file, when="midnight", backupCount=7))

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": type(exc).__name__, "detail": str(exc)})


def create_app(
    config: Optional[Config] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the FastAPI application. ``transport`` overrides the HTTP transport to the remote service."""
    config = config or Config()
    configure_logging(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown lifecycle."""

        # Startup
        logger.info("=" * 60)
        logger.info("Support Bot Starting")
        logger.info("=" * 60)
        logger.info(f"API base URL: {config.base_url}")
        logger.info(f"Assistant: {config.assistant_id or f'create {config.assistant_name} ({config.model})'}")
        logger.info(f"Onboarding assistant: {config.onboarding_assistant_id or 'disabled'}")
        logger.info(f"Run timeout: {config.run_timeout_or_none or 'unbounded'}")

        async with AppContext.open(config, transport=transport) as ctx:
            app.state.context = ctx
            logger.info(f"Server ready at http://{config.host}:{config.port}")
            yield

            # Shutdown
            logger.info("Shutting down...")

        logger.info("Shutdown complete")

    app = FastAPI(
        title="Support Bot",
        description=(
            "Chat front end for an OpenAI assistant. Onboarding questions "
            "are delegated to a specialist assistant via tool calls."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.exception_handler(InvalidStateError)
    async def invalid_state(request: Request, exc: InvalidStateError):
        return _error(409, exc)

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument(request: Request, exc: InvalidArgumentError):
        return _error(422, exc)

    @app.exception_handler(RunTimeoutError)
    async def run_timeout(request: Request, exc: RunTimeoutError):
        return _error(504, exc)

    @app.exception_handler(openai.APIStatusError)
    async def remote_error(request: Request, exc: openai.APIStatusError):
        logger.error(f"Remote service error: {exc.status_code} {exc.request.url}")
        return _error(502, exc)

    @app.exception_handler(openai.APIConnectionError)
    async def remote_unreachable(request: Request, exc: openai.APIConnectionError):
        logger.error(f"Remote service unreachable: {exc}")
        return _error(502, exc)

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint."""
        ctx = request.app.state.context
        return {
            "status": "healthy" if ctx.orchestrator.is_initialized else "initializing",
            "assistant_id": ctx.orchestrator.current_assistant_id,
            "thread_id": ctx.orchestrator.thread_id,
            "onboarding": ctx.orchestrator.onboarding is not None,
            "listeners": len(ctx.orchestrator.message_received),
        }

    @app.get("/")
    async def root():
        """Root endpoint with basic info."""
        return {
            "name": "Support Bot",
            "version": __version__,
            "endpoints": {
                "messages": "/v1/messages",
                "reset": "/v1/session/reset",
                "chat": "/v1/chat",
                "window_position": "/v1/window/position",
                "health": "/health",
            },
        }

    return app


def main():
    """Run the support bot server."""
    try:
        config = Config().validate()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    uvicorn.run(
        "supportbot.main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=False,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
