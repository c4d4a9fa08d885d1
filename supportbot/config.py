"""Support bot configuration."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

DEFAULT_INSTRUCTIONS = (
    "You are a friendly customer support assistant.\n"
    "Answer briefly and politely. When the customer asks about getting started, "
    "account setup or onboarding, call the CallOnboardingAgent function with "
    "their question as the query and relay its answer."
)


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def _number(name: str, default: str, cast=float):
    """Numeric setting from the environment; unparsable values raise ConfigurationError."""
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # OpenAI
    api_key: Optional[str] = field(default_factory=lambda: _optional("OPENAI_API_KEY"))
    base_url: str = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"))
    request_timeout: float = field(default_factory=lambda: _number("SUPPORTBOT_REQUEST_TIMEOUT", "60"))
    max_retries: int = field(default_factory=lambda: _number("SUPPORTBOT_MAX_RETRIES", "2", int))

    # Assistants
    assistant_id: Optional[str] = field(default_factory=lambda: _optional("SUPPORTBOT_ASSISTANT_ID"))
    onboarding_assistant_id: Optional[str] = field(default_factory=lambda:
        _optional("SUPPORTBOT_ONBOARDING_ASSISTANT_ID"))
    assistant_name: str = field(default_factory=lambda: os.getenv("SUPPORTBOT_ASSISTANT_NAME", "SupportBot"))
    assistant_instructions: str = field(default_factory=lambda:
        os.getenv("SUPPORTBOT_ASSISTANT_INSTRUCTIONS", DEFAULT_INSTRUCTIONS))
    model: str = field(default_factory=lambda: os.getenv("SUPPORTBOT_MODEL", "gpt-4o-mini"))
    chat_model: str = field(default_factory=lambda: os.getenv("SUPPORTBOT_CHAT_MODEL", "gpt-4o-mini"))

    # Runs
    poll_interval: float = field(default_factory=lambda: _number("SUPPORTBOT_POLL_INTERVAL", "0.25"))
    run_timeout: float = field(default_factory=lambda: _number("SUPPORTBOT_RUN_TIMEOUT", "300"))

    # Local state
    settings_path: Path = field(default_factory=lambda: Path(
        os.getenv("SUPPORTBOT_SETTINGS_PATH", str(Path.home() / ".supportbot" / "settings.json"))))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("SUPPORTBOT_LOG_LEVEL", "INFO").upper())
    log_file: Optional[str] = field(default_factory=lambda: _optional("SUPPORTBOT_LOG_FILE"))

    # Server
    host: str = field(default_factory=lambda: os.getenv("SUPPORTBOT_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _number("SUPPORTBOT_PORT", "8000", int))

    @property
    def create_mode(self) -> bool:
        """True when the primary assistant is created rather than fetched."""
        return self.assistant_id is None

    @property
    def run_timeout_or_none(self) -> Optional[float]:
        """Poll bound in seconds, None when disabled."""
        return self.run_timeout if self.run_timeout > 0 else None

    def validate(self) -> "Config":
        """Fail fast on settings the application cannot start without."""
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        if self.poll_interval < 0:
            raise ConfigurationError(f"SUPPORTBOT_POLL_INTERVAL must be >= 0, got {self.poll_interval}")
        if self.run_timeout < 0:
            raise ConfigurationError(f"SUPPORTBOT_RUN_TIMEOUT must be >= 0, got {self.run_timeout}")
        if self.request_timeout <= 0:
            raise ConfigurationError(f"SUPPORTBOT_REQUEST_TIMEOUT must be > 0, got {self.request_timeout}")
        if self.max_retries < 0:
            raise ConfigurationError(f"SUPPORTBOT_MAX_RETRIES must be >= 0, got {self.max_retries}")
        return self
