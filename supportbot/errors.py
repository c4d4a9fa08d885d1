"""Exception hierarchy for the support bot.

Remote and transport failures are openai.APIError subclasses raised by the
SDK and are never wrapped.
"""


class SupportBotError(Exception):
    """Base exception for all support bot errors."""


class InvalidStateError(SupportBotError, RuntimeError):
    """Operation invoked before the required state was established."""


class InvalidArgumentError(SupportBotError, ValueError):
    """Caller supplied an argument the operation cannot accept."""


class ConfigurationError(SupportBotError):
    """Required configuration is missing or out of range."""


class RunTimeoutError(SupportBotError):
    """A run did not reach a terminal status within the poll bound."""
    def __init__(self, run_id: str, timeout_seconds: float, last_status: str):
        self.run_id = run_id
        self.timeout_seconds = timeout_seconds
        self.last_status = last_status
        super().__init__(
            f"Run {run_id} still {last_status} after {timeout_seconds}s"
        )


class UnsupportedOutcomeError(SupportBotError):
    """A completion finished for a reason the session cannot act on.

    Returned inside a CompletionOutcome rather than raised.
    """
    def __init__(self, finish_reason: str, detail: str):
        self.finish_reason = finish_reason
        self.detail = detail
        super().__init__(f"{finish_reason}: {detail}")
