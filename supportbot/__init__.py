"""
Support Bot

Chat client core for an OpenAI assistant with onboarding delegation.

Components:
- orchestrator: Primary assistant lifecycle, run polling, tool delegation
- onboarding: Specialist assistant answering delegated queries
- run_loop: Run polling until a terminal status
- gateway: Assistants and chat completions client over the openai SDK
- presenter: Thread history to renderable rows
- api: HTTP endpoints for the presenter
"""

__version__ = "0.1.0"
