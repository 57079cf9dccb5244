"""Provider identifier -> response handler lookup."""

from __future__ import annotations

from chatcore.llm.definitions import Provider
from chatcore.llm.providers.base import ProviderHandler
from chatcore.llm.providers.claude import ClaudeHandler
from chatcore.llm.providers.cohere import CohereHandler
from chatcore.llm.providers.google import GoogleHandler
from chatcore.llm.providers.ollama import OllamaHandler
from chatcore.llm.providers.openai_compat import OpenAIHandler

DEFAULT_HANDLER = OpenAIHandler()

_google = GoogleHandler()

PROVIDER_HANDLERS: dict[str, ProviderHandler] = {
    Provider.CLAUDE: ClaudeHandler(),
    Provider.MAKERSUITE: _google,
    Provider.VERTEXAI: _google,
    Provider.COHERE: CohereHandler(),
    Provider.OLLAMA: OllamaHandler(),
}


def get_provider_handler(provider: str | None) -> ProviderHandler:
    """Return the handler for *provider*; OpenAI-compatible when unlisted."""
    return PROVIDER_HANDLERS.get(provider or "", DEFAULT_HANDLER)
