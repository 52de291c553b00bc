"""GitHub Models API provider."""

import logging

from skillforge.ai.provider import OpenAICompatibleProvider

logger = logging.getLogger(__name__)

# GitHub Models API endpoint
GITHUB_MODELS_ENDPOINT = "https://models.inference.ai.azure.com"


class GitHubModelsProvider(OpenAICompatibleProvider):
    """AI provider using GitHub Models API.

    Authenticates with a GitHub token that has the ``models:read`` scope.
    """

    DEFAULT_MODEL = "gpt-4o"

    _error_label = "GitHub Models API"
    _error_hint = "\nCheck your GitHub token has 'models:read' scope."

    def __init__(self, token: str, model: str | None = None):
        self._token = token
        super().__init__(model or self.DEFAULT_MODEL)

    def _create_client(self):
        from openai import OpenAI

        return OpenAI(base_url=GITHUB_MODELS_ENDPOINT, api_key=self._token)

    def list_models(self) -> list[dict]:
        """Known models on GitHub Models (there is no list endpoint)."""
        return [
            {"id": "gpt-4o", "name": "GPT-4o", "provider": "openai", "context_length": 128000},
            {"id": "gpt-4o-mini", "name": "GPT-4o Mini", "provider": "openai", "context_length": 128000},
            {"id": "gpt-4.1", "name": "GPT-4.1", "provider": "openai", "context_length": 1048576},
            {"id": "o3-mini", "name": "o3 Mini", "provider": "openai", "context_length": 200000},
        ]

    @property
    def provider_name(self) -> str:
        return "github-models"
