"""Azure OpenAI provider.

Only Azure-hosted OpenAI endpoints (``*.openai.azure.com``) are accepted;
authentication goes through ``DefaultAzureCredential``.
"""

import logging
import re

from knack.util import CLIError

from skillforge.ai.provider import OpenAICompatibleProvider

logger = logging.getLogger(__name__)

AZURE_OPENAI_ENDPOINT_PATTERN = re.compile(r"^https://[a-zA-Z0-9][a-zA-Z0-9\-]*\.openai\.azure\.com/?$")

_BLOCKED_ENDPOINTS = (
    "api.openai.com",
    "chat.openai.com",
    "platform.openai.com",
)


def validate_endpoint(endpoint: str | None) -> None:
    """Raise ``CLIError`` unless *endpoint* is an Azure OpenAI resource URL."""
    if not endpoint:
        raise CLIError(
            "The azure-openai provider needs an endpoint. Configure one with:\n"
            "  skillforge config set --key ai.azure_openai.endpoint "
            "--value https://<resource>.openai.azure.com/"
        )

    if any(blocked in endpoint.lower() for blocked in _BLOCKED_ENDPOINTS):
        raise CLIError(
            f"Public OpenAI endpoints are not supported: {endpoint}\n"
            "Use the 'github-models' provider or an Azure OpenAI resource instead."
        )

    if not AZURE_OPENAI_ENDPOINT_PATTERN.match(endpoint):
        raise CLIError(
            f"Invalid endpoint for azure-openai: {endpoint}\n"
            "Expected https://<resource>.openai.azure.com/"
        )


class AzureOpenAIProvider(OpenAICompatibleProvider):
    """AI provider using Azure OpenAI Service."""

    DEFAULT_MODEL = "gpt-4o"

    _error_label = "Azure OpenAI"

    def __init__(
        self,
        endpoint: str,
        deployment: str | None = None,
        api_version: str = "2024-10-21",
    ):
        """
        Args:
            endpoint: Resource URL, ``https://<resource>.openai.azure.com/``.
            deployment: Deployment to call; ``DEFAULT_MODEL`` when omitted.
            api_version: REST API version sent with every request.

        Raises:
            CLIError: If the endpoint is rejected or authentication fails.
        """
        validate_endpoint(endpoint)
        self._endpoint = endpoint
        self._api_version = api_version
        super().__init__(deployment or self.DEFAULT_MODEL)

    def _create_client(self):
        from openai import AzureOpenAI

        try:
            from azure.identity import (  # type: ignore[import-untyped]
                DefaultAzureCredential,
                get_bearer_token_provider,
            )
        except ImportError:
            raise CLIError(
                "The azure-openai provider signs in with azure-identity. "
                "Install it with: pip install skill-forge[azure]"
            )

        try:
            token_provider = get_bearer_token_provider(
                DefaultAzureCredential(),
                "https://cognitiveservices.azure.com/.default",
            )
            return AzureOpenAI(
                azure_endpoint=self._endpoint,
                azure_ad_token_provider=token_provider,
                api_version=self._api_version,
            )
        except Exception as e:
            raise CLIError(
                f"Could not obtain an Azure credential: {e}\n"
                "Run 'az login' or run under a managed identity."
            )

    def list_models(self) -> list[dict]:
        """Azure exposes deployments, not models; report the configured one."""
        return [
            {
                "id": self._model,
                "name": self._model,
                "provider": "azure-openai",
                "endpoint": self._endpoint,
            }
        ]

    @property
    def provider_name(self) -> str:
        return "azure-openai"
