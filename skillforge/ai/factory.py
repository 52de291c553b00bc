"""Factory for creating AI provider instances."""

import logging
import os

from knack.util import CLIError

from skillforge.ai.azure_openai import AzureOpenAIProvider
from skillforge.ai.github_models import GitHubModelsProvider
from skillforge.ai.provider import AIProvider

logger = logging.getLogger(__name__)

ALLOWED_PROVIDERS = frozenset({"github-models", "azure-openai"})

# Names people type that are not supported directly.
BLOCKED_PROVIDERS = frozenset({
    "openai",
    "chatgpt",
    "public-openai",
    "anthropic",
    "cohere",
    "google",
    "aws-bedrock",
    "huggingface",
})

DEFAULT_PROVIDER = "github-models"

# Checked in order when no token is stored in the project secrets.
GITHUB_TOKEN_ENV_VARS = ("SKILLFORGE_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")


def _supported() -> str:
    return ", ".join(f"'{p}'" for p in sorted(ALLOWED_PROVIDERS))


def create_ai_provider(config: dict) -> AIProvider:
    """Create an AI provider based on project configuration.

    Args:
        config: Project configuration dict containing an ``ai`` section::

            {
                "ai": {
                    "provider": "github-models" | "azure-openai",
                    "model": "gpt-4o",
                    "github_models": {"token": "..."},
                    "azure_openai": {"endpoint": "https://..."}
                }
            }

    Returns:
        Configured AIProvider instance.
    """
    ai_config = config.get("ai", {}) or {}
    provider_name = (ai_config.get("provider") or DEFAULT_PROVIDER).lower().strip()
    model = ai_config.get("model")

    if provider_name in BLOCKED_PROVIDERS:
        raise CLIError(
            f"AI provider '{provider_name}' is not supported.\n"
            f"Supported providers: {_supported()}."
        )

    if provider_name not in ALLOWED_PROVIDERS:
        raise CLIError(
            f"Unknown AI provider: '{provider_name}'.\n"
            f"Supported providers: {_supported()}."
        )

    if provider_name == "github-models":
        return _create_github_models(ai_config, model)
    return _create_azure_openai(ai_config, model)


def resolve_github_token(ai_config: dict) -> str | None:
    token = (ai_config.get("github_models") or {}).get("token")
    if token:
        return token
    for name in GITHUB_TOKEN_ENV_VARS:
        if os.environ.get(name):
            logger.debug("Using GitHub token from $%s", name)
            return os.environ[name]
    return None


def _create_github_models(ai_config: dict, model: str | None) -> GitHubModelsProvider:
    token = resolve_github_token(ai_config)
    if not token:
        raise CLIError(
            "No GitHub token found for the 'github-models' provider.\n"
            "Export GITHUB_TOKEN, or store one with:\n"
            "  skillforge config set --key ai.github_models.token --value <token>"
        )
    return GitHubModelsProvider(token=token, model=model)


def _create_azure_openai(ai_config: dict, model: str | None) -> AzureOpenAIProvider:
    aoai_config = ai_config.get("azure_openai") or {}
    return AzureOpenAIProvider(
        endpoint=aoai_config.get("endpoint"),
        deployment=model or aoai_config.get("deployment"),
    )
