"""AI provider abstraction layer."""

from skillforge.ai.azure_openai import AzureOpenAIProvider
from skillforge.ai.factory import create_ai_provider
from skillforge.ai.github_models import GitHubModelsProvider
from skillforge.ai.provider import AIMessage, AIProvider, AIResponse
from skillforge.ai.token_tracker import TokenTracker

__all__ = [
    "AIProvider",
    "AIMessage",
    "AIResponse",
    "GitHubModelsProvider",
    "AzureOpenAIProvider",
    "TokenTracker",
    "create_ai_provider",
]
