"""Tests for skillforge.ai: factory, providers, endpoint validation."""

from unittest.mock import MagicMock, patch

import pytest
from knack.util import CLIError

from skillforge.ai.azure_openai import AzureOpenAIProvider, validate_endpoint
from skillforge.ai.factory import (
    ALLOWED_PROVIDERS,
    BLOCKED_PROVIDERS,
    create_ai_provider,
    resolve_github_token,
)
from skillforge.ai.github_models import GITHUB_MODELS_ENDPOINT, GitHubModelsProvider
from skillforge.ai.provider import AIMessage


@pytest.fixture(autouse=True)
def _clear_token_env(monkeypatch):
    for name in ("SKILLFORGE_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"):
        monkeypatch.delenv(name, raising=False)


def _completion(content="hello", model="gpt-4o"):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.choices[0].finish_reason = "stop"
    response.model = model
    response.usage.prompt_tokens = 10
    response.usage.completion_tokens = 5
    response.usage.total_tokens = 15
    return response


class TestAIProviderFactory:
    """Test create_ai_provider() factory function."""

    @patch("skillforge.ai.factory.GitHubModelsProvider")
    def test_create_github_models(self, mock_cls, sample_config):
        sample_config["ai"]["github_models"]["token"] = "ghp_test"
        create_ai_provider(sample_config)
        mock_cls.assert_called_once_with(token="ghp_test", model="gpt-4o")

    @patch("skillforge.ai.factory.GitHubModelsProvider")
    def test_github_token_from_env(self, mock_cls, sample_config, monkeypatch):
        monkeypatch.setenv("GH_TOKEN", "ghp_env")
        create_ai_provider(sample_config)
        assert mock_cls.call_args.kwargs["token"] == "ghp_env"

    def test_github_models_without_token(self, sample_config):
        with pytest.raises(CLIError, match="No GitHub token"):
            create_ai_provider(sample_config)

    @patch("skillforge.ai.factory.AzureOpenAIProvider")
    def test_create_azure_openai(self, mock_cls, sample_config):
        sample_config["ai"]["provider"] = "azure-openai"
        sample_config["ai"]["model"] = None
        sample_config["ai"]["azure_openai"] = {
            "endpoint": "https://myres.openai.azure.com/",
            "deployment": "gpt-4o-mini",
        }
        create_ai_provider(sample_config)
        mock_cls.assert_called_once_with(endpoint="https://myres.openai.azure.com/", deployment="gpt-4o-mini")

    def test_blocked_provider_raises(self, sample_config):
        for blocked in BLOCKED_PROVIDERS:
            sample_config["ai"]["provider"] = blocked
            with pytest.raises(CLIError, match="not supported"):
                create_ai_provider(sample_config)

    def test_unknown_provider_raises(self, sample_config):
        sample_config["ai"]["provider"] = "totally-made-up"
        with pytest.raises(CLIError, match="Unknown"):
            create_ai_provider(sample_config)

    def test_allowed_providers_set(self):
        assert ALLOWED_PROVIDERS == {"github-models", "azure-openai"}
        assert not ALLOWED_PROVIDERS & BLOCKED_PROVIDERS


class TestResolveGitHubToken:
    def test_config_wins_over_env(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env")
        assert resolve_github_token({"github_models": {"token": "cfg"}}) == "cfg"

    def test_env_order(self, monkeypatch):
        monkeypatch.setenv("GH_TOKEN", "gh")
        monkeypatch.setenv("SKILLFORGE_GITHUB_TOKEN", "sf")
        assert resolve_github_token({}) == "sf"

    def test_none(self):
        assert resolve_github_token({}) is None


class TestValidateEndpoint:
    @pytest.mark.parametrize("endpoint", ["https://myres.openai.azure.com/", "https://my-res.openai.azure.com"])
    def test_valid(self, endpoint):
        validate_endpoint(endpoint)

    @pytest.mark.parametrize(
        "endpoint,message",
        [
            ("", "needs an endpoint"),
            (None, "needs an endpoint"),
            ("https://api.openai.com/v1", "not supported"),
            ("https://example.com", "Invalid"),
            ("http://myres.openai.azure.com/", "Invalid"),
        ],
    )
    def test_invalid(self, endpoint, message):
        with pytest.raises(CLIError, match=message):
            validate_endpoint(endpoint)


class TestGitHubModelsProvider:
    @patch("openai.OpenAI")
    def test_client_uses_models_endpoint(self, mock_openai):
        provider = GitHubModelsProvider(token="ghp_x")
        mock_openai.assert_called_once_with(base_url=GITHUB_MODELS_ENDPOINT, api_key="ghp_x")
        assert provider.default_model == "gpt-4o"
        assert provider.provider_name == "github-models"
        assert any(m["id"] == "gpt-4o-mini" for m in provider.list_models())

    @patch("openai.OpenAI")
    def test_chat(self, mock_openai):
        client = mock_openai.return_value
        client.chat.completions.create.return_value = _completion('{"a": 1}')
        provider = GitHubModelsProvider(token="ghp_x", model="gpt-4o-mini")

        response = provider.chat(
            [AIMessage(role="user", content="hi")],
            temperature=0.2,
            max_tokens=100,
            response_format={"type": "json_object"},
        )

        assert response.content == '{"a": 1}'
        assert response.usage == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert kwargs["response_format"] == {"type": "json_object"}

    @patch("openai.OpenAI")
    def test_chat_without_response_format(self, mock_openai):
        client = mock_openai.return_value
        client.chat.completions.create.return_value = _completion()
        GitHubModelsProvider(token="t").chat([AIMessage(role="user", content="hi")])
        assert "response_format" not in client.chat.completions.create.call_args.kwargs

    @patch("openai.OpenAI")
    def test_chat_error_wrapped(self, mock_openai):
        mock_openai.return_value.chat.completions.create.side_effect = RuntimeError("401 Unauthorized")
        provider = GitHubModelsProvider(token="bad")
        with pytest.raises(CLIError, match="models:read"):
            provider.chat([AIMessage(role="user", content="hi")])

    @patch("openai.OpenAI")
    def test_stream_chat(self, mock_openai):
        chunks = []
        for text in ("Hel", None, "lo"):
            chunk = MagicMock()
            chunk.choices = [MagicMock()]
            chunk.choices[0].delta.content = text
            chunks.append(chunk)
        mock_openai.return_value.chat.completions.create.return_value = iter(chunks)

        provider = GitHubModelsProvider(token="t")
        assert "".join(provider.stream_chat([AIMessage(role="user", content="hi")])) == "Hello"


class TestAzureOpenAIProvider:
    def test_rejects_public_endpoint(self):
        with pytest.raises(CLIError):
            AzureOpenAIProvider(endpoint="https://api.openai.com/v1")

    @patch.object(AzureOpenAIProvider, "_create_client", return_value=MagicMock())
    def test_metadata(self, _mock_client):
        provider = AzureOpenAIProvider(endpoint="https://myres.openai.azure.com/", deployment="gpt-4o-mini")
        assert provider.provider_name == "azure-openai"
        assert provider.default_model == "gpt-4o-mini"
        assert provider.list_models()[0]["endpoint"] == "https://myres.openai.azure.com/"
