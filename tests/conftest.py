"""Shared test fixtures for skillforge tests."""

import copy
import itertools
from unittest.mock import patch

import pytest
import yaml

from skillforge.ai.provider import AIResponse
from skillforge.config import DEFAULT_CONFIG
from skillforge.discovery.messages import AISuggestion
from skillforge.discovery.state_machine import AiSuggest, TransitionContext


# ------------------------------------------------------------------
# Global: prevent real telemetry HTTP calls during tests
# ------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _no_telemetry_network():
    """Stub the telemetry sender so no test ever POSTs to App Insights."""
    with patch("skillforge.telemetry._send_envelope", return_value=True):
        yield


def _ai_response(content="Mock AI response content", model="gpt-4o", usage=None):
    return AIResponse(
        content=content,
        model=model,
        usage=usage or {"prompt_tokens": 100, "completion_tokens": 200, "total_tokens": 300},
    )


def _suggest(question="What does it do?", field="description", answer="X", why="scope", **kwargs):
    return AiSuggest(
        question=question,
        why=why,
        field=field,
        suggestion=AISuggestion(proposed_answer=answer),
        **kwargs,
    )


@pytest.fixture
def make_ai_response():
    """Factory for AIResponse objects."""
    return _ai_response


@pytest.fixture
def make_suggest():
    """Factory for AiSuggest actions with sensible defaults."""
    return _suggest


@pytest.fixture
def fixed_context():
    """TransitionContext with sequential ids and a frozen clock."""
    counter = itertools.count(1)
    return TransitionContext(
        new_id=lambda: f"msg-{next(counter)}",
        now=lambda: "2026-01-01T00:00:00+00:00",
    )


@pytest.fixture
def tmp_project(tmp_path):
    """Empty project directory."""
    project_dir = tmp_path / "test-skill"
    project_dir.mkdir()
    return project_dir


@pytest.fixture
def sample_config():
    """Deep copy of the default config with test values."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["project"]["id"] = "00000000-0000-0000-0000-000000000001"
    config["project"]["name"] = "invoice-triage"
    config["project"]["description"] = "Route incoming invoices to the right approver"
    config["project"]["complexity"] = "simple"
    config["ai"]["github_models"]["token"] = ""
    return config


@pytest.fixture
def project_with_config(tmp_project, sample_config):
    """Project directory with a populated skillforge.yaml."""
    with open(tmp_project / "skillforge.yaml", "w", encoding="utf-8") as f:
        yaml.safe_dump(sample_config, f, default_flow_style=False)
    return tmp_project
