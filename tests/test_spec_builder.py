"""Tests for skillforge.spec_builder: turning a session into a specification."""

import dataclasses

import pytest
import yaml

from skillforge.discovery.messages import UserAction
from skillforge.discovery.phases import Phase
from skillforge.discovery.state_machine import (
    INITIAL_STATE,
    AdvancePhase,
    DiscoveryStatus,
    PhaseComplete,
    SkipToSpec,
    StartThinking,
    UpdateUnderstanding,
    UserRespond,
    transition,
)
from skillforge.spec_builder import (
    MARKDOWN_FILENAME,
    YAML_FILENAME,
    SpecificationError,
    build_specification,
    render_markdown,
    write_specification,
)

_PROJECT = {
    "name": "invoice-triage",
    "one_liner": "Routes invoices to approvers",
    "description": "Route incoming invoices to the right approver",
    "complexity": "simple",
    "is_agentic": False,
}


@pytest.fixture
def finished_state(fixed_context, make_suggest):
    state = INITIAL_STATE
    actions = [
        StartThinking(),
        make_suggest(question="Who approves?", field="approver", answer="Team lead"),
        UserRespond(answer="Team lead"),
        UpdateUnderstanding("approver", "Team lead"),
        PhaseComplete(summary="approver: Team lead"),
        AdvancePhase(next_phase=Phase.DEFINE),
        StartThinking(),
        make_suggest(question="Which formats?", field="formats", answer="PDF"),
        UserRespond(answer="PDF and XML", action=UserAction.OVERRIDE),
        UpdateUnderstanding("formats", ["pdf", "xml"]),
        SkipToSpec(),
    ]
    for action in actions:
        state = transition(state, action, fixed_context)
    return state


class TestBuildSpecification:
    def test_collects_decisions_per_phase(self, finished_state):
        spec = build_specification(finished_state, _PROJECT)

        assert spec.name == "invoice-triage"
        assert spec.total_questions == 2
        assert [s.phase for s in spec.phases] == ["discover", "define"]
        discover, define = spec.phases
        assert discover.summary == "approver: Team lead"
        assert [(d.field, d.answer, d.how) for d in discover.decisions] == [("approver", "Team lead", "accept")]
        assert [(d.field, d.answer, d.how) for d in define.decisions] == [("formats", "PDF and XML", "override")]

    def test_qa_and_understanding(self, finished_state):
        spec = build_specification(finished_state, _PROJECT)
        assert [(q["question"], q["answer"]) for q in spec.qa] == [
            ("Who approves?", "Team lead"),
            ("Which formats?", "PDF and XML"),
        ]
        assert spec.understanding == {"approver": "Team lead", "formats": ["pdf", "xml"]}

    def test_unfinished_session_rejected(self, finished_state):
        unfinished = dataclasses.replace(finished_state, status=DiscoveryStatus.IDLE)
        with pytest.raises(SpecificationError, match="not complete"):
            build_specification(unfinished, _PROJECT)

    def test_force_builds_unfinished_session(self, finished_state):
        unfinished = dataclasses.replace(finished_state, status=DiscoveryStatus.IDLE)
        assert build_specification(unfinished, _PROJECT, force=True).total_questions == 2

    def test_empty_session_rejected(self):
        done = transition(INITIAL_STATE, SkipToSpec())
        with pytest.raises(SpecificationError, match="no answers"):
            build_specification(done, _PROJECT)

    def test_summary_without_answers_rejected(self):
        state = transition(INITIAL_STATE, PhaseComplete(summary=""))
        state = transition(state, AdvancePhase(Phase.DEFINE))
        state = transition(state, SkipToSpec())
        assert state.messages
        with pytest.raises(SpecificationError, match="no answers"):
            build_specification(state, _PROJECT)

    def test_missing_project_fields(self, finished_state):
        spec = build_specification(finished_state, {})
        assert spec.name == "unnamed-skill"
        assert spec.complexity == "moderate"


class TestRender:
    def test_markdown(self, finished_state):
        md = render_markdown(build_specification(finished_state, _PROJECT))
        assert md.startswith("# invoice-triage")
        assert "> Routes invoices to approvers" in md
        assert "## 1. Discover" in md
        assert "## 2. Define" in md
        assert "- **approver**: Team lead" in md
        assert "- **formats**: PDF and XML _(override)_" in md
        assert "## Understanding" in md
        assert "**Which formats?**" in md

    def test_write_files(self, finished_state, tmp_path):
        spec = build_specification(finished_state, _PROJECT)
        paths = write_specification(spec, tmp_path / "out")

        assert [p.name for p in paths] == [MARKDOWN_FILENAME, YAML_FILENAME]
        data = yaml.safe_load((tmp_path / "out" / YAML_FILENAME).read_text(encoding="utf-8"))
        assert data["name"] == "invoice-triage"
        assert data["phases"][1]["decisions"][0]["how"] == "override"
        assert data["understanding"]["formats"] == ["pdf", "xml"]
