"""Turn a finished discovery session into a skill specification.

The specification is a plain data object; :func:`render_markdown` and
:func:`write_specification` produce the files handed to downstream
generators.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, PackageLoader, StrictUndefined

from skillforge.discovery.messages import MessageType, derive_qa_entries
from skillforge.discovery.phases import DISCOVERY_PHASES, phase_info
from skillforge.discovery.state_machine import DiscoveryState, DiscoveryStatus

logger = logging.getLogger(__name__)

MARKDOWN_FILENAME = "SKILL_SPEC.md"
YAML_FILENAME = "skill_spec.yaml"


class SpecificationError(Exception):
    """Raised when a session cannot be turned into a specification."""


@dataclass
class Decision:
    field: str
    answer: str
    how: str  # accept | edit | override


@dataclass
class PhaseSection:
    phase: str
    label: str
    summary: str = ""
    decisions: list[Decision] = field(default_factory=list)


@dataclass
class SkillSpecification:
    name: str
    one_liner: str
    description: str
    complexity: str
    is_agentic: bool
    phases: list[PhaseSection]
    qa: list[dict[str, str]]
    understanding: dict[str, Any]
    total_questions: int
    generated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "one_liner": self.one_liner,
            "description": self.description,
            "complexity": self.complexity,
            "is_agentic": self.is_agentic,
            "total_questions": self.total_questions,
            "generated_at": self.generated_at,
            "phases": [
                {
                    "phase": p.phase,
                    "label": p.label,
                    "summary": p.summary,
                    "decisions": [{"field": d.field, "answer": d.answer, "how": d.how} for d in p.decisions],
                }
                for p in self.phases
            ],
            "understanding": self.understanding,
            "qa": self.qa,
        }


def build_specification(
    state: DiscoveryState,
    project: Mapping[str, Any],
    force: bool = False,
) -> SkillSpecification:
    """Collect the session's answers into a :class:`SkillSpecification`.

    Args:
        state: The discovery state, normally ``all_complete``.
        project: The ``project`` section of ``skillforge.yaml``.
        force: Build even if discovery has not finished.

    Raises:
        SpecificationError: If discovery is unfinished and *force* is False,
            or nothing has been answered yet.
    """
    if state.status is not DiscoveryStatus.ALL_COMPLETE and not force:
        raise SpecificationError(
            f"Discovery is not complete (phase '{state.current_phase.value}', "
            f"status '{state.status.value}'). Finish it with 'skillforge discover' or pass --force."
        )
    if not any(m.type is MessageType.USER_RESPONSE for m in state.messages):
        raise SpecificationError("The discovery session has no answers yet.")

    sections = {p: PhaseSection(phase=p.value, label=phase_info(p).label) for p in DISCOVERY_PHASES}
    for message in state.messages:
        section = sections.get(message.phase)
        if section is None:
            continue
        if message.type is MessageType.USER_RESPONSE:
            how = message.user_action.value if message.user_action else "accept"
            section.decisions.append(Decision(field=message.field, answer=message.content, how=how))
        elif message.type is MessageType.PHASE_SUMMARY:
            section.summary = message.content

    return SkillSpecification(
        name=str(project.get("name") or "unnamed-skill"),
        one_liner=str(project.get("one_liner") or ""),
        description=str(project.get("description") or ""),
        complexity=str(project.get("complexity") or "moderate"),
        is_agentic=bool(project.get("is_agentic", False)),
        phases=[s for s in sections.values() if s.decisions or s.summary],
        qa=[qa.to_dict() for qa in derive_qa_entries(state.messages)],
        understanding=dict(state.understanding),
        total_questions=state.total_questions_asked,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def _environment() -> Environment:
    env = Environment(
        loader=PackageLoader("skillforge", "templates"),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["to_yaml"] = lambda v: yaml.safe_dump(v, default_flow_style=True, allow_unicode=True).strip()
    return env


def render_markdown(spec: SkillSpecification) -> str:
    return _environment().get_template("skill_spec.md.j2").render(spec=spec)


def write_specification(spec: SkillSpecification, output_dir: str | Path) -> list[Path]:
    """Write ``SKILL_SPEC.md`` and ``skill_spec.yaml`` into *output_dir*."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    md_path = out / MARKDOWN_FILENAME
    md_path.write_text(render_markdown(spec), encoding="utf-8")

    yaml_path = out / YAML_FILENAME
    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(spec.to_dict(), f, default_flow_style=False, allow_unicode=True, sort_keys=False, width=120)

    logger.info("Wrote specification to %s", out)
    return [md_path, yaml_path]
