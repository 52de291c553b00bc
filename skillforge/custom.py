"""Custom command implementations for skillforge.

These functions are the entry points called by knack.  Each one maps to
a registered command in commands.py.
"""

import json
import logging
from pathlib import Path

from knack.util import CLIError

from skillforge.telemetry import track

logger = logging.getLogger(__name__)


# ======================================================================
# Helpers
# ======================================================================

def _get_project_dir() -> str:
    """Resolve the current project directory."""
    return str(Path.cwd().resolve())


def _load_config(project_dir: str | None = None):
    """Load project configuration."""
    from skillforge.config import ProjectConfig

    project_dir = project_dir or _get_project_dir()
    config = ProjectConfig(project_dir)
    config.load()
    return config


def _build_store(config, project_dir: str):
    from skillforge.discovery.session_store import SESSION_DIR, SessionStore

    return SessionStore(project_dir, config.get("discovery.session_dir") or SESSION_DIR)


def _classify(description: str, ai_config: dict):
    """Classify *description* with the AI provider, or offline if it is unavailable."""
    from skillforge.ai.factory import create_ai_provider
    from skillforge.discovery.complexity import quick_classify
    from skillforge.discovery.generation import Classification, SuggestionClient
    from skillforge.ui.console import console

    try:
        provider = create_ai_provider({"ai": ai_config})
    except CLIError as e:
        logger.warning("AI provider unavailable, classifying offline: %s", e)
        guess = quick_classify(description)
        return Classification(complexity=guess.complexity, is_agentic=guess.is_agentic)

    with SuggestionClient(provider) as client:
        with console.spinner("Classifying the skill..."):
            return client.classify_or_guess(description)


# ======================================================================
# Project Commands
# ======================================================================

@track("skillforge init")
def skillforge_init(
    name=None,
    description=None,
    complexity=None,
    agentic=False,
    ai_provider="github-models",
    model=None,
    output_dir=".",
):
    """Create ``skillforge.yaml`` for a new skill."""
    from skillforge.config import DEFAULT_CONFIG, ProjectConfig
    from skillforge.discovery.depth import Complexity
    from skillforge.ui.console import console

    if not name:
        raise CLIError("--name is required.")
    if not description or not description.strip():
        raise CLIError("--description is required.")

    project_dir = str(Path(output_dir or ".").resolve())
    config = ProjectConfig(project_dir)
    if config.exists():
        raise CLIError(
            f"A skillforge project already exists in {project_dir}.\n"
            "Use 'skillforge config set' to change it."
        )
    ProjectConfig._validate_config_value("ai.provider", ai_provider)

    ai_config = {
        "provider": ai_provider,
        "model": model or DEFAULT_CONFIG["ai"]["model"],
    }

    one_liner = ""
    if complexity:
        level = Complexity(complexity.lower())
        is_agentic = bool(agentic)
    else:
        classification = _classify(description, ai_config)
        level = classification.complexity
        is_agentic = bool(agentic) or classification.is_agentic
        one_liner = classification.one_liner
        if classification.reasoning:
            console.print_dim(classification.reasoning)

    config.create_default({
        "project": {
            "name": name,
            "one_liner": one_liner,
            "description": description.strip(),
            "complexity": level.value,
            "is_agentic": is_agentic,
        },
        "ai": ai_config,
    })

    console.print_success(f"Created {config.config_path}")
    console.print_info(
        f"Complexity: {level.value}{' (agentic)' if is_agentic else ''}. "
        "Run 'skillforge discover' to start."
    )
    return {
        "status": "initialized",
        "project_dir": project_dir,
        "complexity": level.value,
        "is_agentic": is_agentic,
    }


@track("skillforge discover")
def skillforge_discover(reset=False, skip_to_spec=False):
    """Run or resume the discovery conversation."""
    from skillforge.ai.factory import create_ai_provider
    from skillforge.discovery.generation import SuggestionClient
    from skillforge.discovery.session import DiscoverySession
    from skillforge.discovery.session_store import LoadStatus
    from skillforge.ui.console import console

    project_dir = _get_project_dir()
    config = _load_config(project_dir)

    description = config.get("project.description") or ""
    if not description.strip():
        raise CLIError(
            "The project has no description.\n"
            "Set one with: skillforge config set --key project.description --value \"...\""
        )

    store = _build_store(config, project_dir)
    provider = create_ai_provider(config.to_dict())
    session = DiscoverySession(
        SuggestionClient(provider),
        store,
        description=description,
        complexity=config.get("project.complexity") or "moderate",
        is_agentic=bool(config.get("project.is_agentic")),
        auto_save=bool(config.get("discovery.auto_save", True)),
    )

    try:
        if reset:
            session.reset()
            console.print_info("Starting a fresh discovery session.")
        else:
            loaded = session.resume()
            if loaded.status is LoadStatus.INVALID:
                console.print_warning(
                    f"The saved session could not be read ({loaded.error}). Starting fresh; "
                    "the old file is overwritten on the first answer."
                )
            elif loaded.ok:
                console.print_info(
                    f"Resuming discovery ({session.state.total_questions_asked} answers so far)."
                )

        if skip_to_spec:
            session.skip_to_spec()
            session.save()
            console.print_success("Discovery marked complete. Run 'skillforge spec' next.")
            completed = True
        else:
            completed = session.run().completed
    finally:
        session.close()

    state = session.state
    return {
        "status": "complete" if completed else "paused",
        "phase": state.current_phase.value,
        "questions_asked": state.total_questions_asked,
    }


@track("skillforge status")
def skillforge_status(json_output=False):
    """Show discovery progress for the current project."""
    from skillforge.discovery.phases import phase_info
    from skillforge.discovery.session_store import LoadStatus
    from skillforge.ui.console import console

    project_dir = _get_project_dir()
    not_initialized = {
        "status": "not_initialized",
        "message": "No skillforge project found. Run 'skillforge init'.",
    }
    try:
        config = _load_config(project_dir)
    except CLIError:
        if not json_output:
            console.print_warning(not_initialized["message"])
        return not_initialized

    loaded = _build_store(config, project_dir).load()
    result = {
        "project": config.get("project.name"),
        "complexity": config.get("project.complexity"),
        "is_agentic": bool(config.get("project.is_agentic")),
        "session": loaded.status.value,
    }
    if loaded.status is LoadStatus.INVALID:
        result["session_error"] = loaded.error
    if loaded.ok:
        state = loaded.state
        result.update({
            "phase": state.current_phase.value,
            "status": state.status.value,
            "questions_asked_in_phase": state.questions_asked_in_phase,
            "total_questions_asked": state.total_questions_asked,
            "error": state.error,
        })

    if json_output:
        return result

    console.print_header(f"Skill: {result['project'] or '(unnamed)'}")
    console.print(f"Complexity: {result['complexity']}{' (agentic)' if result['is_agentic'] else ''}")
    if loaded.ok:
        info = phase_info(loaded.state.current_phase)
        console.print(f"Phase {info.number}: {info.label} ({result['status']})")
        console.print(
            f"Answers: {result['questions_asked_in_phase']} in this phase, "
            f"{result['total_questions_asked']} total"
        )
        if result["error"]:
            console.print_warning(f"Last error: {result['error']}")
    elif loaded.status is LoadStatus.MISSING:
        console.print_dim("Discovery has not started. Run 'skillforge discover'.")
    else:
        console.print_error(f"Saved session is invalid: {loaded.error}")
    return {"status": "displayed"}


@track("skillforge spec")
def skillforge_spec(output_dir=None, force=False):
    """Build and write the skill specification."""
    from skillforge.spec_builder import SpecificationError, build_specification, write_specification
    from skillforge.ui.console import console

    project_dir = _get_project_dir()
    config = _load_config(project_dir)

    loaded = _build_store(config, project_dir).load()
    if not loaded.ok:
        if loaded.error:
            raise CLIError(f"The saved discovery session is invalid: {loaded.error}")
        raise CLIError("No discovery session found. Run 'skillforge discover' first.")

    try:
        spec = build_specification(loaded.state, config.get("project") or {}, force=force)
    except SpecificationError as e:
        raise CLIError(str(e)) from e

    out = Path(output_dir) if output_dir else Path(project_dir) / (config.get("output.dir") or "spec")
    paths = write_specification(spec, out)

    console.print_success(f"Specification for '{spec.name}' written ({spec.total_questions} answers):")
    console.print_file_list([str(p) for p in paths])
    return {"status": "generated", "files": [str(p) for p in paths]}


# ======================================================================
# Config Commands
# ======================================================================

@track("skillforge config show")
def skillforge_config_show():
    """Display current configuration.

    The GitHub token stored in ``skillforge.secrets.yaml`` is masked as
    ``***`` in the output.
    """
    return _load_config().to_display_dict()


@track("skillforge config get")
def skillforge_config_get(key=None):
    """Get a single configuration value by dot-separated key."""
    from skillforge.config import ProjectConfig

    if not key:
        raise CLIError("--key is required.")

    config = _load_config()
    value = config.get(key)
    if value is None:
        raise CLIError(f"Key '{key}' not found in configuration.")

    if ProjectConfig._is_secret_key(key) and value:
        return {"key": key, "value": "***"}
    return {"key": key, "value": value}


@track("skillforge config set")
def skillforge_config_set(key=None, value=None):
    """Set a configuration value."""
    from skillforge.config import ProjectConfig

    if not key:
        raise CLIError("--key is required.")
    if value is None:
        raise CLIError("--value is required.")

    config = _load_config()

    # Structured values may be passed as JSON
    try:
        config.set(key, json.loads(value))
    except (json.JSONDecodeError, TypeError):
        config.set(key, value)

    shown = "***" if ProjectConfig._is_secret_key(key) else config.get(key)
    return {"key": key, "value": shown, "status": "updated"}
