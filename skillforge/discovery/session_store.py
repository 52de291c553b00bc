"""Session persistence: discovery sessions as YAML files.

Each session lives in ``.skillforge/sessions/<session_id>.yaml`` inside
the project directory.  The file holds the serialized
:class:`~skillforge.discovery.state_machine.DiscoveryState` plus a
``_metadata`` block:

1. **Saved after every change** to the message log or the phase
2. **Validated on load**.  A corrupt file is reported as ``invalid``
   and never reaches the state machine.
3. **Resumable**.  :func:`restore_action` turns a loaded state into the
   ``RestoreSession`` action that puts the dialogue back to ``idle``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from skillforge.discovery.messages import MessageType, SnapshotError, migrate_qa_to_chat
from skillforge.discovery.state_machine import (
    DiscoveryState,
    DiscoveryStatus,
    RestoreSession,
    state_from_dict,
)

logger = logging.getLogger(__name__)

SESSION_DIR = ".skillforge/sessions"
FORMAT_VERSION = 1
DEFAULT_SESSION_ID = "default"

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]*$")


class LoadStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    INVALID = "invalid"


@dataclass(frozen=True)
class LoadResult:
    """Outcome of :meth:`SessionStore.load`.

    Exactly one of ``state`` (when ``ok``) or ``error`` (when ``invalid``)
    is set; ``missing`` carries neither.
    """

    status: LoadStatus
    state: DiscoveryState | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is LoadStatus.OK


def restore_action(state: DiscoveryState) -> RestoreSession:
    """Build the action that resumes *state* at a clean ``idle`` point.

    Counters are recomputed from the message log rather than trusted,
    and any in-flight question or error is dropped.
    """
    responses = [m for m in state.messages if m.type is MessageType.USER_RESPONSE]
    in_phase = sum(1 for m in responses if m.phase is state.current_phase)
    status = DiscoveryStatus.ALL_COMPLETE if state.status is DiscoveryStatus.ALL_COMPLETE else DiscoveryStatus.IDLE

    return RestoreSession({
        "status": status,
        "messages": state.messages,
        "current_phase": state.current_phase,
        "questions_asked_in_phase": in_phase,
        "total_questions_asked": len(responses),
        "understanding": state.understanding,
        "current_question": None,
        "current_field": None,
        "current_why": None,
        "error": None,
        "turn": state.turn,
    })


class SessionStore:
    """Reads and writes discovery sessions for one project."""

    def __init__(self, project_dir: str, session_dir: str = SESSION_DIR):
        self._project_dir = project_dir
        self._dir = Path(project_dir) / session_dir
        self._created: dict[str, str] = {}

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, session_id: str) -> Path:
        if not _SESSION_ID_RE.match(session_id or ""):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self._dir / f"{session_id}.yaml"

    def exists(self, session_id: str = DEFAULT_SESSION_ID) -> bool:
        return self.path_for(session_id).exists()

    # ------------------------------------------------------------------ #
    # Save / load
    # ------------------------------------------------------------------ #

    def save(self, session_id: str, state: DiscoveryState) -> Path:
        """Write *state* to disk, returning the file path."""
        path = self.path_for(session_id)
        path.parent.mkdir(parents=True, exist_ok=True)

        now = datetime.now(timezone.utc).isoformat()
        created = self._created.setdefault(session_id, self._read_created(path) or now)

        payload = state.to_dict()
        payload["_metadata"] = {
            "session_id": session_id,
            "version": FORMAT_VERSION,
            "created": created,
            "last_updated": now,
        }

        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                payload,
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
                width=120,
            )
        logger.info("Saved discovery session to %s", path)
        return path

    def load(self, session_id: str = DEFAULT_SESSION_ID) -> LoadResult:
        """Load and validate a session.

        Never raises for bad file contents; those come back as ``invalid``.
        """
        path = self.path_for(session_id)
        if not path.exists():
            return LoadResult(LoadStatus.MISSING)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, OSError) as e:
            logger.warning("Could not read discovery session %s: %s", path, e)
            return LoadResult(LoadStatus.INVALID, error=f"Unreadable session file: {e}")

        if not isinstance(data, dict):
            return LoadResult(LoadStatus.INVALID, error="Session file does not contain a mapping")

        metadata = data.pop("_metadata", None) or {}
        if not isinstance(metadata, dict):
            metadata = {}

        try:
            if "messages" not in data and isinstance(data.get("answers"), list):
                logger.info("Migrating legacy Q&A session %s", path)
                data["messages"] = migrate_qa_to_chat(data["answers"])
            state = state_from_dict(data)
        except SnapshotError as e:
            logger.warning("Discovery session %s is invalid: %s", path, e)
            return LoadResult(LoadStatus.INVALID, error=str(e), metadata=metadata)

        if metadata.get("created"):
            self._created[session_id] = str(metadata["created"])
        logger.info("Loaded discovery session from %s", path)
        return LoadResult(LoadStatus.OK, state=state, metadata=metadata)

    def delete(self, session_id: str = DEFAULT_SESSION_ID) -> bool:
        """Remove a saved session.  Returns False when there was nothing to remove."""
        path = self.path_for(session_id)
        self._created.pop(session_id, None)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted discovery session %s", path)
        return True

    def list_sessions(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(p.stem for p in self._dir.glob("*.yaml") if _SESSION_ID_RE.match(p.stem))

    # ------------------------------------------------------------------ #
    # Internal
    # ------------------------------------------------------------------ #

    @staticmethod
    def _read_created(path: Path) -> str | None:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, OSError):
            return None
        if isinstance(data, dict) and isinstance(data.get("_metadata"), dict):
            created = data["_metadata"].get("created")
            return str(created) if created else None
        return None
