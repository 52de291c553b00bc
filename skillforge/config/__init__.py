"""Project configuration management."""

import copy
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from knack.util import CLIError

from skillforge.ai.azure_openai import validate_endpoint
from skillforge.ai.factory import ALLOWED_PROVIDERS, BLOCKED_PROVIDERS
from skillforge.discovery.depth import Complexity

logger = logging.getLogger(__name__)


def _sanitize_for_yaml(data: Any) -> Any:
    """Recursively convert values to plain Python types for ``yaml.safe_dump``.

    knack wraps argument defaults in ``knack.validators.DefaultStr`` (a
    ``str`` subclass) which the safe dumper refuses to represent.
    """
    if isinstance(data, dict):
        return {str(k): _sanitize_for_yaml(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [_sanitize_for_yaml(item) for item in data]
    # bool before int (bool is an int subclass)
    if isinstance(data, bool):
        return bool(data)
    if isinstance(data, int):
        return int(data)
    if isinstance(data, float):
        return float(data)
    if isinstance(data, str):
        return str(data)
    return data


def _dump(data: dict, path: Path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            _sanitize_for_yaml(data),
            f,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )


# Keys whose values belong in the git-ignored secrets file.
SECRET_KEY_PREFIXES = ("ai.github_models.token",)

_COMPLEXITIES = frozenset(c.value for c in Complexity)

DEFAULT_CONFIG = {
    "project": {
        "id": "",
        "name": "",
        "one_liner": "",
        "description": "",
        "complexity": "moderate",
        "is_agentic": False,
        "created": "",
    },
    "ai": {
        "provider": "github-models",
        "model": "gpt-4o",
        "github_models": {
            "token": "",
        },
        "azure_openai": {
            "endpoint": "",
            "deployment": "gpt-4o",
        },
    },
    "discovery": {
        "session_dir": ".skillforge/sessions",
        "auto_save": True,
    },
    "output": {
        "dir": "spec",
    },
}


class ProjectConfig:
    """Manages ``skillforge.yaml`` project configuration.

    Provides dot-notation get/set for nested values.  Secrets (the GitHub
    token) are written to ``skillforge.secrets.yaml`` and overlaid on load.
    """

    CONFIG_FILENAME = "skillforge.yaml"
    SECRETS_FILENAME = "skillforge.secrets.yaml"

    def __init__(self, project_dir: str):
        self.project_dir = Path(project_dir)
        self.config_path = self.project_dir / self.CONFIG_FILENAME
        self.secrets_path = self.project_dir / self.SECRETS_FILENAME
        self._config: dict = {}
        self._secrets: dict = {}

    # ------------------------------------------------------------------ #
    #  Persistence                                                        #
    # ------------------------------------------------------------------ #

    def load(self) -> dict:
        """Load ``skillforge.yaml`` with the secrets file overlaid.

        Raises:
            CLIError: If the config file is missing or unreadable.
        """
        if not self.config_path.exists():
            raise CLIError(
                f"Configuration file not found: {self.config_path}\n"
                "Run 'skillforge init' to create a project."
            )

        self._config = self._read(self.config_path)
        self._secrets = self._read(self.secrets_path) if self.secrets_path.exists() else {}
        self._merge(self._config, self._secrets)
        return self._config

    def save(self):
        """Persist the config, with secret values blanked out."""
        self.project_dir.mkdir(parents=True, exist_ok=True)
        _dump(self._strip_secrets(self._config), self.config_path)
        logger.debug("Configuration saved to %s", self.config_path)

    def save_secrets(self):
        if not self._secrets:
            return
        self.project_dir.mkdir(parents=True, exist_ok=True)
        _dump(self._secrets, self.secrets_path)
        logger.debug("Secrets saved to %s", self.secrets_path)

    def create_default(self, overrides: dict | None = None) -> dict:
        """Create and save a new configuration.

        Args:
            overrides: Nested values merged over ``DEFAULT_CONFIG``.
        """
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        self._config["project"]["id"] = str(uuid.uuid4())
        self._config["project"]["created"] = datetime.now(timezone.utc).isoformat()
        self._secrets = {}

        if overrides:
            self._merge(self._config, overrides)
            for prefix in SECRET_KEY_PREFIXES:
                value = self.get(prefix)
                if value:
                    self._set_nested(self._secrets, prefix, value)

        self.save()
        self.save_secrets()
        return self._config

    def exists(self) -> bool:
        return self.config_path.exists()

    # ------------------------------------------------------------------ #
    #  Access                                                             #
    # ------------------------------------------------------------------ #

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-separated key, e.g. ``config.get("ai.provider")``."""
        current: Any = self._config
        for part in key.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def set(self, key: str, value: Any):
        """Validate and persist a value by dot-separated key.

        Secret keys are routed to the secrets file.
        """
        self._validate_config_value(key, value)
        self._set_nested(self._config, key, value)

        if self._is_secret_key(key):
            self._set_nested(self._secrets, key, value)
            self.save_secrets()
        self.save()

    def to_dict(self) -> dict:
        """Return the full config dict (includes merged secrets)."""
        return copy.deepcopy(self._config)

    def to_display_dict(self) -> dict:
        """Config with secret values masked, for ``config show``."""
        masked = copy.deepcopy(self._config)
        for prefix in SECRET_KEY_PREFIXES:
            parts = prefix.split(".")
            node = masked
            for part in parts[:-1]:
                node = node.get(part) if isinstance(node, dict) else None
            if isinstance(node, dict) and node.get(parts[-1]):
                node[parts[-1]] = "***"
        return masked

    # ------------------------------------------------------------------ #
    #  Validation                                                         #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_config_value(key: str, value: Any):
        """Reject values the rest of the tool cannot use.

        Rules:
          - ai.provider must be a supported provider.
          - ai.azure_openai.endpoint must be *.openai.azure.com.
          - project.complexity must be simple, moderate or complex.
        """
        if key == "ai.provider":
            provider = str(value).lower().strip()
            supported = ", ".join(f"'{p}'" for p in sorted(ALLOWED_PROVIDERS))
            if provider in BLOCKED_PROVIDERS or provider not in ALLOWED_PROVIDERS:
                raise CLIError(f"Unsupported AI provider: '{value}'.\nSupported providers: {supported}.")

        if key == "ai.azure_openai.endpoint":
            validate_endpoint(str(value).strip())

        if key == "project.complexity" and str(value).lower() not in _COMPLEXITIES:
            raise CLIError(
                f"Unknown complexity: '{value}'.\n"
                f"Supported values: {', '.join(sorted(_COMPLEXITIES))}."
            )

    # ------------------------------------------------------------------ #
    #  Internal                                                           #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _read(path: Path) -> dict:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise CLIError(f"Could not parse {path}: {e}")
        if not isinstance(data, dict):
            raise CLIError(f"{path} must contain a YAML mapping.")
        return data

    @staticmethod
    def _merge(base: dict, overlay: dict):
        """Recursively merge *overlay* into *base*."""
        for key, value in overlay.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                ProjectConfig._merge(base[key], value)
            else:
                base[key] = value

    @staticmethod
    def _set_nested(target: dict, key: str, value: Any):
        """Set a dot-separated *key* in *target*, creating intermediate dicts."""
        parts = key.split(".")
        current = target
        for part in parts[:-1]:
            if part not in current or not isinstance(current[part], dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    @staticmethod
    def _is_secret_key(key: str) -> bool:
        return any(key.startswith(prefix) for prefix in SECRET_KEY_PREFIXES)

    def _strip_secrets(self, config: dict) -> dict:
        """Deep copy of *config* with secret leaf values replaced by empty strings."""
        clean = copy.deepcopy(config)
        for prefix in SECRET_KEY_PREFIXES:
            parts = prefix.split(".")
            node = clean
            for part in parts[:-1]:
                if isinstance(node, dict) and part in node:
                    node = node[part]
                else:
                    break
            else:
                if isinstance(node, dict) and parts[-1] in node:
                    node[parts[-1]] = ""
        return clean
