"""Usage telemetry via Application Insights (direct HTTP ingestion).

One ``cli_command_executed`` event is sent per CLI command, and only when:

* a connection string is configured in
  ``SKILLFORGE_APPINSIGHTS_CONNECTION_STRING``, and
* the user has not opted out with ``SKILLFORGE_TELEMETRY=off``
  (``0``, ``false`` and ``no`` also disable it).

Telemetry failures are silently ignored and never reach the user.
Answers, descriptions and tokens are never sent.
"""

import json
import logging
import os
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path

logger = logging.getLogger(__name__)

CONNECTION_STRING_ENV = "SKILLFORGE_APPINSIGHTS_CONNECTION_STRING"
OPT_OUT_ENV = "SKILLFORGE_TELEMETRY"

_OPT_OUT_VALUES = frozenset({"off", "0", "false", "no"})

# Lazily initialised.
_ingestion_endpoint: str | None = None
_instrumentation_key: str | None = None
_enabled: bool | None = None


def _get_connection_string() -> str:
    return os.environ.get(CONNECTION_STRING_ENV, "")


def is_enabled() -> bool:
    """Return *True* when telemetry can and should be sent (cached per process)."""
    global _enabled
    if _enabled is None:
        opted_out = os.environ.get(OPT_OUT_ENV, "").strip().lower() in _OPT_OUT_VALUES
        _enabled = not opted_out and bool(_get_connection_string())
    return _enabled


def reset() -> None:
    """Reset cached state (used by tests)."""
    global _enabled, _ingestion_endpoint, _instrumentation_key
    _enabled = None
    _ingestion_endpoint = None
    _instrumentation_key = None


# ---------------------------------------------------------------
# Connection string parsing
# ---------------------------------------------------------------


def _parse_connection_string(cs: str) -> tuple[str, str]:
    """Parse a connection string into ``(track_url, instrumentation_key)``.

    Returns ``("", "")`` if the string is empty or malformed.
    """
    if not cs:
        return "", ""
    parts = dict(p.split("=", 1) for p in cs.split(";") if "=" in p)
    ikey = parts.get("InstrumentationKey", "")
    endpoint = parts.get("IngestionEndpoint", "").rstrip("/")
    if ikey and endpoint:
        return endpoint + "/v2/track", ikey
    return "", ""


def _get_ingestion_config() -> tuple[str, str]:
    global _ingestion_endpoint, _instrumentation_key
    if _ingestion_endpoint is None:
        _ingestion_endpoint, _instrumentation_key = _parse_connection_string(_get_connection_string())
    return _ingestion_endpoint, _instrumentation_key or ""


# ---------------------------------------------------------------
# Dimensions
# ---------------------------------------------------------------


def _get_version() -> str:
    try:
        from importlib.metadata import version as pkg_version

        return pkg_version("skill-forge")
    except Exception:
        return "unknown"


def _read_project_config() -> dict:
    """Best-effort read of ``skillforge.yaml`` in the working directory."""
    try:
        config_path = Path.cwd() / "skillforge.yaml"
        if not config_path.exists():
            return {}
        import yaml  # lazy, only needed when telemetry is on

        with open(config_path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        return data if isinstance(data, dict) else {}
    except Exception:
        return {}


# Parameter names whose values are never sent.
_SENSITIVE_PARAM_KEYS = frozenset({"token", "value", "description", "name", "key"})


def _sanitize_parameters(params: dict) -> dict:
    """Copy of *params* with free-text and secret values redacted.

    Only scalar values are kept; anything else is replaced by its type name.
    """
    clean: dict[str, object] = {}
    for k, v in params.items():
        if k.startswith("_"):
            continue
        if k in _SENSITIVE_PARAM_KEYS:
            clean[k] = "***" if v else v
        elif isinstance(v, (str, int, float, bool, type(None))):
            clean[k] = v
        else:
            clean[k] = type(v).__name__
    return clean


# ---------------------------------------------------------------
# Sending
# ---------------------------------------------------------------


def _send_envelope(envelope: dict, endpoint: str) -> bool:
    """POST one envelope.  Returns *True* on HTTP 200; never raises."""
    try:
        import requests  # lazy, only needed when telemetry is on

        resp = requests.post(
            endpoint,
            data=json.dumps([envelope]),
            headers={"Content-Type": "application/json"},
            timeout=5,
        )
        return resp.status_code == 200
    except Exception:
        return False


def track_command(
    command_name: str,
    *,
    success: bool = True,
    error: str = "",
    parameters: dict | None = None,
) -> None:
    """Send a ``cli_command_executed`` event.  All errors are swallowed."""
    if not is_enabled():
        return

    endpoint, ikey = _get_ingestion_config()
    if not endpoint or not ikey:
        return

    try:
        config = _read_project_config()
        ai = config.get("ai") or {}
        project = config.get("project") or {}
        now = datetime.now(timezone.utc).isoformat()

        properties: dict[str, str] = {
            "commandName": command_name,
            "projectId": str(project.get("id", "")),
            "complexity": str(project.get("complexity", "")),
            "provider": str(ai.get("provider", "")),
            "model": str(ai.get("model", "")),
            "version": _get_version(),
            "success": str(success).lower(),
            "timestamp": now,
        }
        if parameters:
            properties["parameters"] = json.dumps(_sanitize_parameters(parameters))
        if error:
            properties["error"] = error[:1024]

        envelope = {
            "name": "Microsoft.ApplicationInsights.Event",
            "time": now,
            "iKey": ikey,
            "tags": {
                "ai.cloud.role": "skillforge",
                "ai.internal.sdkVersion": "py-direct:1.0.0",
            },
            "data": {
                "baseType": "EventData",
                "baseData": {
                    "ver": 2,
                    "name": "cli_command_executed",
                    "properties": properties,
                },
            },
        }
        _send_envelope(envelope, endpoint)
    except Exception:
        logger.debug("Telemetry event for %s was not sent", command_name)


def track(command_name: str):
    """Decorator that records one telemetry event per command run.

    The event is sent from a ``finally`` block so both successes and
    failures are captured.

    Usage::

        @track("skillforge discover")
        def skillforge_discover(reset=False):
            ...
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            success = True
            error_msg = ""
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                success = False
                error_msg = f"{type(exc).__name__}: {exc}"
                raise
            finally:
                track_command(command_name, success=success, error=error_msg, parameters=kwargs)

        return wrapper

    return decorator
