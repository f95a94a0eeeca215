"""Local audit log for client-side actions.

The authoritative audit trail lives in the backend (``getAuditTrail``); this
file only records what this process did, one JSON object per line.
"""

from __future__ import annotations

import getpass
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence

from . import config

logger = logging.getLogger(__name__)

# Payload keys never written to the audit file.
_REDACTED_KEYS = {"adminKey", "fileData", "signatureDataUrl"}


def _serialise(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Mapping):
        return {
            str(key): ("<redacted>" if key in _REDACTED_KEYS else _serialise(val))
            for key, val in value.items()
        }
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_serialise(item) for item in value]
    return str(value)


def _resolve_actor(actor: str | None) -> str:
    if actor:
        return actor
    try:
        user = getpass.getuser()
        if user:
            return user
    except Exception:
        pass
    for env_name in ("USER", "USERNAME", "LOGNAME"):
        env_value = os.environ.get(env_name)
        if env_value:
            return env_value
    return "unknown"


def _write_record(path: Path, record: Dict[str, Any]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False))
            handle.write("\n")
    except OSError as exc:
        # Audit failures must not block the action being audited.
        logger.warning("audit write failed", extra={"extra_data": {"path": str(path), "error": str(exc)}})


def log_event(
    event: str,
    *,
    details: Dict[str, Any] | None = None,
    severity: str = "info",
    actor: str | None = None,
) -> None:
    path_value = getattr(config, "AUDIT_LOG_PATH", "")
    if not path_value:
        return

    record: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "event": event,
        "severity": severity,
        "actor": _resolve_actor(actor),
    }
    if details:
        record["details"] = _serialise(details)

    _write_record(Path(path_value), record)


def log_action_call(action: str, *, success: bool, actor: str | None = None, **metadata: Any) -> None:
    details: Dict[str, Any] = {"action": action, "success": success}
    if metadata:
        details.update({key: _serialise(value) for key, value in metadata.items()})
    log_event("action_call", details=details, severity="info" if success else "warning", actor=actor)


def log_function_call(function: str, **metadata: Any) -> None:
    details: Dict[str, Any] = {"function": function}
    if metadata:
        details.update({key: _serialise(value) for key, value in metadata.items()})
    log_event("function_call", details=details)


def log_exception(event: str, *, error: Exception, **metadata: Any) -> None:
    details: Dict[str, Any] = {"error": type(error).__name__, "message": str(error)}
    if metadata:
        details.update({key: _serialise(value) for key, value in metadata.items()})
    log_event(event, details=details, severity="error")
