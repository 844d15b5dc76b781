"""Structured logging helpers for control-plane modules."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

_API_KEY_PATTERN = re.compile(r"(apiKey=)[^&\s]+")


def _normalize_log_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return f"{value:.1f}"
    return str(value)


def _render_log_kv(fields: Mapping[str, Any]) -> str:
    parts: list[str] = []
    for key, value in fields.items():
        if value is None:
            continue
        clean_key = str(key).strip()
        if not clean_key:
            continue
        parts.append(f"{clean_key}={_normalize_log_value(value)}")
    return " ".join(parts)


def redact_secrets(text: Any) -> str:
    """Mask credentials embedded in connect URLs."""
    return _API_KEY_PATTERN.sub(r"\1***", str(text or ""))


def _log_control_event(
    logger: logging.Logger,
    *,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    payload = {"event": event}
    payload.update(fields)
    rendered = _render_log_kv(payload)
    logger.log(level, "browser-control %s", rendered)
