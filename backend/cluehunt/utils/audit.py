"""Audit trail for clue set assignment.

Each event is one JSON line on the ``cluehunt.audit`` logger, keyed by game
and, where there is one, participant, so a game's history can be grepped out
of the application log.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping
from uuid import UUID

audit_logger = logging.getLogger("cluehunt.audit")


def _to_serializable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Mapping):
        return {str(k): _to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_serializable(v) for v in value]
    return str(value)


def _describe_actor(actor: Any) -> dict[str, Any]:
    return {
        "id": _to_serializable(getattr(actor, "id", None)),
        "username": getattr(actor, "username", None),
        "role": getattr(actor, "role", None),
    }


def log_audit_event(
    event_type: str,
    *,
    game_id: Any = None,
    participant_id: Any = None,
    actor: Any = None,
    details: Mapping[str, Any] | None = None,
) -> None:
    """Emit one audit record. ``actor`` is the requesting user, if any."""
    payload: dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event_type,
        "game_id": _to_serializable(game_id),
    }
    if participant_id is not None:
        payload["participant_id"] = _to_serializable(participant_id)
    if actor is not None:
        payload["actor"] = _describe_actor(actor)
    if details:
        payload["details"] = _to_serializable(details)

    audit_logger.info(json.dumps(payload, ensure_ascii=True))
