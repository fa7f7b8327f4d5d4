"""Turning push payloads into notifications.

A payload is expected to be a JSON object with any of ``title``, ``body``,
``icon``, ``tag``, ``data``, ``requireInteraction`` and ``actions``.
Missing fields take their value from
:class:`~swroute.models.NotificationDefaults`.  A payload that is not JSON
becomes a plain-text notification; JSON that is not an object is treated as
an empty payload.
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional, Union

from pydantic import ValidationError

from swroute.models import (
    Notification,
    NotificationAction,
    NotificationDefaults,
    NotificationOptions,
)
from swroute.output import debug


def parse_payload(
    payload: Optional[Union[bytes, str]],
    defaults: NotificationDefaults,
) -> dict[str, Any]:
    """Decode a raw push payload into a field dict.

    Returns an empty dict when there is no payload.
    """
    if payload is None:
        return {}
    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
    try:
        data = json.loads(text)
    except ValueError:
        debug("Push payload is not JSON, using it as the body")
        return {"title": defaults.text_title, "body": text, "icon": defaults.icon}
    return data if isinstance(data, dict) else {}


def build_notification(
    payload: Optional[Union[bytes, str]],
    defaults: NotificationDefaults,
    now_ms: Optional[int] = None,
) -> Notification:
    """Build the notification to show for a push *payload*.

    Args:
        payload: Raw payload bytes or text, or ``None`` when the push
            carried no data.
        defaults: Values for absent fields.
        now_ms: Timestamp in milliseconds; defaults to the current time.
    """
    data = parse_payload(payload, defaults)
    options = NotificationOptions(
        body=_text(data.get("body"), defaults.body),
        icon=_text(data.get("icon"), defaults.icon),
        badge=defaults.badge,
        tag=_text(data.get("tag"), defaults.tag),
        data=data.get("data") if isinstance(data.get("data"), dict) else {},
        require_interaction=bool(data.get("requireInteraction", False)),
        actions=_actions(data.get("actions"), defaults),
        vibrate=list(defaults.vibrate),
        timestamp=now_ms if now_ms is not None else int(time.time() * 1000),
    )
    return Notification(title=_text(data.get("title"), defaults.title), options=options)


def _text(value: Any, fallback: str) -> str:
    return str(value) if value else fallback


def _actions(raw: Any, defaults: NotificationDefaults) -> list[NotificationAction]:
    if not raw:
        return [action.model_copy() for action in defaults.actions]
    try:
        return [NotificationAction.model_validate(item) for item in raw]
    except (ValidationError, TypeError):
        debug("Ignoring malformed notification actions")
        return [action.model_copy() for action in defaults.actions]
