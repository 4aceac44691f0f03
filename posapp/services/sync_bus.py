"""Best-effort "please refetch" notifications between open terminals.

The bus carries a single message, ``"refresh"``, with no payload. A receiver
must treat it as a hint to reload every collection from the database and
never as a description of what changed.
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque


REFRESH_MESSAGE = "refresh"

logger = logging.getLogger("posapp.sync")

Subscriber = Callable[[str], None]

_LOCK = threading.Lock()
_SUBSCRIBERS: list = []
_GENERATION = 0
_EVENTS: Deque[dict[str, Any]] = deque(maxlen=200)


def _live(entry) -> Subscriber | None:
    return entry() if isinstance(entry, weakref.WeakMethod) else entry


def _prune() -> list[Subscriber]:
    """Drop subscribers whose owner was garbage collected. Call under ``_LOCK``."""

    live = []
    for entry in list(_SUBSCRIBERS):
        callback = _live(entry)
        if callback is None:
            _SUBSCRIBERS.remove(entry)
        else:
            live.append(callback)
    return live


def subscribe(callback: Subscriber, *, weak: bool = False) -> Subscriber:
    """Register ``callback``. With ``weak=True`` a bound method is held weakly."""

    with _LOCK:
        if callback not in _prune():
            _SUBSCRIBERS.append(weakref.WeakMethod(callback) if weak else callback)
    return callback


def unsubscribe(callback: Subscriber) -> None:
    with _LOCK:
        for entry in list(_SUBSCRIBERS):
            if _live(entry) == callback:
                _SUBSCRIBERS.remove(entry)


def subscriber_count() -> int:
    with _LOCK:
        return len(_prune())


def current_generation() -> int:
    return _GENERATION


def publish_refresh(source: str | None = None) -> int:
    """Announce that the store changed. Subscriber failures are only logged."""

    global _GENERATION
    with _LOCK:
        _GENERATION += 1
        generation = _GENERATION
        subscribers = _prune()
        _EVENTS.append(
            {
                "timestamp": datetime.now(timezone.utc).replace(tzinfo=None),
                "message": REFRESH_MESSAGE,
                "source": source,
                "generation": generation,
            }
        )

    for callback in subscribers:
        try:
            callback(REFRESH_MESSAGE)
        except Exception:
            logger.exception("Refresh subscriber %r failed", callback)
    return generation


def get_recent_events(limit: int = 200) -> list[dict[str, Any]]:
    if limit <= 0:
        return []
    return list(_EVENTS)[-limit:]


def reset() -> None:
    global _GENERATION
    with _LOCK:
        _SUBSCRIBERS.clear()
        _EVENTS.clear()
        _GENERATION = 0
