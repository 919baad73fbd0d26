"""Capability interface through which plugins observe artifact changes."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Mapping

from archkit.exceptions import ValidationError

logger = logging.getLogger(__name__)

ARTIFACT_SAVED = "artifact.saved"
ARTIFACT_DELETED = "artifact.deleted"
KNOWN_EVENTS = frozenset({ARTIFACT_SAVED, ARTIFACT_DELETED})

HookCallback = Callable[[Mapping[str, object]], None]


class HookRegistry:
    def __init__(self) -> None:
        self._callbacks: dict[str, list[HookCallback]] = defaultdict(list)

    def register(self, event: str, callback: HookCallback) -> None:
        if event not in KNOWN_EVENTS:
            raise ValidationError(f"Unknown hook event: {event}", field="event")
        self._callbacks[event].append(callback)

    def emit(self, event: str, payload: Mapping[str, object]) -> int:
        """Run every callback for ``event``; return how many failed.

        A failing callback is logged and never aborts the command that fired it.
        """
        failures = 0
        for callback in list(self._callbacks.get(event, ())):
            try:
                callback(payload)
            except Exception:
                failures += 1
                logger.exception("Hook %r failed for %s", callback, event)
        return failures
