from __future__ import annotations

import logging

import pytest

from archkit.exceptions import ValidationError
from archkit.hooks import ARTIFACT_SAVED, HookRegistry


def test_callbacks_receive_payload_in_order() -> None:
    hooks = HookRegistry()
    seen: list[str] = []
    hooks.register(ARTIFACT_SAVED, lambda payload: seen.append(f"a:{payload['id']}"))
    hooks.register(ARTIFACT_SAVED, lambda payload: seen.append(f"b:{payload['id']}"))
    assert hooks.emit(ARTIFACT_SAVED, {"id": "RFC-0001"}) == 0
    assert seen == ["a:RFC-0001", "b:RFC-0001"]


def test_failing_callback_is_logged_and_isolated(caplog: pytest.LogCaptureFixture) -> None:
    hooks = HookRegistry()
    seen: list[str] = []

    def explode(payload: object) -> None:
        raise RuntimeError("boom")

    hooks.register(ARTIFACT_SAVED, explode)
    hooks.register(ARTIFACT_SAVED, lambda payload: seen.append("after"))
    with caplog.at_level(logging.ERROR, logger="archkit.hooks"):
        failures = hooks.emit(ARTIFACT_SAVED, {"id": "RFC-0001"})
    assert failures == 1
    assert seen == ["after"]
    assert "failed for artifact.saved" in caplog.text


def test_unknown_event_is_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        HookRegistry().register("artifact.renamed", lambda payload: None)
    assert excinfo.value.field == "event"
    assert excinfo.value.exit_code == 2


def test_emit_without_listeners_is_a_no_op() -> None:
    assert HookRegistry().emit(ARTIFACT_SAVED, {}) == 0
