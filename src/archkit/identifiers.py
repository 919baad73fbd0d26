"""Artifact identifiers: prefix mapping, validation, and the per-type counter."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from archkit.exceptions import SecurityError, StorageError, ValidationError
from archkit.model import ArtifactType

logger = logging.getLogger(__name__)

TYPE_PREFIXES: dict[ArtifactType, str] = {
    ArtifactType.RFC: "RFC",
    ArtifactType.ADR: "ADR",
    ArtifactType.DECOMPOSITION: "DECOMP",
}
PREFIX_TYPES: dict[str, ArtifactType] = {
    prefix: artifact_type for artifact_type, prefix in TYPE_PREFIXES.items()
}
TYPE_DIRECTORIES: dict[ArtifactType, str] = {
    ArtifactType.RFC: "rfc",
    ArtifactType.ADR: "adr",
    ArtifactType.DECOMPOSITION: "decomposition",
}

_ID_PATTERNS: dict[ArtifactType, re.Pattern[str]] = {
    artifact_type: re.compile(rf"^{prefix}-\d{{4,}}$")
    for artifact_type, prefix in TYPE_PREFIXES.items()
}
_UNSAFE_FRAGMENTS = ("..", "/", "\\", "\x00")
_ID_WIDTH = 4
COUNTER_FILE_NAME = "config.json"


def unsafe_fragment(artifact_id: str) -> str | None:
    for fragment in _UNSAFE_FRAGMENTS:
        if fragment in artifact_id:
            return fragment
    return None


def is_valid_id(artifact_id: object) -> bool:
    if not isinstance(artifact_id, str) or not artifact_id:
        return False
    if unsafe_fragment(artifact_id) is not None:
        return False
    return any(pattern.match(artifact_id) for pattern in _ID_PATTERNS.values())


def check_id(artifact_id: object) -> ArtifactType:
    """Validate ``artifact_id`` and return the type its prefix denotes.

    Raises ``SecurityError`` for traversal characters and ``ValidationError``
    for anything else that does not match a known pattern. Only IDs that pass
    this check may be turned into filesystem paths.
    """
    if not isinstance(artifact_id, str) or not artifact_id:
        raise ValidationError("Artifact ID must be a non-empty string", field="id")
    fragment = unsafe_fragment(artifact_id)
    if fragment is not None:
        raise SecurityError(
            f"Unsafe artifact ID rejected: {artifact_id!r}",
            context={"id": artifact_id, "fragment": fragment},
        )
    for artifact_type, pattern in _ID_PATTERNS.items():
        if pattern.match(artifact_id):
            return artifact_type
    raise ValidationError(f"Invalid artifact ID: {artifact_id}", field="id")


def type_from_id(artifact_id: str) -> ArtifactType | None:
    if not is_valid_id(artifact_id):
        return None
    return PREFIX_TYPES.get(artifact_id.split("-", 1)[0])


def format_id(artifact_type: ArtifactType, number: int) -> str:
    return f"{TYPE_PREFIXES[artifact_type]}-{number:0{_ID_WIDTH}d}"


@dataclass(frozen=True)
class ParsedId:
    type: ArtifactType
    number: int


def parse_id(artifact_id: str) -> ParsedId | None:
    artifact_type = type_from_id(artifact_id)
    if artifact_type is None:
        return None
    return ParsedId(type=artifact_type, number=int(artifact_id.split("-", 1)[1]))


class IdGenerator:
    """Monotonic per-type counters persisted in ``<arch_dir>/config.json``.

    Counters are read once on construction and flushed on every increment.
    """

    def __init__(self, arch_dir: Path) -> None:
        self.arch_dir = Path(arch_dir)
        self.path = self.arch_dir / COUNTER_FILE_NAME
        self._counters = self._load()

    def _load(self) -> dict[ArtifactType, int]:
        counters = {artifact_type: 0 for artifact_type in ArtifactType}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return counters
        except OSError as exc:
            raise StorageError(f"Failed to read ID counters: {exc}") from exc
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt ID counter file %s", self.path)
            return counters
        stored = payload.get("idCounters", {}) if isinstance(payload, dict) else {}
        if not isinstance(stored, dict):
            return counters
        for artifact_type in ArtifactType:
            value = stored.get(artifact_type.value, 0)
            if isinstance(value, int) and value >= 0:
                counters[artifact_type] = value
        return counters

    def _flush(self) -> None:
        payload = {
            "idCounters": {
                artifact_type.value: count
                for artifact_type, count in self._counters.items()
            }
        }
        try:
            self.arch_dir.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to save ID counters: {exc}") from exc

    def current(self, artifact_type: ArtifactType) -> int:
        return self._counters[artifact_type]

    def peek(self, artifact_type: ArtifactType) -> str:
        return format_id(artifact_type, self._counters[artifact_type] + 1)

    def generate(self, artifact_type: ArtifactType) -> str:
        self._counters[artifact_type] += 1
        self._flush()
        return format_id(artifact_type, self._counters[artifact_type])

    def observe(self, artifact_id: str) -> None:
        """Raise the counter so that it never reissues ``artifact_id``."""
        parsed = parse_id(artifact_id)
        if parsed is None:
            return
        if parsed.number > self._counters[parsed.type]:
            self._counters[parsed.type] = parsed.number
            self._flush()
