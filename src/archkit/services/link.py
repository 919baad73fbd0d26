from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Literal

from archkit.exceptions import NotFoundError, ValidationError
from archkit.model import Artifact, ArtifactType, Reference, ReferenceType, advance_timestamp, utcnow
from archkit.storage.file_store import FileStore

logger = logging.getLogger(__name__)

Direction = Literal["incoming", "outgoing"]
LINK_TYPES: tuple[ReferenceType, ...] = tuple(ReferenceType)


@dataclass(frozen=True)
class Link:
    source_id: str
    target_id: str
    type: ReferenceType
    recorded_at: datetime


@dataclass(frozen=True)
class LinkInfo:
    outgoing: tuple[Link, ...] = ()
    incoming: tuple[Link, ...] = ()


@dataclass(frozen=True)
class LinkResult:
    link: Link
    warning: str | None = None


@dataclass(frozen=True)
class LinkDisplay:
    id: str
    title: str
    type: ArtifactType
    status: str
    link_type: ReferenceType
    direction: Direction


@dataclass
class LinkService:
    """Bidirectional view over the references stored on each source artifact."""

    store: FileStore
    clock: Callable[[], datetime] = field(default=utcnow)

    def _require(self, artifact_id: str) -> Artifact:
        artifact = self.store.load(artifact_id)
        if artifact is None:
            raise NotFoundError("Artifact", artifact_id)
        return artifact

    def get_links(self, artifact_id: str) -> LinkInfo:
        artifact = self.store.load(artifact_id)
        if artifact is None:
            return LinkInfo()
        outgoing = tuple(
            Link(
                source_id=artifact.id,
                target_id=ref.target_id,
                type=ref.reference_type,
                recorded_at=artifact.updated_at,
            )
            for ref in artifact.references
        )
        incoming: list[Link] = []
        for other in self.store.list():
            if other.id == artifact_id:
                continue
            for ref in other.references:
                if ref.target_id == artifact_id:
                    incoming.append(
                        Link(
                            source_id=other.id,
                            target_id=artifact_id,
                            type=ref.reference_type,
                            recorded_at=other.updated_at,
                        )
                    )
        return LinkInfo(outgoing=outgoing, incoming=tuple(incoming))

    def find_duplicate(
        self, source: Artifact, target_id: str, link_type: ReferenceType
    ) -> Reference | None:
        for ref in source.references:
            if ref.target_id == target_id and ref.reference_type == link_type:
                return ref
        return None

    def link_exists(self, source_id: str, target_id: str) -> bool:
        artifact = self.store.load(source_id)
        if artifact is None:
            return False
        return any(ref.target_id == target_id for ref in artifact.references)

    def create_link(self, source_id: str, target_id: str, link_type: ReferenceType | str) -> LinkResult:
        kind = _coerce_link_type(link_type)
        source = self._require(source_id)
        target = self._require(target_id)
        warning = None
        if self.find_duplicate(source, target_id, kind) is not None:
            warning = (
                f"Link already exists between {source_id} and {target_id} "
                f"with type '{kind.value}'"
            )
            logger.warning(warning)
        now = self.clock()
        source.references.append(
            Reference(target_id=target.id, target_type=target.type, reference_type=kind)
        )
        source.updated_at = advance_timestamp(source.updated_at, now)
        self.store.save(source)
        return LinkResult(
            link=Link(source_id=source_id, target_id=target_id, type=kind, recorded_at=now),
            warning=warning,
        )

    def batch_link(
        self, source_id: str, target_ids: Iterable[str], link_type: ReferenceType | str
    ) -> list[LinkResult]:
        targets = list(target_ids)
        self._require(source_id)
        for target_id in targets:
            self._require(target_id)
        return [self.create_link(source_id, target_id, link_type) for target_id in targets]

    def remove_link(
        self, source_id: str, target_id: str, link_type: ReferenceType | str | None = None
    ) -> int:
        """Remove matching references from the source; return how many went."""
        kind = _coerce_link_type(link_type) if link_type is not None else None
        source = self._require(source_id)
        kept = [
            ref
            for ref in source.references
            if not (ref.target_id == target_id and (kind is None or ref.reference_type == kind))
        ]
        removed = len(source.references) - len(kept)
        if removed:
            source.references = kept
            source.updated_at = advance_timestamp(source.updated_at, self.clock())
            self.store.save(source)
        return removed

    def get_links_for_display(self, artifact_id: str) -> list[LinkDisplay]:
        links = self.get_links(artifact_id)
        displays: list[LinkDisplay] = []
        for link in links.outgoing:
            target = self.store.load(link.target_id)
            if target is not None:
                displays.append(_display(target, link.type, "outgoing"))
        for link in links.incoming:
            source = self.store.load(link.source_id)
            if source is not None:
                displays.append(_display(source, link.type, "incoming"))
        return displays


def _display(artifact: Artifact, link_type: ReferenceType, direction: Direction) -> LinkDisplay:
    return LinkDisplay(
        id=artifact.id,
        title=artifact.title,
        type=artifact.type,
        status=artifact.status,
        link_type=link_type,
        direction=direction,
    )


def _coerce_link_type(value: ReferenceType | str) -> ReferenceType:
    try:
        return ReferenceType(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in LINK_TYPES)
        raise ValidationError(
            f"Invalid link type '{value}'. Expected one of: {allowed}", field="type"
        ) from exc

