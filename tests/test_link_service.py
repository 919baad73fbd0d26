from __future__ import annotations

import pytest

from archkit.exceptions import NotFoundError, ValidationError
from archkit.model import ReferenceType
from archkit.services.link import LinkService
from archkit.storage.file_store import FileStore
from tests.artifact_helpers import BASE_TIME, FrozenClock, save_artifact


def test_link_is_visible_from_both_ends(store: FileStore, links: LinkService) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002")

    result = links.create_link("RFC-0002", "RFC-0001", "depends-on")

    assert result.warning is None
    assert result.link.type is ReferenceType.DEPENDS_ON
    outgoing = links.get_links("RFC-0002").outgoing
    incoming = links.get_links("RFC-0001").incoming
    assert [(link.source_id, link.target_id) for link in outgoing] == [("RFC-0002", "RFC-0001")]
    assert [link.source_id for link in incoming] == ["RFC-0002"]
    assert links.link_exists("RFC-0002", "RFC-0001")
    assert not links.link_exists("RFC-0001", "RFC-0002")


def test_link_advances_source_timestamp(store: FileStore, links: LinkService, clock: FrozenClock) -> None:
    save_artifact(store, "RFC-0001", updated_at=BASE_TIME)
    save_artifact(store, "ADR-0001", updated_at=BASE_TIME)
    # Same instant as the stored timestamp still moves forward.
    links.create_link("RFC-0001", "ADR-0001", ReferenceType.RELATES_TO)
    source = store.load("RFC-0001")
    assert source is not None
    assert source.updated_at > BASE_TIME
    assert source.references[0].target_type.value == "adr"


def test_duplicate_link_warns_but_is_recorded(store: FileStore, links: LinkService) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002")
    links.create_link("RFC-0002", "RFC-0001", "blocks")
    again = links.create_link("RFC-0002", "RFC-0001", "blocks")
    assert again.warning is not None
    assert "already exists" in again.warning
    assert len(links.get_links("RFC-0002").outgoing) == 2


def test_link_to_missing_artifact_fails(store: FileStore, links: LinkService) -> None:
    save_artifact(store, "RFC-0001")
    with pytest.raises(NotFoundError):
        links.create_link("RFC-0001", "RFC-0404", "relates-to")
    with pytest.raises(NotFoundError):
        links.create_link("RFC-0404", "RFC-0001", "relates-to")


def test_invalid_link_type_is_rejected(store: FileStore, links: LinkService) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002")
    with pytest.raises(ValidationError):
        links.create_link("RFC-0001", "RFC-0002", "owns")


def test_batch_link_validates_all_targets_first(store: FileStore, links: LinkService) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "ADR-0001")
    with pytest.raises(NotFoundError):
        links.batch_link("RFC-0001", ["ADR-0001", "ADR-0404"], "relates-to")
    assert links.get_links("RFC-0001").outgoing == ()

    results = links.batch_link("RFC-0001", ["ADR-0001"], "implements")
    assert [result.link.target_id for result in results] == ["ADR-0001"]


def test_remove_link_by_type_or_all(store: FileStore, links: LinkService) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002")
    links.create_link("RFC-0001", "RFC-0002", "blocks")
    links.create_link("RFC-0001", "RFC-0002", "relates-to")

    assert links.remove_link("RFC-0001", "RFC-0002", "blocks") == 1
    assert [link.type for link in links.get_links("RFC-0001").outgoing] == [ReferenceType.RELATES_TO]
    assert links.remove_link("RFC-0001", "RFC-0002") == 1
    assert links.remove_link("RFC-0001", "RFC-0002") == 0


def test_unknown_artifact_has_no_links(links: LinkService) -> None:
    info = links.get_links("RFC-0404")
    assert info.outgoing == ()
    assert info.incoming == ()


def test_display_entries_carry_direction(store: FileStore, links: LinkService) -> None:
    save_artifact(store, "RFC-0001", title="Base")
    save_artifact(store, "RFC-0002", title="Child")
    save_artifact(store, "ADR-0001", title="Decision")
    links.create_link("RFC-0002", "RFC-0001", "depends-on")
    links.create_link("ADR-0001", "RFC-0002", "implements")

    entries = {(entry.id, entry.direction) for entry in links.get_links_for_display("RFC-0002")}

    assert entries == {("RFC-0001", "outgoing"), ("ADR-0001", "incoming")}
