"""
In-memory document store: owner scoping, updates, listing and share lookups.
"""

import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[1]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

sys.path.insert(0, str(BASE_DIR))

import pytest

from storage.documents import InMemoryDocumentStore, generate_share_id
from tests.helpers import network_payload, tree_payload
from viz_agent.utils.document import VisualizationDocument, VisualizationKind


def _document(owner_id="alice", title="Org chart"):
    return VisualizationDocument(
        owner_id=owner_id,
        kind=VisualizationKind.TREE_DIAGRAM,
        title=title,
        payload=tree_payload(),
    )


@pytest.mark.asyncio
async def test_create_assigns_id_and_reads_are_owner_scoped():
    store = InMemoryDocumentStore()

    created = await store.create(_document())

    assert created.id
    assert (await store.find_by_id(created.id, "alice")).title == "Org chart"
    assert await store.find_by_id(created.id, "mallory") is None
    assert await store.delete(created.id, "mallory") is False
    assert await store.update(created.id, "mallory", {"title": "pwned"}) is None


@pytest.mark.asyncio
async def test_returned_documents_are_copies():
    store = InMemoryDocumentStore()
    created = await store.create(_document())

    created.payload["root"]["content"] = "Changed locally"

    stored = await store.find_by_id(created.id, "alice")
    assert stored.payload["root"]["content"] == "Company"


@pytest.mark.asyncio
async def test_update_changes_fields_and_timestamp():
    store = InMemoryDocumentStore()
    created = await store.create(_document())

    updated = await store.update(created.id, "alice", {"title": "Teams"})

    assert updated.title == "Teams"
    assert updated.updated_at >= created.updated_at
    assert updated.created_at == created.created_at


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields():
    store = InMemoryDocumentStore()
    created = await store.create(_document())

    with pytest.raises(ValueError):
        await store.update(created.id, "alice", {"owner_id": "mallory"})


@pytest.mark.asyncio
async def test_list_is_most_recent_first_and_limited():
    store = InMemoryDocumentStore()
    first = await store.create(_document(title="First"))
    await store.create(_document(title="Second"))
    await store.create(_document(owner_id="bob", title="Bob's"))
    await store.update(first.id, "alice", {"title": "First again"})

    listed = await store.list_by_owner("alice", limit=10)

    assert [d.title for d in listed] == ["First again", "Second"]
    assert len(await store.list_by_owner("alice", limit=1)) == 1
    assert await store.count_by_owner("alice") == 2
    assert await store.count_by_owner("bob") == 1


@pytest.mark.asyncio
async def test_share_lookup_returns_public_documents_only():
    store = InMemoryDocumentStore()
    created = await store.create(
        VisualizationDocument(
            owner_id="alice",
            kind=VisualizationKind.NETWORK_GRAPH,
            payload=network_payload(),
            share_id="abc123abc123",
        )
    )
    assert await store.find_by_share_id("abc123abc123") is None

    await store.update(created.id, "alice", {"is_public": True})

    assert (await store.find_by_share_id("abc123abc123")).id == created.id


def test_share_ids_are_short_hex_and_distinct():
    ids = {generate_share_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(len(i) == 12 and int(i, 16) >= 0 for i in ids)
