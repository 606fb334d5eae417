"""Unit tests for DocumentStore."""

import dataclasses

import pytest

from conftest import make_document


def test_add_and_lookup(document_store):
    document, chunks = make_document(["first", "second"])

    document_store.add(document, chunks)

    assert document_store.get_document("doc1") == document
    assert document_store.get_chunk("doc1:1").text == "second"
    assert document_store.document_count == 1
    assert document_store.chunk_count == 2


def test_resolve_returns_chunk_and_document(document_store):
    document, chunks = make_document(["alpha"], filename="alpha.txt")
    document_store.add(document, chunks)

    chunk, owner = document_store.resolve("doc1:0")

    assert chunk.text == "alpha"
    assert owner.filename == "alpha.txt"
    assert document_store.resolve("doc1:9") is None


def test_list_documents_in_ingestion_order(document_store):
    for name in ("b", "a", "c"):
        document_store.add(*make_document(["text"], document_id=name))

    assert [doc.id for doc in document_store.list_documents()] == ["b", "a", "c"]


def test_chunk_count_mismatch_rejected(document_store):
    document, chunks = make_document(["one", "two"])

    with pytest.raises(ValueError, match="declares 2 chunks"):
        document_store.add(document, chunks[:1])

    assert document_store.document_count == 0


def test_foreign_chunk_rejected(document_store):
    document, _ = make_document(["one"], document_id="doc1")
    _, foreign = make_document(["one"], document_id="doc2")

    with pytest.raises(ValueError, match="must belong to document doc1"):
        document_store.add(document, foreign)


def test_duplicate_document_rejected(document_store):
    document, chunks = make_document(["one"])
    document_store.add(document, chunks)

    with pytest.raises(ValueError, match="already stored"):
        document_store.add(document, chunks)


def test_remove_drops_chunks(document_store):
    document_store.add(*make_document(["x", "y"], document_id="gone"))
    document_store.add(*make_document(["z"], document_id="kept"))

    removed = document_store.remove("gone")

    assert removed.id == "gone"
    assert document_store.get_chunk("gone:0") is None
    assert document_store.resolve("gone:1") is None
    assert document_store.chunk_count == 1
    assert document_store.remove("gone") is None


def test_clear(document_store):
    document_store.add(*make_document(["x"]))

    document_store.clear()

    assert document_store.list_documents() == []
    assert document_store.chunk_count == 0


def test_records_are_immutable(document_store):
    document, chunks = make_document(["x"])
    document_store.add(document, chunks)

    with pytest.raises(dataclasses.FrozenInstanceError):
        document_store.get_document("doc1").filename = "other.txt"
