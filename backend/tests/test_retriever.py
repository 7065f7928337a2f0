"""Tests for the Chroma-backed story index and the context retriever."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from conftest import FakeIndex
from services.retriever import (
    NO_CONTEXT_FOUND,
    PASSAGE_SEPARATOR,
    RETRIEVAL_FAILED,
    VECTOR_STORE_NOT_CONFIGURED,
    ContextRetriever,
)
from tools.vector_store import StoryDocument, StoryIndex


def passage(text):
    return {"content": text, "metadata": {}}


class TestContextRetriever:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("query,k", [("Tko je Ana?", 5), ("", 1), ("anything", 50)])
    async def test_missing_index_returns_sentinel(self, query, k):
        index = FakeIndex(exists=False)
        result = await ContextRetriever(index).get_relevant_context(query, k)
        assert result == VECTOR_STORE_NOT_CONFIGURED
        assert index.searches == []

    @pytest.mark.asyncio
    async def test_passages_are_joined_with_separator(self):
        index = FakeIndex(results=[passage("Ana is a sailor."), passage("Ana lives in Split.")])
        result = await ContextRetriever(index).get_relevant_context("Ana")
        assert result == "Ana is a sailor." + PASSAGE_SEPARATOR + "Ana lives in Split."
        assert index.searches == [("Ana", 5)]

    @pytest.mark.asyncio
    async def test_k_is_forwarded(self):
        index = FakeIndex(results=[passage("a"), passage("b"), passage("c")])
        result = await ContextRetriever(index).get_relevant_context("q", k=2)
        assert result == "a" + PASSAGE_SEPARATOR + "b"
        assert index.searches == [("q", 2)]

    @pytest.mark.asyncio
    async def test_no_results(self):
        result = await ContextRetriever(FakeIndex(results=[])).get_relevant_context("q")
        assert result == NO_CONTEXT_FOUND

    @pytest.mark.asyncio
    async def test_search_failure_returns_sentinel(self):
        index = FakeIndex(error=RuntimeError("embedding service down"))
        result = await ContextRetriever(index).get_relevant_context("q")
        assert result == RETRIEVAL_FAILED

    @pytest.mark.asyncio
    async def test_existence_check_failure_returns_sentinel(self):
        index = MagicMock()
        index.index_exists.side_effect = ConnectionError("chroma unreachable")
        result = await ContextRetriever(index).get_relevant_context("q")
        assert result == RETRIEVAL_FAILED

    @pytest.mark.asyncio
    async def test_add_documents(self):
        index = FakeIndex()
        docs = [StoryDocument("character:1", "Ana, a sailor.")]
        assert await ContextRetriever(index).add_documents(docs) == 1
        assert index.upserted == docs

    @pytest.mark.asyncio
    async def test_add_documents_propagates_errors(self):
        index = MagicMock()
        index.add_documents.side_effect = RuntimeError("disk full")
        with pytest.raises(RuntimeError):
            await ContextRetriever(index).add_documents([StoryDocument("x", "y")])


class TestStoryIndex:
    def test_index_exists_with_collection_names(self):
        client = MagicMock()
        client.list_collections.return_value = ["other", "story"]
        assert StoryIndex(client, "story").index_exists() is True

    def test_index_exists_with_collection_objects(self):
        client = MagicMock()
        client.list_collections.return_value = [SimpleNamespace(name="other")]
        assert StoryIndex(client, "story").index_exists() is False

    def test_similarity_search_caps_k_at_collection_size(self):
        collection = MagicMock()
        collection.count.return_value = 2
        collection.query.return_value = {
            "documents": [["Ana is a sailor.", "Split harbour at dawn."]],
            "metadatas": [[{"type": "character"}, None]],
        }
        client = MagicMock()
        client.get_collection.return_value = collection

        results = StoryIndex(client, "story").similarity_search("Ana", k=5)

        collection.query.assert_called_once_with(query_texts=["Ana"], n_results=2)
        assert results == [
            {"content": "Ana is a sailor.", "metadata": {"type": "character"}},
            {"content": "Split harbour at dawn.", "metadata": {}},
        ]

    def test_similarity_search_on_empty_collection(self):
        collection = MagicMock()
        collection.count.return_value = 0
        client = MagicMock()
        client.get_collection.return_value = collection

        assert StoryIndex(client, "story").similarity_search("Ana") == []
        collection.query.assert_not_called()

    def test_add_documents_upserts_by_id(self):
        collection = MagicMock()
        client = MagicMock()
        client.get_or_create_collection.return_value = collection
        docs = [
            StoryDocument("character:1", "Ana", {"type": "character"}),
            StoryDocument("location:7", "Split"),
        ]

        written = StoryIndex(client, "story").add_documents(docs)

        assert written == 2
        client.get_or_create_collection.assert_called_once_with(
            name="story", metadata={"hnsw:space": "cosine"}
        )
        collection.upsert.assert_called_once_with(
            ids=["character:1", "location:7"],
            documents=["Ana", "Split"],
            metadatas=[{"type": "character"}, {"doc_id": "location:7"}],
        )

    def test_add_no_documents(self):
        client = MagicMock()
        assert StoryIndex(client, "story").add_documents([]) == 0
        client.get_or_create_collection.assert_not_called()
