"""
Context Retriever — fetches relevant story passages for a query.

Reads never raise: an unprovisioned index or a failing search degrade to a
fixed sentinel string, so the nodes downstream always receive some context.
"""

import asyncio
import logging
from typing import List

from state import MAX_RAG_RESULTS
from tools.vector_store import StoryDocument, StoryIndex

logger = logging.getLogger(__name__)

VECTOR_STORE_NOT_CONFIGURED = (
    "Vector store not yet configured. Please run the vector store setup first."
)
NO_CONTEXT_FOUND = "No relevant context found."
RETRIEVAL_FAILED = "Error while retrieving context from the vector store."

PASSAGE_SEPARATOR = "\n\n---\n\n"


class ContextRetriever:
    def __init__(self, index: StoryIndex) -> None:
        self.index = index

    async def _run(self, fn, *args):
        # Chroma is synchronous; keep the event loop free
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: fn(*args))

    async def get_relevant_context(self, query: str, k: int = MAX_RAG_RESULTS) -> str:
        """
        Return the top-k passages for `query` joined by a visible separator.

        Returns one of the module sentinels instead of raising.
        """
        try:
            if not await self._run(self.index.index_exists):
                logger.warning("[Retriever] Vector index does not exist yet")
                return VECTOR_STORE_NOT_CONFIGURED

            results = await self._run(self.index.similarity_search, query, k)
        except Exception:  # noqa: BLE001
            logger.exception("[Retriever] Retrieval failed")
            return RETRIEVAL_FAILED

        if not results:
            return NO_CONTEXT_FOUND

        return PASSAGE_SEPARATOR.join(r["content"] for r in results)

    async def add_documents(self, docs: List[StoryDocument]) -> int:
        """Write path for ingestion. Errors propagate to the caller."""
        return await self._run(self.index.add_documents, docs)
