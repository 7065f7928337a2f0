"""
Story Index — ChromaDB wrapper holding embedded story material.

Characters, locations and scenes are upserted here by the ingestion path and
searched by the context retriever. The client is created once at application
startup and injected; nothing is cached at module level.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


@dataclass
class StoryDocument:
    """A piece of story material ready for embedding."""

    doc_id: str  # stable external id, e.g. "character:42"
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class StoryIndex:
    """Similarity index over one Chroma collection."""

    def __init__(self, client: Any, collection_name: str = "story_architect_embeddings") -> None:
        self.client = client
        self.collection_name = collection_name

    def index_exists(self) -> bool:
        """True if the collection has been provisioned."""
        # Chroma >= 0.6 returns names, older versions return Collection objects
        names = [getattr(c, "name", c) for c in self.client.list_collections()]
        return self.collection_name in names

    def similarity_search(self, query: str, k: int = 5) -> List[Dict[str, Any]]:
        """Return up to k passages as [{content, metadata}], nearest first."""
        collection = self.client.get_collection(self.collection_name)
        count = collection.count()
        if count == 0:
            return []

        results = collection.query(
            query_texts=[query],
            n_results=min(k, count),
        )

        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0] or [{}] * len(documents)

        return [
            {"content": doc, "metadata": meta or {}}
            for doc, meta in zip(documents, metadatas)
        ]

    def add_documents(self, docs: List[StoryDocument]) -> int:
        """
        Batch upsert keyed by doc_id; re-ingesting a document replaces it.

        Returns:
            Number of documents written.
        """
        if not docs:
            return 0

        collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        collection.upsert(
            ids=[d.doc_id for d in docs],
            documents=[d.content for d in docs],
            # Chroma rejects empty metadata dicts
            metadatas=[d.metadata or {"doc_id": d.doc_id} for d in docs],
        )
        logger.info(f"[StoryIndex] Upserted {len(docs)} documents into '{self.collection_name}'")
        return len(docs)


def create_story_index(persist_dir: str, collection_name: str) -> StoryIndex:
    """Open the persistent Chroma client backing the story index."""
    import chromadb

    client = chromadb.PersistentClient(path=persist_dir)
    return StoryIndex(client, collection_name)
