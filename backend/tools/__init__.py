"""Infrastructure adapters for the Story Architect orchestrator."""

from .vector_store import StoryDocument, StoryIndex, create_story_index

__all__ = [
    "StoryDocument",
    "StoryIndex",
    "create_story_index",
]
