"""
Retrieval nodes — rewrite the user's request into search queries, then fetch
matching story passages from the vector index.

Neither node can block the run: a failed rewrite falls back to the original
request, and the retriever itself never raises.
"""

import logging

from services.errors import InvalidKeyError, ProviderError
from services.llm_factory import TextGenerator
from services.retriever import ContextRetriever
from services.retry import RetryConfigs
from state import AgentState, MAX_RAG_RESULTS

logger = logging.getLogger(__name__)

MISSING_QUERY_MESSAGE = "Error: no query available for context retrieval."

_TRANSFORM_SYSTEM_PROMPT = """You are a retrieval expert for a creative-writing assistant.
Turn the user's request into 3-5 specific, hypothetical search queries for a
vector database, aimed at collecting everything needed to write the scene:
character profiles, relevant past events, locations and key objects.
Return only the queries, one per line, without explanations."""


def _build_transform_prompt(state: AgentState) -> str:
    return (
        f"STORY CONTEXT:\n{state.get('story_context') or 'No story context available.'}\n\n"
        f"USER REQUEST:\n{state['user_input']}"
    )


async def transform_query_node(state: AgentState, manager: TextGenerator) -> dict:
    """
    LangGraph node: rewrite user_input into retrieval-oriented queries.

    Returns:
        {"transformed_query": ...}, the original user_input on failure.
    """
    user_input = state.get("user_input") or ""
    logger.info(f"[TransformQuery] Rewriting: '{user_input[:80]}'")

    if not user_input:
        return {"transformed_query": user_input}

    try:
        raw = await manager.generate_with_retry(
            _build_transform_prompt(state),
            RetryConfigs.FAST_OPERATION,
            system_prompt=_TRANSFORM_SYSTEM_PROMPT,
            temperature=0.0,
            max_tokens=200,
        )
    except InvalidKeyError:
        raise
    except ProviderError as exc:
        logger.warning(f"[TransformQuery] Falling back to original input: {exc}")
        return {"transformed_query": user_input}

    transformed = raw.strip() or user_input
    logger.info(f"[TransformQuery] → {transformed[:200]!r}")
    return {"transformed_query": transformed}


async def retrieve_context_node(state: AgentState, retriever: ContextRetriever) -> dict:
    """
    LangGraph node: fetch relevant passages for transformed_query (or user_input).

    Returns:
        {"rag_context": ...}; a retriever sentinel when the index is missing.
    """
    query = state.get("transformed_query") or state.get("user_input")
    if not query:
        logger.error("[RetrieveContext] No query available")
        return {"rag_context": MISSING_QUERY_MESSAGE}

    rag_context = await retriever.get_relevant_context(query, MAX_RAG_RESULTS)
    logger.info(f"[RetrieveContext] Retrieved {len(rag_context)} chars of context")
    return {"rag_context": rag_context}
