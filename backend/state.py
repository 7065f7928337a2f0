"""
AgentState — the central data structure passed between all nodes in LangGraph.

Nodes never mutate the state they receive. Each node returns a sparse patch
containing only the fields it changed; LangGraph merges the patch using the
reducer attached to each field:

    keep_last        new value replaces old, unless the patch carries None
    add_drafts       additive; patches report deltas (0 or 1)
    append_messages  concatenation; patches report only turns to append
"""

from enum import Enum
from typing import Annotated, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from typing_extensions import TypedDict


class Mode(str, Enum):
    """Interaction mode declared by the caller."""

    PLANNER = "planner"
    WRITER = "writer"
    BRAINSTORMING = "brainstorming"
    CONTEXTUAL_EDIT = "contextual-edit"


class RoutingDecision(str, Enum):
    """The kind of work the router decided is being requested."""

    SIMPLE_RETRIEVAL = "simple_retrieval"
    CREATIVE_GENERATION = "creative_generation"
    TEXT_MODIFICATION = "text_modification"
    CANNOT_ANSWER = "cannot_answer"


def keep_last(old, new):
    """Default reducer: take the new value if present, else keep the old one."""
    return new if new is not None else old


def add_drafts(old: Optional[int], new: Optional[int]) -> int:
    """draft_count reducer. Only ever grows."""
    return (old or 0) + (new or 0)


def append_messages(
    old: Optional[List[BaseMessage]], new: Optional[List[BaseMessage]]
) -> List[BaseMessage]:
    """messages reducer. Order preserved, never overwritten."""
    return list(old or []) + list(new or [])


def conversation_turn(user_input: str, reply: str) -> List[BaseMessage]:
    """The messages patch a terminal node emits: the question, then the answer."""
    return [HumanMessage(content=user_input), AIMessage(content=reply)]


class AgentState(TypedDict):
    """
    The state shared across all nodes during one orchestration run.

    Fields:
        user_input:         The user's original request. Never changes during a run.
        story_context:      Static summary of the whole story, supplied by the caller.
        mode:               Interaction mode; drives routing and template selection.
        planner_context:    Planner field tag (e.g. "planner_logline") selecting a template.
        editor_content:     Full document, contextual-edit and writer modes only.
        selection:          The span of editor_content the user wants replaced.
        transformed_query:  Retrieval query rewritten by the manager.
        rag_context:        Retrieved passages, or a retriever sentinel string.
        routing_decision:   Output of the router node.
        worker_prompt:      Instructions assembled by the manager for the worker.
        manager_analysis:   Raw manager output, kept for diagnostics.
        draft_count:        Fuel gauge of the reflection loop.
        draft:              Current draft from the worker.
        critique:           Latest critique as JSON text: {issues, score, stop}.
        final_output:       The answer returned to the caller.
        messages:           Conversation turns. Append-only.
    """

    user_input: str
    story_context: str
    mode: Annotated[Optional[Mode], keep_last]
    planner_context: Annotated[Optional[str], keep_last]
    editor_content: Annotated[Optional[str], keep_last]
    selection: Annotated[Optional[str], keep_last]
    transformed_query: Annotated[Optional[str], keep_last]
    rag_context: Annotated[Optional[str], keep_last]
    routing_decision: Annotated[Optional[RoutingDecision], keep_last]
    worker_prompt: Annotated[Optional[str], keep_last]
    manager_analysis: Annotated[Optional[str], keep_last]
    draft_count: Annotated[int, add_drafts]
    draft: Annotated[Optional[str], keep_last]
    critique: Annotated[Optional[str], keep_last]
    final_output: Annotated[Optional[str], keep_last]
    messages: Annotated[List[BaseMessage], append_messages]


# Hard bound on the generate -> critique -> refine loop
MAX_DRAFT_ITERATIONS = 3

# Passages fetched from the vector index per retrieval
MAX_RAG_RESULTS = 5
