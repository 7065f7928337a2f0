"""
Graph Builder — constructs the LangGraph execution graph for orchestration runs.

Graph topology:
    transform_query → retrieve_context → route_task
    route_task ─┬─ simple_retrieval    → handle_simple_retrieval → END
                ├─ creative_generation → manager_context → worker_generation → critique_draft
                ├─ text_modification   → modify_text → END
                └─ cannot_answer       → END
    critique_draft ─┬─ draft_count >= MAX_DRAFT_ITERATIONS or stop → finalize → END
                    └─ otherwise                                     → refine_draft → critique_draft

The compiled graph holds no per-run state and can serve concurrent runs.
"""

import logging
from functools import partial
from typing import List, Optional, Union

from langchain_core.messages import BaseMessage
from langgraph.graph import END, StateGraph

from agents import (
    critique_draft_node,
    finalize_node,
    handle_simple_retrieval_node,
    manager_context_node,
    modify_text_node,
    refine_draft_node,
    retrieve_context_node,
    route_task_node,
    transform_query_node,
    worker_generation_node,
)
from agents.critic_agent import parse_critique
from services.errors import ConfigurationError
from services.llm_factory import TextGenerator
from services.retriever import ContextRetriever
from state import (
    AgentState,
    MAX_DRAFT_ITERATIONS,
    Mode,
    RoutingDecision,
    append_messages,
    conversation_turn,
)

logger = logging.getLogger(__name__)

CANNOT_ANSWER_MESSAGE = (
    "I'm sorry, I can't help with that request in the context of this story."
)

_ROUTES = {
    RoutingDecision.SIMPLE_RETRIEVAL: "handle_simple_retrieval",
    RoutingDecision.CREATIVE_GENERATION: "manager_context",
    RoutingDecision.TEXT_MODIFICATION: "modify_text",
    RoutingDecision.CANNOT_ANSWER: END,
}


def route_after_router(state: AgentState) -> str:
    """
    Conditional edge out of route_task.

    Returns:
        The next node name, or END for cannot_answer / unknown decisions.
    """
    decision = state.get("routing_decision")
    next_node = _ROUTES.get(decision, END)
    logger.info(f"[Graph] Routing decision: {decision} → {next_node}")
    return next_node


def route_after_critique(state: AgentState) -> str:
    """
    Conditional edge out of critique_draft: the loop's termination predicate.

    Returns:
        "finalize" once the iteration budget is spent or the critic says stop,
        "refine_draft" otherwise.
    """
    draft_count = state.get("draft_count", 0)
    if draft_count >= MAX_DRAFT_ITERATIONS:
        logger.info(f"[Graph] Max iterations ({MAX_DRAFT_ITERATIONS}) reached, finalizing")
        return "finalize"

    if parse_critique(state.get("critique"))["stop"]:
        logger.info("[Graph] Critic is satisfied, finalizing")
        return "finalize"

    logger.info(f"[Graph] Refining (draft_count={draft_count}/{MAX_DRAFT_ITERATIONS})")
    return "refine_draft"


def build_story_graph(
    manager: TextGenerator,
    worker: TextGenerator,
    retriever: ContextRetriever,
):
    """
    Build and compile the orchestration graph.

    Dependencies are bound to the node functions with functools.partial, so
    every node stays callable on its own with fakes in tests.

    Returns:
        A compiled LangGraph StateGraph ready for ainvoke().
    """
    graph = StateGraph(AgentState)

    graph.add_node("transform_query", partial(transform_query_node, manager=manager))
    graph.add_node("retrieve_context", partial(retrieve_context_node, retriever=retriever))
    graph.add_node("route_task", partial(route_task_node, manager=manager))
    graph.add_node("handle_simple_retrieval", partial(handle_simple_retrieval_node, manager=manager))
    graph.add_node("manager_context", partial(manager_context_node, manager=manager))
    graph.add_node("worker_generation", partial(worker_generation_node, worker=worker))
    graph.add_node("critique_draft", partial(critique_draft_node, manager=manager))
    graph.add_node("refine_draft", partial(refine_draft_node, worker=worker))
    graph.add_node("modify_text", partial(modify_text_node, worker=worker))
    graph.add_node("finalize", finalize_node)

    graph.set_entry_point("transform_query")
    graph.add_edge("transform_query", "retrieve_context")
    graph.add_edge("retrieve_context", "route_task")

    graph.add_conditional_edges(
        "route_task",
        route_after_router,
        {
            "handle_simple_retrieval": "handle_simple_retrieval",
            "manager_context": "manager_context",
            "modify_text": "modify_text",
            END: END,
        },
    )

    graph.add_edge("handle_simple_retrieval", END)
    graph.add_edge("modify_text", END)

    graph.add_edge("manager_context", "worker_generation")
    graph.add_edge("worker_generation", "critique_draft")

    # Reflection loop
    graph.add_conditional_edges(
        "critique_draft",
        route_after_critique,
        {
            "refine_draft": "refine_draft",
            "finalize": "finalize",
        },
    )
    graph.add_edge("refine_draft", "critique_draft")
    graph.add_edge("finalize", END)

    return graph.compile()


def create_initial_state(
    user_input: str,
    story_context: str,
    mode: Optional[Mode] = None,
    planner_context: Optional[str] = None,
    editor_content: Optional[str] = None,
    selection: Optional[str] = None,
    prior_messages: Optional[List[BaseMessage]] = None,
) -> AgentState:
    """Create a fresh AgentState for a new run."""
    return AgentState(
        user_input=user_input,
        story_context=story_context,
        mode=mode,
        planner_context=planner_context,
        editor_content=editor_content,
        selection=selection,
        transformed_query=None,
        rag_context=None,
        routing_decision=None,
        worker_prompt=None,
        manager_analysis=None,
        draft_count=0,
        draft=None,
        critique=None,
        final_output=None,
        messages=list(prior_messages or []),
    )


def _resolve_mode(mode: Union[Mode, str, None]) -> Optional[Mode]:
    if mode is None or mode == "":
        return None
    try:
        return Mode(mode)
    except ValueError:
        raise ConfigurationError(
            f"Unknown mode '{mode}'. Supported modes: {[m.value for m in Mode]}"
        ) from None


async def run_orchestration(
    graph,
    user_input: str,
    story_context: str,
    mode: Union[Mode, str, None] = None,
    planner_context: Optional[str] = None,
    editor_content: Optional[str] = None,
    selection: Optional[str] = None,
    prior_messages: Optional[List[BaseMessage]] = None,
) -> AgentState:
    """
    Execute one orchestration run to completion.

    Raises:
        ConfigurationError: before any node runs, for missing user_input,
            an unknown mode, or contextual-edit without a selection.

    Returns:
        The terminal AgentState; final_output is always set.
    """
    if not user_input or not user_input.strip():
        raise ConfigurationError("user_input is required")

    resolved_mode = _resolve_mode(mode)
    if resolved_mode == Mode.CONTEXTUAL_EDIT and not selection:
        raise ConfigurationError("contextual-edit mode requires a selection")

    initial_state = create_initial_state(
        user_input,
        story_context or "",
        mode=resolved_mode,
        planner_context=planner_context,
        editor_content=editor_content,
        selection=selection,
        prior_messages=prior_messages,
    )

    logger.info(
        f"[Graph] Run started: mode={resolved_mode.value if resolved_mode else 'default'} "
        f"input='{user_input[:80]}'"
    )
    final_state = await graph.ainvoke(initial_state)

    if final_state.get("final_output") is None:
        # cannot_answer ends the graph without a terminal node
        final_state = {
            **final_state,
            "final_output": CANNOT_ANSWER_MESSAGE,
            "messages": append_messages(
                final_state.get("messages"), conversation_turn(user_input, CANNOT_ANSWER_MESSAGE)
            ),
        }

    logger.info(
        f"[Graph] Run finished: route={final_state.get('routing_decision')} "
        f"draft_count={final_state.get('draft_count')}"
    )
    return final_state
