"""
Manager nodes — the fast/cheap tier that plans, classifies and briefs.

route_task_node                 decides what kind of work is requested
handle_simple_retrieval_node    answers factual questions straight from context
manager_context_node            writes the instructions the worker will execute
"""

import logging

from agents.prompts import EDIT_OUTPUT_CONTRACT, build_manager_prompt
from services.errors import InvalidKeyError, ProviderError
from services.llm_factory import TextGenerator
from services.retry import RetryConfigs
from services.text_cleanup import strip_preamble
from state import AgentState, Mode, RoutingDecision, conversation_turn

logger = logging.getLogger(__name__)

# Modes whose intent is known up front; no classification call needed
CREATIVE_MODES = frozenset({Mode.WRITER, Mode.BRAINSTORMING, Mode.CONTEXTUAL_EDIT})

SIMPLE_ANSWER_FAILED_MESSAGE = (
    "Sorry, I couldn't answer that right now. Please try again in a moment."
)

_ROUTER_SYSTEM_PROMPT = """You are the task router of a creative-writing assistant.
Classify the user's request into exactly one category:

simple_retrieval     a factual question answerable from the story context
                     (e.g. "Who is Ana?", "Where does chapter 2 take place?")
creative_generation  writing new content: scenes, dialogue, descriptions, ideas
text_modification    changing existing text: rewrite, shorten, expand, change tone

Respond with the category name only."""

_SIMPLE_ANSWER_SYSTEM_PROMPT = """You answer questions about the author's story.
Use ONLY the provided context. If the context does not contain the answer,
say so briefly. Answer concisely, in the language of the question."""


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

def classify_routing_response(raw: str) -> RoutingDecision:
    """
    Map a free-text classification onto a RoutingDecision.

    The response is lower-cased and substring-matched against the category
    tokens. Zero or several matches default to creative_generation.
    """
    normalized = (raw or "").lower().replace("-", "_").replace(" ", "_")
    matches = [decision for decision in RoutingDecision if decision.value in normalized]
    if len(matches) == 1:
        return matches[0]
    return RoutingDecision.CREATIVE_GENERATION


async def route_task_node(state: AgentState, manager: TextGenerator) -> dict:
    """
    LangGraph node: set routing_decision.

    writer, brainstorming and contextual-edit always route to
    creative_generation without calling the model.
    """
    mode = state.get("mode")
    if mode in CREATIVE_MODES:
        logger.info(f"[RouteTask] Mode '{Mode(mode).value}' → creative_generation (fast path)")
        return {"routing_decision": RoutingDecision.CREATIVE_GENERATION}

    try:
        raw = await manager.generate_with_retry(
            f"REQUEST:\n{state['user_input']}",
            RetryConfigs.FAST_OPERATION,
            system_prompt=_ROUTER_SYSTEM_PROMPT,
            temperature=0.0,
            max_tokens=20,
        )
    except InvalidKeyError:
        raise
    except ProviderError as exc:
        logger.warning(f"[RouteTask] Classification failed, defaulting to creative: {exc}")
        return {"routing_decision": RoutingDecision.CREATIVE_GENERATION}

    decision = classify_routing_response(raw)
    logger.info(f"[RouteTask] {raw.strip()[:40]!r} → {decision.value}")
    return {"routing_decision": decision}


# ---------------------------------------------------------------------------
# Simple retrieval
# ---------------------------------------------------------------------------

async def handle_simple_retrieval_node(state: AgentState, manager: TextGenerator) -> dict:
    """
    LangGraph node: answer directly from rag_context. Terminal; the
    reflection loop is never entered on this branch.
    """
    prompt = (
        f"STORY CONTEXT:\n{state.get('story_context') or '(none)'}\n\n"
        f"RETRIEVED CONTEXT:\n{state.get('rag_context') or '(none)'}\n\n"
        f"QUESTION:\n{state['user_input']}"
    )

    try:
        answer = await manager.generate_with_retry(
            prompt,
            RetryConfigs.AI_API,
            system_prompt=_SIMPLE_ANSWER_SYSTEM_PROMPT,
            temperature=0.0,
            max_tokens=512,
        )
        answer = answer.strip()
    except InvalidKeyError:
        raise
    except ProviderError as exc:
        logger.warning(f"[SimpleRetrieval] Answer failed: {exc}")
        answer = SIMPLE_ANSWER_FAILED_MESSAGE

    return {
        "final_output": answer,
        "messages": conversation_turn(state["user_input"], answer),
    }


# ---------------------------------------------------------------------------
# Worker briefing
# ---------------------------------------------------------------------------

def _fallback_worker_prompt(state: AgentState) -> str:
    return f"{state.get('rag_context') or ''}\n\n{state['user_input']}".strip()


async def manager_context_node(state: AgentState, manager: TextGenerator) -> dict:
    """
    LangGraph node: assemble the role/context/style envelope for the worker.

    The template is chosen by mode. The manager's own lead-ins are stripped
    before the text becomes worker_prompt. On failure the worker still gets
    the retrieved context plus the request.
    """
    mode = state.get("mode")

    try:
        analysis = await manager.generate_with_retry(
            build_manager_prompt(state),
            RetryConfigs.AI_API,
            temperature=0.2,
            max_tokens=1024,
        )
        worker_prompt = strip_preamble(analysis)
    except InvalidKeyError:
        raise
    except ProviderError as exc:
        logger.warning(f"[ManagerContext] Falling back to minimal prompt: {exc}")
        analysis = None
        worker_prompt = _fallback_worker_prompt(state)

    if mode == Mode.CONTEXTUAL_EDIT:
        # The parser downstream depends on this contract; never leave it to the manager
        worker_prompt = f"{worker_prompt}\n\n{EDIT_OUTPUT_CONTRACT}"

    logger.info(f"[ManagerContext] Worker prompt ready ({len(worker_prompt)} chars)")
    return {
        "worker_prompt": worker_prompt,
        "manager_analysis": analysis,
    }
