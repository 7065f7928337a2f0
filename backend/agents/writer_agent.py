"""
Worker nodes — the creative tier that drafts, refines and edits text.

worker_generation_node  executes the manager's brief (first draft)
refine_draft_node       rewrites the draft against the latest critique
modify_text_node        single-pass edit for direct modification requests
finalize_node           publishes the draft as final_output

In contextual-edit mode the worker must answer {"replacement": "..."}.
If that cannot be parsed the result is an empty string, never the input
text: echoing the document back duplicates content in the editor.
"""

import logging
from typing import Optional

from agents.critic_agent import parse_critique
from services.errors import InvalidKeyError, ProviderError
from services.llm_factory import TextGenerator
from services.retry import RetryConfigs
from services.text_cleanup import extract_json_object, strip_preamble
from state import AgentState, Mode, conversation_turn

logger = logging.getLogger(__name__)

GENERATION_FAILED_MESSAGE = (
    "Sorry, I couldn't generate the text this time. Please try again."
)
MODIFICATION_FAILED_MESSAGE = (
    "Sorry, I couldn't modify the text this time. Please try again."
)

_WORKER_SYSTEM_PROMPT = """You are the Writer in a two-tier creative-writing system.
Follow the Manager's instructions exactly. Write vivid, consistent prose that
respects the established story. Return only the requested text."""

_REFINE_SYSTEM_PROMPT = """You are the Writer revising your own draft.
Address EVERY issue raised by the critic while keeping what already works.
Return only the revised text."""

_MODIFY_SYSTEM_PROMPT = """You are an editor. Apply the requested change (rewrite, shorten,
expand, change tone...) to the given text and return only the modified text."""


def extract_replacement(raw: str) -> str:
    """
    Pull the replacement text out of a contextual-edit answer.

    Returns "" when there is no parseable JSON object or it lacks a string
    "replacement" field.
    """
    data = extract_json_object(raw)
    if data is None:
        return ""
    replacement = data.get("replacement")
    return replacement if isinstance(replacement, str) else ""


def _is_contextual_edit(state: AgentState) -> bool:
    return state.get("mode") == Mode.CONTEXTUAL_EDIT


async def worker_generation_node(state: AgentState, worker: TextGenerator) -> dict:
    """
    LangGraph node: produce the first draft.

    Always advances draft_count by one.
    """
    prompt = state.get("worker_prompt") or state["user_input"]

    try:
        raw = await worker.generate_with_retry(
            prompt,
            RetryConfigs.AI_API,
            system_prompt=_WORKER_SYSTEM_PROMPT,
            max_tokens=4096,
        )
    except InvalidKeyError:
        raise
    except ProviderError as exc:
        logger.warning(f"[WorkerGeneration] Generation failed: {exc}")
        return {"draft": "", "draft_count": 1}

    if _is_contextual_edit(state):
        draft = extract_replacement(raw)
        if not draft:
            logger.warning(f"[WorkerGeneration] No replacement JSON in output: {raw[:120]!r}")
    else:
        draft = raw.strip()

    logger.info(f"[WorkerGeneration] Draft ready ({len(draft)} chars)")
    return {"draft": draft, "draft_count": 1}


def _build_refine_prompt(state: AgentState) -> str:
    report = parse_critique(state.get("critique"))
    issues = "\n".join(f"- {issue}" for issue in report["issues"]) or "- (no specific issues listed)"
    prompt = (
        f"ORIGINAL INSTRUCTIONS:\n{state.get('worker_prompt') or state['user_input']}\n\n"
        f"YOUR DRAFT:\n{state.get('draft') or ''}\n\n"
        f"CRITIC SCORE: {report['score']}/100\n"
        f"ISSUES TO FIX:\n{issues}"
    )
    if _is_contextual_edit(state):
        prompt += '\n\nReturn ONLY {"replacement": "<revised text>"}.'
    return prompt


async def refine_draft_node(state: AgentState, worker: TextGenerator) -> dict:
    """
    LangGraph node: revise the draft given the critique.

    On failure the draft is left unchanged. draft_count is not touched here;
    the generation and critique nodes account for loop iterations.
    """
    try:
        raw = await worker.generate_with_retry(
            _build_refine_prompt(state),
            RetryConfigs.AI_API,
            system_prompt=_REFINE_SYSTEM_PROMPT,
            max_tokens=4096,
        )
    except InvalidKeyError:
        raise
    except ProviderError as exc:
        logger.warning(f"[RefineDraft] Refinement failed, keeping previous draft: {exc}")
        return {"draft": state.get("draft")}

    if _is_contextual_edit(state):
        revised = extract_replacement(raw)
        if not revised:
            logger.warning("[RefineDraft] No replacement JSON in output, keeping previous draft")
            return {"draft": state.get("draft")}
    else:
        revised = raw.strip()

    return {"draft": revised}


def _modification_target(state: AgentState) -> Optional[str]:
    return state.get("selection") or state.get("editor_content")


async def modify_text_node(state: AgentState, worker: TextGenerator) -> dict:
    """LangGraph node: one-shot edit, outside the reflection loop. Terminal."""
    target = _modification_target(state)
    prompt = f"INSTRUCTION:\n{state['user_input']}\n\n"
    if target:
        prompt += f"TEXT TO MODIFY:\n{target}"
    else:
        prompt += f"STORY CONTEXT:\n{state.get('story_context') or '(none)'}"

    try:
        raw = await worker.generate_with_retry(
            prompt,
            RetryConfigs.AI_API,
            system_prompt=_MODIFY_SYSTEM_PROMPT,
            max_tokens=2048,
        )
        output = strip_preamble(raw)
    except InvalidKeyError:
        raise
    except ProviderError as exc:
        logger.warning(f"[ModifyText] Modification failed: {exc}")
        output = MODIFICATION_FAILED_MESSAGE

    return {
        "final_output": output,
        "messages": conversation_turn(state["user_input"], output),
    }


async def finalize_node(state: AgentState) -> dict:
    """
    LangGraph node: publish the (possibly refined) draft.

    An empty contextual-edit draft stays empty; elsewhere the caller gets
    an apology instead of a blank answer.
    """
    draft = state.get("draft") or ""
    if not draft and not _is_contextual_edit(state):
        final_output = GENERATION_FAILED_MESSAGE
    else:
        final_output = draft

    logger.info(
        f"[Finalize] Output ready after {state.get('draft_count', 0)} iterations "
        f"({len(final_output)} chars)"
    )
    return {
        "final_output": final_output,
        "messages": conversation_turn(state["user_input"], final_output),
    }
