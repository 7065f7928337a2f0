"""
Critic Node — scores the current draft and decides whether to stop refining.

The manager returns JSON {"issues": [...], "score": 0-100, "stop": bool}.
The critique is stored on the state as normalised JSON text; consumers parse
it with parse_critique, which never raises.
"""

import json
import logging
from typing import List

from typing_extensions import TypedDict

from services.errors import InvalidKeyError, ProviderError
from services.llm_factory import TextGenerator
from services.retry import RetryConfigs
from services.text_cleanup import extract_json_object
from state import AgentState

logger = logging.getLogger(__name__)


class CritiqueReport(TypedDict):
    issues: List[str]
    score: int
    stop: bool


_SYSTEM_PROMPT = """You are the Critic in a two-tier writing system.
Evaluate the draft against the story context: consistency with established
facts and characters, fulfilment of the request, prose quality and style.

You must respond with ONLY this JSON object — no other text:
{"issues": ["<concrete, actionable problem>", ...], "score": <integer 0-100>, "stop": <true|false>}

Set "stop" to true only when the draft is ready to hand to the author
(typically score >= 85) and further revision would not clearly improve it."""


def default_critique() -> CritiqueReport:
    """Used when the critic's answer cannot be parsed. Non-terminal."""
    return {"issues": [], "score": 50, "stop": False}


def terminal_critique(reason: str) -> CritiqueReport:
    return {"issues": [reason], "score": 0, "stop": True}


def parse_critique(content) -> CritiqueReport:
    """
    Parse a critique from raw model output or stored JSON text.

    Unparsable input yields default_critique(). Score is clamped to 0-100.
    """
    data = extract_json_object(content) if isinstance(content, str) else None
    if data is None:
        return default_critique()

    raw_issues = data.get("issues", [])
    if isinstance(raw_issues, str):
        raw_issues = [raw_issues]
    issues = [str(issue) for issue in raw_issues] if isinstance(raw_issues, list) else []

    try:
        score = int(float(data.get("score", 50)))
    except (TypeError, ValueError):
        score = 50
    score = max(0, min(100, score))

    stop = data.get("stop", False)
    if isinstance(stop, str):
        stop = stop.strip().lower() == "true"

    return {"issues": issues, "score": score, "stop": stop is True}


async def critique_draft_node(state: AgentState, manager: TextGenerator) -> dict:
    """
    LangGraph node: critique the draft.

    Always advances draft_count by one, so the loop bound holds no matter
    what the model answers.
    """
    draft = state.get("draft")
    if not draft:
        logger.warning("[Critique] No draft to critique, stopping the loop")
        report = terminal_critique("No draft was produced.")
        return {"critique": json.dumps(report), "draft_count": 1}

    prompt = (
        f"REQUEST:\n{state['user_input']}\n\n"
        f"STORY CONTEXT:\n{state.get('rag_context') or '(none)'}\n\n"
        f"DRAFT:\n{draft}"
    )

    try:
        raw = await manager.generate_with_retry(
            prompt,
            RetryConfigs.AI_API,
            system_prompt=_SYSTEM_PROMPT,
            temperature=0.0,
            max_tokens=800,
        )
    except InvalidKeyError:
        raise
    except ProviderError as exc:
        logger.warning(f"[Critique] Critic unavailable, accepting draft as is: {exc}")
        report = terminal_critique(f"Critique unavailable: {exc}")
        return {"critique": json.dumps(report), "draft_count": 1}

    if extract_json_object(raw) is None:
        logger.warning(f"[Critique] Unparsable critique, using default: {raw[:120]!r}")
    report = parse_critique(raw)

    logger.info(
        f"[Critique] score={report['score']} stop={report['stop']} "
        f"issues={len(report['issues'])} (iteration {state.get('draft_count', 0) + 1})"
    )
    return {"critique": json.dumps(report), "draft_count": 1}
