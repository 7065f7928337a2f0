"""
Instruction templates for the manager, selected by mode and planner field.

Only the selection policy matters to the pipeline; the wording can be tuned
freely as long as the output contracts (plain text, or the JSON replacement
contract in contextual-edit mode) are kept.
"""

from typing import Callable, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage

from state import AgentState, Mode

_NO_META_RULE = """Respond ONLY with the requested content.
Never include meta-commentary, introductions or phrases such as
"Here is...", "I understand the request...", "Dear user...".
"""

# ---------------------------------------------------------------------------
# Planner field templates
# ---------------------------------------------------------------------------

PLANNER_LOGLINE_PROMPT = f"""You are an expert at writing loglines: short, striking story summaries.
A good logline is 1-3 sentences, active voice, shows the central conflict or
motivation, and intrigues without giving everything away.

{_NO_META_RULE}"""

PLANNER_CHARACTER_PROMPT = f"""You are an expert at creating story characters.
Return a VALID JSON OBJECT with exactly this schema:
{{"name": "string", "role": "string", "motivation": "string", "description": "string"}}
Be specific; tie personality to motivation. No text before or after the JSON.

{_NO_META_RULE}"""

PLANNER_LOCATION_PROMPT = f"""You are an expert at describing story locations.
Return a VALID JSON OBJECT with exactly this schema:
{{"name": "string", "description": "string", "sensoryDetails": "string"}}
Cover sight, sound, smell and touch, and the mood the place creates.
No text before or after the JSON.

{_NO_META_RULE}"""

PLANNER_GENERAL_PROMPT = f"""You are a creative-writing assistant in planner mode, helping the author
with ideation, structure, worldbuilding, characters and finalisation.
Be creative but structured, concrete and useful for the next planning step.

{_NO_META_RULE}"""


def get_planner_system_prompt(planner_context: Optional[str]) -> str:
    """Pick the planner template for a field tag such as "planner_character"."""
    context = (planner_context or "").lower().strip()
    if "logline" in context:
        return PLANNER_LOGLINE_PROMPT
    if "character" in context:
        return PLANNER_CHARACTER_PROMPT
    if "location" in context:
        return PLANNER_LOCATION_PROMPT
    return PLANNER_GENERAL_PROMPT


# ---------------------------------------------------------------------------
# Contextual-edit output contract
# ---------------------------------------------------------------------------

EDIT_OUTPUT_CONTRACT = """OUTPUT FORMAT (mandatory):
Return ONLY a JSON object of the form {"replacement": "<new text for the selected span>"}.
The replacement must fit seamlessly between the text before and after the selection.
Do NOT repeat any text outside the selection. No text before or after the JSON."""


# ---------------------------------------------------------------------------
# Manager envelopes, one per mode
# ---------------------------------------------------------------------------

_MANAGER_ROLE = """You are the Manager in a two-tier writing system. You do not write the
final text yourself: you write precise instructions for the Writer model,
covering role, relevant context, style and constraints.
Return only the instructions for the Writer."""


def format_history(messages: List[BaseMessage], limit: int = 10) -> str:
    """Render the last `limit` turns as 'User: ...' / 'Assistant: ...' lines."""
    lines = []
    for message in messages[-limit:]:
        speaker = "Assistant" if isinstance(message, AIMessage) else "User"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines) if lines else "(no previous conversation)"


def _brainstorming_envelope(state: AgentState) -> str:
    return (
        f"{_MANAGER_ROLE}\n\n"
        f"MODE: brainstorming. Synthesise the conversation so far into a brief for the Writer, "
        f"keeping ideas the author liked and dropping ones they rejected.\n\n"
        f"STORY CONTEXT:\n{state.get('story_context') or '(none)'}\n\n"
        f"RETRIEVED CONTEXT:\n{state.get('rag_context') or '(none)'}\n\n"
        f"CONVERSATION:\n{format_history(state.get('messages') or [])}\n\n"
        f"LATEST REQUEST:\n{state['user_input']}"
    )


def _writer_envelope(state: AgentState) -> str:
    return (
        f"{_MANAGER_ROLE}\n\n"
        f"MODE: writer. The Writer must continue the author's text, matching its voice, tense, "
        f"point of view and rhythm. Point out the stylistic features to preserve.\n\n"
        f"RETRIEVED CONTEXT:\n{state.get('rag_context') or '(none)'}\n\n"
        f"CURRENT DOCUMENT:\n{state.get('editor_content') or '(empty)'}\n\n"
        f"REQUEST:\n{state['user_input']}"
    )


def _contextual_edit_envelope(state: AgentState) -> str:
    return (
        f"{_MANAGER_ROLE}\n\n"
        f"MODE: contextual edit. The Writer must rewrite ONLY the selected span so that it joins "
        f"the surrounding text without seams: matching the sentence before and after, no "
        f"duplicated phrases, same tense and voice.\n\n"
        f"FULL DOCUMENT:\n{state.get('editor_content') or '(empty)'}\n\n"
        f"SELECTED SPAN:\n{state.get('selection') or ''}\n\n"
        f"REQUEST:\n{state['user_input']}\n\n"
        f"The Writer's answer will be parsed as JSON; your instructions must require:\n"
        f"{EDIT_OUTPUT_CONTRACT}"
    )


def _planner_envelope(state: AgentState) -> str:
    return (
        f"{_MANAGER_ROLE}\n\n"
        f"MODE: planner. Embed the following field-specific rules in your instructions:\n"
        f"{get_planner_system_prompt(state.get('planner_context'))}\n\n"
        f"STORY CONTEXT:\n{state.get('story_context') or '(none)'}\n\n"
        f"RETRIEVED CONTEXT:\n{state.get('rag_context') or '(none)'}\n\n"
        f"REQUEST:\n{state['user_input']}"
    )


def _default_envelope(state: AgentState) -> str:
    return (
        f"{_MANAGER_ROLE}\n\n"
        f"STORY CONTEXT:\n{state.get('story_context') or '(none)'}\n\n"
        f"RETRIEVED CONTEXT:\n{state.get('rag_context') or '(none)'}\n\n"
        f"REQUEST:\n{state['user_input']}"
    )


_ENVELOPES: Dict[Optional[Mode], Callable[[AgentState], str]] = {
    Mode.BRAINSTORMING: _brainstorming_envelope,
    Mode.WRITER: _writer_envelope,
    Mode.CONTEXTUAL_EDIT: _contextual_edit_envelope,
    Mode.PLANNER: _planner_envelope,
    None: _default_envelope,
}


def build_manager_prompt(state: AgentState) -> str:
    """Select and fill the manager envelope for the run's mode."""
    return _ENVELOPES[state.get("mode")](state)
