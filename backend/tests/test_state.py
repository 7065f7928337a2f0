"""Tests for AgentState reducers and the initial state helper."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from langchain_core.messages import AIMessage, HumanMessage

from state import (
    MAX_DRAFT_ITERATIONS,
    MAX_RAG_RESULTS,
    Mode,
    RoutingDecision,
    add_drafts,
    append_messages,
    conversation_turn,
    keep_last,
)
from services.graph_builder import create_initial_state


class TestReducers:
    def test_messages_are_appended_in_order(self):
        a, b, c = HumanMessage("a"), AIMessage("b"), HumanMessage("c")
        merged = append_messages([a, b], [c])
        assert merged == [a, b, c]

    def test_messages_patch_never_replaces_history(self):
        a, b = HumanMessage("a"), AIMessage("b")
        merged = append_messages([a, b], [])
        assert merged == [a, b]

    def test_messages_reducer_does_not_mutate_inputs(self):
        old = [HumanMessage("a")]
        append_messages(old, [AIMessage("b")])
        assert len(old) == 1

    def test_draft_count_is_additive(self):
        assert add_drafts(2, 1) == 3
        assert add_drafts(2, 0) == 2
        assert add_drafts(None, 1) == 1

    def test_keep_last_takes_new_value(self):
        assert keep_last("old", "new") == "new"

    def test_keep_last_keeps_old_when_patch_is_none(self):
        assert keep_last("old", None) == "old"

    def test_conversation_turn_keeps_question_before_answer(self):
        turn = conversation_turn("Tko je Ana?", "A sailor.")
        assert turn == [HumanMessage(content="Tko je Ana?"), AIMessage(content="A sailor.")]

    def test_keep_last_accepts_empty_string(self):
        # An empty replacement is a real value, not an absent one
        assert keep_last("old", "") == ""


class TestInitialState:
    def test_initial_state_fields(self):
        state = create_initial_state("Tko je Ana?", "A story about Ana.")
        assert state["user_input"] == "Tko je Ana?"
        assert state["story_context"] == "A story about Ana."
        assert state["mode"] is None
        assert state["draft_count"] == 0
        assert state["messages"] == []
        assert state["final_output"] is None
        assert state["routing_decision"] is None

    def test_initial_state_copies_prior_messages(self):
        prior = [HumanMessage("hi"), AIMessage("hello")]
        state = create_initial_state("x", "", mode=Mode.BRAINSTORMING, prior_messages=prior)
        assert state["messages"] == prior
        assert state["messages"] is not prior
        assert state["mode"] is Mode.BRAINSTORMING

    def test_constants(self):
        assert MAX_DRAFT_ITERATIONS == 3
        assert MAX_RAG_RESULTS == 5

    def test_enum_values(self):
        assert Mode("contextual-edit") is Mode.CONTEXTUAL_EDIT
        assert {d.value for d in RoutingDecision} == {
            "simple_retrieval",
            "creative_generation",
            "text_modification",
            "cannot_answer",
        }
