"""
Shared test doubles. No test talks to a real LLM provider or ChromaDB.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from langchain_core.messages import AIMessage

from services.llm_factory import TextGenerator


class FakeChatModel:
    """
    Stands in for both the chat model factory and the chat model.

    `responder` receives the concatenated message contents and returns the
    reply text, or an exception instance to raise.
    """

    def __init__(self, responder):
        self.responder = responder
        self.calls = []
        self.factory_kwargs = []

    def __call__(self, **kwargs):
        self.factory_kwargs.append(kwargs)
        return self

    async def ainvoke(self, messages):
        text = "\n".join(str(m.content) for m in messages)
        self.calls.append(text)
        reply = self.responder(text)
        if isinstance(reply, BaseException):
            raise reply
        return AIMessage(content=reply)


class FakeIndex:
    """In-memory StoryIndex double."""

    def __init__(self, exists=True, results=None, error=None):
        self.exists = exists
        self.results = results or []
        self.error = error
        self.searches = []
        self.upserted = []

    def index_exists(self):
        return self.exists

    def similarity_search(self, query, k=5):
        self.searches.append((query, k))
        if self.error:
            raise self.error
        return self.results[:k]

    def add_documents(self, docs):
        self.upserted.extend(docs)
        return len(docs)


def scripted(*rules, default="OK"):
    """
    Build a responder from (marker, reply) pairs checked in order.

    A reply may be a string, an exception instance, or a callable taking
    the prompt text.
    """

    def responder(text):
        for marker, reply in rules:
            if marker in text:
                return reply(text) if callable(reply) else reply
        return default

    return responder


@pytest.fixture
def make_generator():
    """Factory fixture: make_generator(responder) -> (TextGenerator, FakeChatModel)."""

    def _make(responder, provider_name="anthropic", max_retries=0):
        fake = FakeChatModel(responder)
        generator = TextGenerator(
            provider_name=provider_name,
            model_name="fake-model",
            chat_model_factory=fake,
            default_timeout=None,
            max_retries=max_retries,
        )
        return generator, fake

    return _make
