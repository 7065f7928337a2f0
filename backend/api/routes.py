"""
REST API routes for the Story Architect orchestrator.

Endpoints:
    GET  /api/health                 — Health check
    POST /api/ai/chat                — Run the orchestration graph for one request
    POST /api/ai/documents           — Upsert story documents into the vector index
    GET  /api/ai/providers/health    — Validate manager and worker provider connections

The caller has already resolved identity and loaded the story context;
persisting the returned final_output is the caller's job.
"""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from pydantic import BaseModel, Field

from services.errors import ConfigurationError, InvalidKeyError
from services.graph_builder import run_orchestration
from tools.vector_store import StoryDocument

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request / Response Models
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    user_input: str = Field(
        ...,
        min_length=1,
        max_length=20_000,
        description="The author's request.",
        examples=["Tko je Ana?"],
    )
    story_context: str = Field(default="", description="Static summary of the story.")
    mode: Optional[str] = Field(
        default=None,
        description="planner | writer | brainstorming | contextual-edit",
    )
    planner_context: Optional[str] = None
    editor_content: Optional[str] = None
    selection: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(BaseModel):
    final_output: str
    routing_decision: Optional[str] = None
    draft_count: int = 0
    critique: Optional[str] = None


class DocumentIn(BaseModel):
    doc_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    metadata: dict = Field(default_factory=dict)


class DocumentsRequest(BaseModel):
    documents: List[DocumentIn] = Field(..., min_length=1)


class DocumentsResponse(BaseModel):
    upserted: int


def _to_langchain_messages(messages: List[ChatMessage]) -> List[BaseMessage]:
    return [
        HumanMessage(content=m.content) if m.role == "user" else AIMessage(content=m.content)
        for m in messages
    ]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "Story Architect Orchestrator"}


@router.post("/ai/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Run one orchestration and return the final output plus diagnostics."""
    graph = http_request.app.state.graph

    try:
        final_state = await run_orchestration(
            graph,
            request.user_input,
            request.story_context,
            mode=request.mode,
            planner_context=request.planner_context,
            editor_content=request.editor_content,
            selection=request.selection,
            prior_messages=_to_langchain_messages(request.messages),
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except InvalidKeyError as exc:
        logger.error(f"[API] Provider rejected credentials: {exc}")
        raise HTTPException(
            status_code=502,
            detail=f"AI provider '{exc.provider_name}' rejected the API key.",
        )

    decision = final_state.get("routing_decision")
    return ChatResponse(
        final_output=final_state["final_output"],
        routing_decision=decision.value if decision is not None else None,
        draft_count=final_state.get("draft_count", 0),
        critique=final_state.get("critique"),
    )


@router.post("/ai/documents", response_model=DocumentsResponse)
async def upsert_documents(request: DocumentsRequest, http_request: Request):
    """Ingestion write path: batch upsert keyed by doc_id."""
    retriever = http_request.app.state.retriever
    docs = [
        StoryDocument(doc_id=d.doc_id, content=d.content, metadata=d.metadata)
        for d in request.documents
    ]
    try:
        count = await retriever.add_documents(docs)
    except Exception as exc:  # noqa: BLE001
        logger.exception("[API] Document ingestion failed")
        raise HTTPException(status_code=500, detail=f"Document ingestion failed: {exc}")
    return DocumentsResponse(upserted=count)


@router.get("/ai/providers/health")
async def providers_health(http_request: Request):
    """Validate both provider connections with a cheap round trip."""
    manager = http_request.app.state.manager
    worker = http_request.app.state.worker
    return {
        "manager": {
            "provider": manager.get_provider_name(),
            "ok": await manager.validate_connection(),
        },
        "worker": {
            "provider": worker.get_provider_name(),
            "ok": await worker.validate_connection(),
        },
    }
