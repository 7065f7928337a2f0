"""
Story Architect Orchestrator — FastAPI application entrypoint.

Start the server:
    uvicorn main:app --reload --port 8000

API Overview:
    GET    /api/health                 — Health check
    POST   /api/ai/chat                — Run the orchestration graph
    POST   /api/ai/documents           — Upsert story documents into the vector index
    GET    /api/ai/providers/health    — Validate provider connections
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
from config import get_settings
from logging_config import setup_logging
from services.graph_builder import build_story_graph
from services.llm_factory import create_manager_provider, create_worker_provider
from services.retriever import ContextRetriever
from tools.vector_store import create_story_index

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create providers, index and graph on startup; drop them on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Story Architect API starting up...")

    # Unknown providers or missing API keys raise ConfigurationError here,
    # before serving requests
    app.state.manager = create_manager_provider(settings)
    app.state.worker = create_worker_provider(settings)
    app.state.retriever = ContextRetriever(
        create_story_index(settings.chroma_persist_dir, settings.chroma_collection)
    )
    app.state.graph = build_story_graph(
        app.state.manager, app.state.worker, app.state.retriever
    )
    logger.info("Orchestration graph compiled.")
    yield
    app.state.graph = None
    app.state.retriever = None
    logger.info("Story Architect API shutting down...")


app = FastAPI(
    title="Story Architect Orchestrator",
    description=(
        "Agent orchestration engine for a creative-writing assistant: retrieval, "
        "routing and a bounded manager/worker reflection loop on LangGraph."
    ),
    version="0.4.0",
    lifespan=lifespan,
)

# CORS: allow all origins in development; tighten in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
