"""Node functions for the Story Architect graph."""

from .retrieval_agent import transform_query_node, retrieve_context_node
from .master_agent import (
    route_task_node,
    handle_simple_retrieval_node,
    manager_context_node,
)
from .critic_agent import critique_draft_node
from .writer_agent import (
    worker_generation_node,
    refine_draft_node,
    modify_text_node,
    finalize_node,
)

__all__ = [
    "transform_query_node",
    "retrieve_context_node",
    "route_task_node",
    "handle_simple_retrieval_node",
    "manager_context_node",
    "critique_draft_node",
    "worker_generation_node",
    "refine_draft_node",
    "modify_text_node",
    "finalize_node",
]
