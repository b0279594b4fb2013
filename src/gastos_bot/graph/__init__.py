"""Graph package for the LangGraph ingestion pipeline."""

from .builder import ENTRY_NODE, build_ingestion_graph
from .nodes import FORMAT_ERROR_PROMPT, STORAGE_ERROR_REPLY, USAGE_PROMPT
from .state import IngestionState, IngestionStatus

__all__ = [
    "ENTRY_NODE",
    "FORMAT_ERROR_PROMPT",
    "IngestionState",
    "IngestionStatus",
    "STORAGE_ERROR_REPLY",
    "USAGE_PROMPT",
    "build_ingestion_graph",
]
