"""Shared entry point the transport adapters use to run the ingestion graph."""

from __future__ import annotations

from langgraph.graph.state import CompiledStateGraph
from langsmith import traceable

from gastos_bot import get_logger
from gastos_bot.graph import USAGE_PROMPT, IngestionState
from gastos_bot.models import MessageSource

LOGGER = get_logger("integrations.ingestion")

IngestionGraph = CompiledStateGraph


@traceable(run_type="chain", name="ingest_message")
def ingest_message(
    graph: IngestionGraph,
    *,
    sender_id: str,
    source: MessageSource,
    text: str | None,
) -> IngestionState:
    """Run one inbound message through the graph and return the final state.

    Messages without text skip the graph and get the usage prompt back.
    """

    message_text = (text or "").strip()
    if not message_text:
        return IngestionState(
            sender_id=sender_id,
            source=source,
            status="invalid",
            reply_text=USAGE_PROMPT,
        )

    state = IngestionState(
        sender_id=sender_id,
        source=source,
        pending_message=message_text,
    )
    raw_result = graph.invoke(state)
    if isinstance(raw_result, IngestionState):
        result = raw_result
    elif isinstance(raw_result, dict):
        result = IngestionState(**raw_result)
    else:
        raise TypeError(f"Ingestion graph returned unexpected result: {raw_result!r}")
    LOGGER.debug(
        "Ingested message sender=%s source=%s status=%s",
        sender_id,
        source,
        result.status,
    )
    return result


__all__ = ["IngestionGraph", "ingest_message"]
