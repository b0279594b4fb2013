"""LangGraph builder for the expense ingestion pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Literal

from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph

from gastos_bot import get_logger
from gastos_bot.config import Settings, get_settings
from gastos_bot.graph.nodes import (
    build_expense_record,
    parse_inbound_message,
    persist_expense_record,
)
from gastos_bot.graph.state import IngestionState
from gastos_bot.storage import ExpenseRepository, create_expense_repository

LOGGER = get_logger("graph.builder")
ENTRY_NODE = "message_entry"
PARSE_NODE = "parse_expense"
RECORD_NODE = "build_record"
PERSIST_NODE = "persist_record"

Clock = Callable[[], datetime]


def build_ingestion_graph(
    *,
    settings: Settings | None = None,
    repository: ExpenseRepository | None = None,
    clock: Clock | None = None,
) -> CompiledStateGraph[IngestionState, Any, Any, Any]:
    """Compile the parse → record → persist graph.

    Each inbound message is an independent run, so the graph is compiled
    without a checkpointer and can be shared across requests.
    """

    resolved_settings = settings or get_settings()
    store = repository or create_expense_repository(resolved_settings)
    tz = resolved_settings.tzinfo
    now = clock or (lambda: datetime.now(tz))

    builder = StateGraph(IngestionState)
    builder.add_node(ENTRY_NODE, _entry_node)
    builder.add_node(PARSE_NODE, _create_parse_node(resolved_settings))
    builder.add_node(RECORD_NODE, _create_record_node(now, tz))
    builder.add_node(PERSIST_NODE, _create_persist_node(store))

    builder.add_edge(START, ENTRY_NODE)
    builder.add_edge(ENTRY_NODE, PARSE_NODE)
    builder.add_conditional_edges(
        PARSE_NODE,
        _route_after_parse,
        path_map={"record": RECORD_NODE, "reject": END},
    )
    builder.add_edge(RECORD_NODE, PERSIST_NODE)
    builder.add_edge(PERSIST_NODE, END)

    graph = builder.compile()
    LOGGER.info(
        "Ingestion graph compiled (storage=%s, timezone=%s, default_currency=%s)",
        store.__class__.__name__,
        resolved_settings.timezone,
        resolved_settings.default_currency,
    )
    return graph


def _entry_node(state: IngestionState) -> IngestionState:
    message_text = (state.pending_message or "").strip()
    if not message_text:
        raise ValueError("pending_message is required for graph execution.")
    if not state.sender_id:
        raise ValueError("sender_id is required for graph execution.")
    LOGGER.debug("ENTRY_NODE sender=%s source=%s", state.sender_id, state.source)
    return state


def _create_parse_node(
    settings: Settings,
) -> Callable[[IngestionState], IngestionState]:
    default_currency = settings.default_currency

    def _node(state: IngestionState) -> IngestionState:
        parse_inbound_message(
            state,
            message=state.pending_message or "",
            default_currency=default_currency,
        )
        LOGGER.debug("PARSE_NODE sender=%s parsed=%s", state.sender_id, state.parsed)
        return state

    return _node


def _create_record_node(
    now: Clock, tz: Any
) -> Callable[[IngestionState], IngestionState]:
    def _node(state: IngestionState) -> IngestionState:
        moment = now()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=tz)
        else:
            moment = moment.astimezone(tz)
        build_expense_record(state, server_timestamp=moment)
        return state

    return _node


def _create_persist_node(
    repository: ExpenseRepository,
) -> Callable[[IngestionState], IngestionState]:
    def _node(state: IngestionState) -> IngestionState:
        persist_expense_record(state, repository=repository)
        return state

    return _node


def _route_after_parse(state: IngestionState) -> Literal["record", "reject"]:
    if state.status == "invalid":
        return "reject"
    return "record"


__all__ = ["ENTRY_NODE", "PARSE_NODE", "PERSIST_NODE", "RECORD_NODE", "build_ingestion_graph"]
