"""Telegram channel: Application factory, middleware chaining and expense handlers.

Handlers registered through :func:`register_handler` run behind the middleware
stack stored in ``bot_data``. A middleware receives ``(next_handler, update,
data)`` and either awaits ``next_handler(update, data)`` or stops the update.
"""

from __future__ import annotations

import asyncio
from functools import partial, reduce
from typing import Any, Awaitable, Callable, Iterable, Sequence

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, BaseHandler, ContextTypes

from gastos_bot import get_logger
from gastos_bot.config import Settings, get_settings
from gastos_bot.graph import USAGE_PROMPT
from gastos_bot.integrations.ingestion import IngestionGraph, ingest_message
from gastos_bot.integrations.telegram_auth import (
    DeniedCallback,
    HandlerCallable,
    TelegramAuthorizationMiddleware,
)

LOGGER = get_logger("integrations.telegram")
MIDDLEWARES_KEY = "gastos_bot.telegram.middlewares"
GRAPH_KEY = "gastos_bot.ingestion_graph"
SOURCE = "telegram"

PROCESSING_ERROR_REPLY = "No pude procesar ese mensaje. Intenta de nuevo en un momento."
UNAUTHORIZED_REPLY = "No estás autorizado para registrar gastos con este bot."

MiddlewareCallable = Callable[[HandlerCallable, Any, dict[str, Any]], Awaitable[Any]]


def create_application(
    *,
    settings: Settings | None = None,
    allowed_user_ids: Iterable[int] | None = None,
    on_denied: DeniedCallback | None = None,
    middlewares: Sequence[MiddlewareCallable] | None = None,
) -> Application:
    """Build the bot Application and stash its middleware stack in ``bot_data``.

    The allow-list defaults to ``TELEGRAM_ALLOWED_USERS``; when it is empty the
    bot answers anyone.
    """

    resolved = settings or get_settings()
    if resolved.telegram_token is None:
        raise ValueError("TELEGRAM_TOKEN is required for the Telegram channel.")
    application = (
        ApplicationBuilder().token(resolved.telegram_token.get_secret_value()).build()
    )

    allowed = list(
        resolved.telegram_allowed_users if allowed_user_ids is None else allowed_user_ids
    )
    stack: list[MiddlewareCallable] = []
    if allowed:
        stack.append(
            TelegramAuthorizationMiddleware(
                allowed,
                on_denied=on_denied or partial(_notify_denied, bot=application.bot),
            )
        )
    stack.extend(middlewares or ())

    application.bot_data[MIDDLEWARES_KEY] = tuple(stack)
    LOGGER.info(
        "Telegram application ready (allow-list=%d user(s), middlewares=%d)",
        len(allowed),
        len(stack),
    )
    return application


def register_handler(
    application: Application,
    handler: BaseHandler[Any, Any, Any],
    *,
    group: int = 0,
    protected: bool = True,
    extra_middlewares: Sequence[MiddlewareCallable] | None = None,
) -> None:
    """Add ``handler`` to the application, behind the stored middlewares when protected."""

    chain = list(extra_middlewares or ())
    if protected:
        chain.extend(application.bot_data.get(MIDDLEWARES_KEY, ()))
    if chain:
        handler.callback = _chain_callback(handler.callback, chain)
    application.add_handler(handler, group=group)


def _chain_callback(
    callback: Callable[[Any, Any], Awaitable[Any]],
    middlewares: Sequence[MiddlewareCallable],
) -> Callable[[Any, Any], Awaitable[Any]]:
    async def innermost(update: Any, data: dict[str, Any]) -> Any:
        return await callback(update, data["context"])

    def link(next_handler: HandlerCallable, middleware: MiddlewareCallable) -> HandlerCallable:
        async def call(update: Any, data: dict[str, Any]) -> Any:
            return await middleware(next_handler, update, data)

        return call

    # First middleware in the list runs outermost.
    entry = reduce(link, reversed(middlewares), innermost)

    async def chained(update: Any, context: Any) -> Any:
        data = {
            "context": context,
            "application": getattr(context, "application", None),
            "bot": getattr(context, "bot", None),
        }
        return await entry(update, data)

    return chained


async def _notify_denied(update: Update, user_id: int | None, *, bot: Any) -> None:
    chat_id = getattr(getattr(update, "effective_chat", None), "id", None)
    LOGGER.warning("Unauthorized Telegram access user_id=%s chat_id=%s", user_id, chat_id)
    if chat_id is None:
        return
    try:
        await bot.send_message(chat_id, UNAUTHORIZED_REPLY)
    except Exception:  # pragma: no cover - depends on network state
        LOGGER.exception("Failed to notify unauthorized user_id=%s", user_id)


def set_ingestion_graph(application: Application, graph: IngestionGraph) -> None:
    """Share the compiled ingestion graph with every handler."""

    application.bot_data[GRAPH_KEY] = graph


def get_ingestion_graph(source: Any) -> IngestionGraph | None:
    """Look up the graph from an Application or a handler context."""

    for candidate in (source, getattr(source, "application", None)):
        bot_data = getattr(candidate, "bot_data", None)
        if isinstance(bot_data, dict):
            return bot_data.get(GRAPH_KEY)
    return None


def make_sender_id(chat_id: int | None) -> str | None:
    return f"telegram:{int(chat_id)}" if chat_id is not None else None


def _message_text_and_chat(update: Update) -> tuple[str | None, int | None]:
    message = getattr(update, "message", None) or getattr(update, "edited_message", None)
    text = getattr(message, "text", None)
    if not isinstance(text, str) or not text.strip():
        text = None
    chat = getattr(update, "effective_chat", None) or getattr(message, "chat", None)
    return (text.strip() if text else None), getattr(chat, "id", None)


async def _reply(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    text: str,
    chat_id: int | None,
) -> None:
    target = getattr(update, "effective_message", None)
    if target is not None and hasattr(target, "reply_text"):
        await target.reply_text(text)
    elif chat_id is not None:
        await context.bot.send_message(chat_id=chat_id, text=text)


async def handle_expense_message(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Run a chat message through the ingestion graph and send back its reply."""

    graph = get_ingestion_graph(context)
    if graph is None:
        raise RuntimeError("Ingestion graph is not configured for Telegram handlers.")

    text, chat_id = _message_text_and_chat(update)
    sender_id = make_sender_id(chat_id)
    if sender_id is None:
        LOGGER.debug("Ignoring Telegram update without a chat")
        return

    try:
        state = await asyncio.to_thread(
            ingest_message, graph, sender_id=sender_id, source=SOURCE, text=text
        )
    except Exception:
        LOGGER.exception("Telegram update from %s failed to process", sender_id)
        await _reply(update, context, PROCESSING_ERROR_REPLY, chat_id)
        return

    if state.reply_text:
        await _reply(update, context, state.reply_text, chat_id)


async def handle_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    _, chat_id = _message_text_and_chat(update)
    await _reply(update, context, USAGE_PROMPT, chat_id)


__all__ = [
    "GRAPH_KEY",
    "MIDDLEWARES_KEY",
    "MiddlewareCallable",
    "PROCESSING_ERROR_REPLY",
    "UNAUTHORIZED_REPLY",
    "create_application",
    "get_ingestion_graph",
    "handle_expense_message",
    "handle_help",
    "make_sender_id",
    "register_handler",
    "set_ingestion_graph",
]
