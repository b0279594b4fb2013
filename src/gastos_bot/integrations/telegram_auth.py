"""Allow-list middleware for Telegram updates."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from telegram.ext import ApplicationHandlerStop

from gastos_bot import get_logger

DeniedCallback = Callable[[Any, int | None], Awaitable[None]]
HandlerCallable = Callable[[Any, dict[str, Any]], Awaitable[Any]]

LOGGER = get_logger("integrations.telegram_auth")

# Update attributes that may carry the sender, checked in order.
_USER_SOURCES: tuple[tuple[str, str], ...] = (
    ("effective_user", ""),
    ("message", "from_user"),
    ("edited_message", "from_user"),
)


def extract_user_id(update: Any) -> int | None:
    """Return the Telegram user id behind an update, if any."""

    for attribute, nested in _USER_SOURCES:
        holder = getattr(update, attribute, None)
        user = getattr(holder, nested, None) if nested and holder is not None else holder
        user_id = getattr(user, "id", None)
        if user_id is not None:
            return int(user_id)
    return None


class TelegramAuthorizationMiddleware:
    """Lets only allow-listed Telegram users record expenses."""

    def __init__(
        self,
        allowed_user_ids: Iterable[int] | None,
        *,
        on_denied: DeniedCallback | None = None,
    ) -> None:
        self._allowed_ids = frozenset(int(user_id) for user_id in allowed_user_ids or ())
        self._on_denied = on_denied

    def allows(self, user_id: int | None) -> bool:
        return user_id is not None and user_id in self._allowed_ids

    async def __call__(
        self,
        handler: HandlerCallable,
        update: Any,
        data: dict[str, Any],
    ) -> Any:
        user_id = extract_user_id(update)
        if self.allows(user_id):
            data["authorized_user_id"] = user_id
            return await handler(update, data)

        LOGGER.warning("Blocked Telegram update from user_id=%s", user_id)
        if self._on_denied is not None:
            await self._on_denied(update, user_id)
        raise ApplicationHandlerStop


__all__ = ["TelegramAuthorizationMiddleware", "extract_user_id"]
