"""Middleware for access control."""

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from billink.config import Settings, settings
from billink.core.actors import Actor, Role


def resolve_role(user_id: int, config: Settings = settings) -> Role | None:
    """Maps a Telegram user id to an operator role, highest role first."""
    if user_id in config.ADMIN_IDS:
        return Role.ADMIN
    if user_id in config.CASHIER_IDS:
        return Role.CASHIER
    if user_id in config.ENCODER_IDS:
        return Role.ENCODER
    return None


class RoleAccessMiddleware(BaseMiddleware):
    """
    Lets an update through only if the sender holds one of ``roles``, and
    passes the resolved ``actor`` on to the handler.
    """

    def __init__(self, roles: Iterable[Role], config: Settings = settings):
        self._roles = frozenset(roles)
        self._config = config

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        if user is None:
            return None

        role = resolve_role(user.id, self._config)
        if role is None or role not in self._roles:
            return None

        data["actor"] = Actor(id=str(user.id), role=role)
        return await handler(event, data)
