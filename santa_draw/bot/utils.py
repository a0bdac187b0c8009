from __future__ import annotations

from typing import List, Optional

from aiogram import types
from loguru import logger

from santa_draw.bot.loader import rate_limiter
from santa_draw.db import User
from santa_draw.services import game_flow
from santa_draw.services.errors import Outcome
from santa_draw.services.rate_limit import action_key

SLOW_DOWN = "You're doing that too often. Please slow down."
GENERIC_ERROR = "Something went wrong. Please try again later."
PRIVATE_ONLY = "Please use this command in a private chat with me."


def check_rate_limit(user_id: int, action: str) -> bool:
    return rate_limiter.allow(action_key(user_id, action)).allowed


def log_handler_exception(action: str, user_id: int | None, chat_id: int | None, error: Exception) -> None:
    logger.bind(action=action, user_id=user_id, chat_id=chat_id).exception(
        "Handler error: {error}", error=str(error)
    )


def command_args(message: types.Message, maxsplit: int = -1) -> List[str]:
    text = message.text or ""
    if maxsplit < 0:
        return text.split()[1:]
    return text.split(maxsplit=maxsplit + 1)[1:]


def parse_id(value: str) -> Optional[int]:
    value = value.strip().lstrip("#")
    if not value.isdigit():
        return None
    return int(value)


def current_user(session, from_user: types.User) -> User:
    return game_flow.ensure_user(
        session,
        from_user.id,
        from_user.username,
        from_user.first_name,
        from_user.last_name,
    )


def outcome_text(outcome: Outcome, success: str | None = None) -> str:
    if outcome.ok:
        return success or outcome.message
    return outcome.message or f"Request failed ({outcome.error.value})."
