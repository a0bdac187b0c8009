from __future__ import annotations

import html

from aiogram import Router, types
from aiogram.filters import Command

from santa_draw.bot.utils import (
    GENERIC_ERROR,
    SLOW_DOWN,
    check_rate_limit,
    command_args,
    current_user,
    log_handler_exception,
    outcome_text,
    parse_id,
)
from santa_draw.db import get_session
from santa_draw.services import exclusions

router = Router()

MUTUAL_FLAGS = {"mutual", "both", "m"}


@router.message(Command("exclude"))
async def exclude_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "exclude"):
        await message.answer(SLOW_DOWN)
        return

    args = command_args(message)
    ids = [parse_id(value) for value in args[:3]]
    if len(ids) < 3 or None in ids:
        await message.answer("Usage: /exclude <game id> <who id> <whom id> [mutual]")
        return
    game_id, who_id, whom_id = ids
    mutual = len(args) > 3 and args[3].lower() in MUTUAL_FLAGS

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            result = exclusions.add_exclusion(session, game_id, user.id, who_id, whom_id, mutual=mutual)
            reply = outcome_text(result)
            if result.ok:
                reply = (
                    f"{html.escape(result.exclusion.who.name)} will not give to "
                    f"{html.escape(result.exclusion.whom.name)} (#{result.exclusion.id})."
                )
                if result.mutual_exclusion is not None:
                    reply += f"\nAnd the other way round (#{result.mutual_exclusion.id})."
        await message.answer(reply)
    except Exception as exc:
        log_handler_exception("exclude", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)


@router.message(Command("unexclude"))
async def unexclude_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "unexclude"):
        await message.answer(SLOW_DOWN)
        return

    ids = [parse_id(value) for value in command_args(message)[:2]]
    if len(ids) < 2 or None in ids:
        await message.answer("Usage: /unexclude <game id> <exclusion id>")
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            result = exclusions.remove_exclusion(session, ids[0], user.id, ids[1])
        await message.answer(outcome_text(result))
    except Exception as exc:
        log_handler_exception("unexclude", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)


@router.message(Command("exclusions"))
async def list_exclusions_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "exclusions"):
        await message.answer(SLOW_DOWN)
        return

    ids = [parse_id(value) for value in command_args(message)[:2]]
    if len(ids) < 2 or None in ids:
        await message.answer("Usage: /exclusions <game id> <participant id>")
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            listing = exclusions.list_exclusions(session, ids[0], user.id, ids[1])
            if not listing.ok:
                reply = outcome_text(listing)
            elif not listing.exclusions:
                reply = "No restrictions yet."
            else:
                reply = "Will not give to:\n" + "\n".join(
                    f"#{exclusion.id} {html.escape(exclusion.whom.name)}" for exclusion in listing.exclusions
                )
        await message.answer(reply)
    except Exception as exc:
        log_handler_exception("exclusions", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)
