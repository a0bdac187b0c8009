from __future__ import annotations

import html
from typing import List, Tuple

from aiogram import Router, types
from aiogram.filters import Command
from loguru import logger

from santa_draw.bot.keyboards import confirm_draw_keyboard, reveal_keyboard
from santa_draw.bot.loader import settings
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
from santa_draw.db import GameStatus, get_session, repo
from santa_draw.services import access, draw

router = Router()


@router.message(Command("draw"))
async def draw_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "draw"):
        await message.answer(SLOW_DOWN)
        return

    args = command_args(message)
    game_id = parse_id(args[0]) if args else None
    if game_id is None:
        await message.answer("Usage: /draw <game id>")
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            game = repo.get_game_by_id(session, game_id)
            if game is None or not access.is_owner(game, user.id):
                await message.answer("Only the game creator can start the draw.")
                return
            if game.status != GameStatus.DRAFT:
                await message.answer("The draw has already been run for this game.")
                return
            count = repo.count_participants(session, game.id)
            title = game.title

        await message.answer(
            f"Run the draw for <b>{html.escape(title)}</b> with {count} participants? "
            "Nobody can join or change restrictions afterwards.",
            reply_markup=confirm_draw_keyboard(game_id),
        )
    except Exception as exc:
        log_handler_exception("draw", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)


@router.callback_query(lambda c: c.data is not None and c.data.startswith("draw:"))
async def confirm_draw_callback_handler(query: types.CallbackQuery) -> None:
    if not check_rate_limit(query.from_user.id, "confirm_draw"):
        await query.answer(SLOW_DOWN, show_alert=True)
        return

    game_id = parse_id(query.data.split(":", 1)[1])
    if game_id is None:
        await query.answer()
        return

    try:
        with get_session() as session:
            requester_id = current_user(session, query.from_user).id

        notifications: List[Tuple[int, str]] = []
        with get_session() as session:
            result = draw.run_draw(session, game_id, requester_id, settings.draw)
            if not result.ok:
                await query.answer(outcome_text(result), show_alert=True)
                return

            offline = []
            for participant in repo.load_participants(session, game_id):
                if participant.is_proxy_managed:
                    offline.append(participant)
                    continue
                # each member only ever sees their own result
                lookup = draw.get_assignment(session, game_id, participant.user_id, participant.id)
                if lookup.ok:
                    notifications.append((participant.user.telegram_id, lookup.receiver_name))

        for telegram_id, receiver_name in notifications:
            try:
                await query.bot.send_message(
                    telegram_id,
                    f"Secret Santa: you're giving a gift to <b>{html.escape(receiver_name)}</b>!",
                )
            except Exception as exc:  # pragma: no cover - network dependent
                logger.bind(user_id=telegram_id, game_id=game_id).warning(
                    "Failed to send assignment DM: {error}", error=str(exc)
                )

        await query.answer("Draw completed!", show_alert=True)
        reply_markup = reveal_keyboard(game_id, offline) if offline else None
        await query.message.answer(
            "Draw completed! Everyone with Telegram got their result in a private message."
            + ("\nUse the buttons to see results for offline participants." if offline else ""),
            reply_markup=reply_markup,
        )
    except Exception as exc:
        log_handler_exception("confirm_draw", query.from_user.id, query.message.chat.id, exc)
        await query.answer(GENERIC_ERROR, show_alert=True)


@router.message(Command("reveal"))
async def reveal_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "reveal"):
        await message.answer(SLOW_DOWN)
        return

    ids = [parse_id(value) for value in command_args(message)[:2]]
    if not ids or None in ids:
        await message.answer("Usage: /reveal <game id> [participant id]")
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            if len(ids) == 2:
                lookup = draw.get_assignment(session, ids[0], user.id, ids[1])
            else:
                lookup = draw.get_own_assignment(session, ids[0], user.id)
        if lookup.ok:
            await message.answer(
                f"You are the Secret Santa for: <b>{html.escape(lookup.receiver_name)}</b>"
            )
        else:
            await message.answer(outcome_text(lookup))
    except Exception as exc:
        log_handler_exception("reveal", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)


@router.callback_query(lambda c: c.data is not None and c.data.startswith("reveal:"))
async def reveal_callback_handler(query: types.CallbackQuery) -> None:
    if not check_rate_limit(query.from_user.id, "reveal"):
        await query.answer(SLOW_DOWN, show_alert=True)
        return

    _, raw_game_id, raw_participant_id = (query.data.split(":") + ["", ""])[:3]
    game_id, participant_id = parse_id(raw_game_id), parse_id(raw_participant_id)
    if game_id is None or participant_id is None:
        await query.answer()
        return

    try:
        with get_session() as session:
            user = current_user(session, query.from_user)
            lookup = draw.get_assignment(session, game_id, user.id, participant_id)
            participant = repo.get_participant(session, participant_id)
            name = participant.name if participant is not None else "?"
        if lookup.ok:
            await query.answer(f"{name} gives a gift to: {lookup.receiver_name}", show_alert=True)
        else:
            await query.answer(outcome_text(lookup), show_alert=True)
    except Exception as exc:
        log_handler_exception("reveal", query.from_user.id, query.message.chat.id, exc)
        await query.answer(GENERIC_ERROR, show_alert=True)
