from __future__ import annotations

import html

from aiogram import Router, types
from aiogram.filters import Command

from santa_draw.bot.utils import (
    GENERIC_ERROR,
    PRIVATE_ONLY,
    SLOW_DOWN,
    check_rate_limit,
    command_args,
    current_user,
    log_handler_exception,
    outcome_text,
    parse_id,
)
from santa_draw.db import GameStatus, get_session
from santa_draw.services import game_flow

router = Router()


@router.message(Command("newgame"))
async def new_game_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "newgame"):
        await message.answer(SLOW_DOWN)
        return
    if message.chat.type != "private":
        await message.answer(PRIVATE_ONLY)
        return

    args = command_args(message, maxsplit=0)
    if not args:
        await message.answer("Usage: /newgame Office party 2026")
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            result = game_flow.create_game(session, user, args[0])
            if not result.ok:
                await message.answer(outcome_text(result))
                return
            game = result.game
            reply = (
                f"Game <b>{html.escape(game.title)}</b> created (#{game.id}).\n\n"
                f"Invite code: <code>{game.invite_code}</code>\n"
                f"Friends can join with /join {game.invite_code}"
            )
        await message.answer(reply)
    except Exception as exc:
        log_handler_exception("newgame", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)


@router.message(Command("join"))
async def join_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "join"):
        await message.answer(SLOW_DOWN)
        return

    args = command_args(message)
    if not args:
        await message.answer("Usage: /join ABCD1234")
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            result = game_flow.join_game(session, user, args[0])
            reply = outcome_text(result)
            if result.ok:
                reply += f"\n\nGame: <b>{html.escape(result.game.title)}</b> (#{result.game.id})"
        await message.answer(reply)
    except Exception as exc:
        log_handler_exception("join", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)


@router.message(Command("games"))
async def list_games_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "games"):
        await message.answer(SLOW_DOWN)
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            games = game_flow.list_games_for_user(session, user)
            if not games:
                await message.answer("You are not in any games yet. Create one with /newgame.")
                return

            lines = []
            for game in games:
                state = "drawn" if game.status == GameStatus.COMPLETED else "open"
                owner = " (creator)" if game.creator_id == user.id else ""
                lines.append(f"#{game.id} {html.escape(game.title)} - {state}{owner}")
        await message.answer("Your games:\n" + "\n".join(lines))
    except Exception as exc:
        log_handler_exception("games", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)


@router.message(Command("game"))
async def game_details_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "game"):
        await message.answer(SLOW_DOWN)
        return

    args = command_args(message)
    game_id = parse_id(args[0]) if args else None
    if game_id is None:
        await message.answer("Usage: /game <game id>")
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            details = game_flow.get_game_details(session, game_id, user.id)
            if not details.ok:
                await message.answer(outcome_text(details))
                return

            game = details.game
            lines = [
                f"<b>{html.escape(game.title)}</b> (#{game.id})",
                f"Status: {game.status.value}",
                f"Creator: {game_flow.format_user_label(game.creator)}",
            ]
            if details.is_creator and game.status == GameStatus.DRAFT:
                lines.append(f"Invite code: <code>{game.invite_code}</code>")
            lines.append("")
            lines.append("Participants:")
            lines.extend(
                f"#{participant.id} {game_flow.format_participant_label(participant)}"
                for participant in details.participants
            )
        await message.answer("\n".join(lines))
    except Exception as exc:
        log_handler_exception("game", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)


@router.message(Command("addoffline"))
async def add_offline_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "addoffline"):
        await message.answer(SLOW_DOWN)
        return

    args = command_args(message, maxsplit=1)
    game_id = parse_id(args[0]) if args else None
    if game_id is None or len(args) < 2:
        await message.answer("Usage: /addoffline <game id> <name>")
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            result = game_flow.add_offline_participant(session, game_id, user.id, args[1])
            reply = outcome_text(result)
            if result.ok:
                reply = f"Added {html.escape(result.participant.name)} (#{result.participant.id})."
        await message.answer(reply)
    except Exception as exc:
        log_handler_exception("addoffline", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)
