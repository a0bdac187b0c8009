import html

from aiogram import Router, types
from aiogram.filters import Command, CommandObject, CommandStart

from santa_draw.bot.utils import (
    GENERIC_ERROR,
    SLOW_DOWN,
    check_rate_limit,
    current_user,
    log_handler_exception,
)
from santa_draw.db import get_session
from santa_draw.services import game_flow

router = Router()

HELP_TEXT = html.escape(
    "Hello! I'm your Secret Santa bot!\n\n"
    "/newgame <title> - create a game and get an invite code\n"
    "/join <code> - join a game\n"
    "/games - list your games\n"
    "/game <id> - show participants\n"
    "/addoffline <game> <name> - add someone without Telegram\n"
    "/exclude <game> <who> <whom> [mutual] - forbid a pair\n"
    "/exclusions <game> <participant> - list restrictions\n"
    "/unexclude <game> <exclusion> - remove a restriction\n"
    "/draw <game> - run the draw (creator only)\n"
    "/reveal <game> - see whom you give a gift to",
    quote=False,
)


@router.message(CommandStart())
async def command_start_handler(message: types.Message, command: CommandObject) -> None:
    if not check_rate_limit(message.from_user.id, "start"):
        await message.answer(SLOW_DOWN)
        return

    try:
        with get_session() as session:
            user = current_user(session, message.from_user)
            reply = HELP_TEXT
            if command.args:
                result = game_flow.join_game(session, user, command.args)
                reply = result.message
                if result.ok:
                    reply += f"\n\nGame: <b>{html.escape(result.game.title)}</b> (#{result.game.id})"
        await message.answer(reply)
    except Exception as exc:
        log_handler_exception("start", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR)


@router.message(Command("help"))
async def help_command_handler(message: types.Message) -> None:
    await message.answer(HELP_TEXT)
