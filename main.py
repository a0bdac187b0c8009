from __future__ import annotations

import uvloop
from aiogram.types import BotCommand, BotCommandScopeDefault
from loguru import logger

from santa_draw.bot import bot, dp, settings
from santa_draw.core.logging import setup_logging
from santa_draw.db import init_engine


USERS_COMMANDS: dict[str, str] = {
    "start": "start",
    "help": "list commands",
    "newgame": "create a Secret Santa game",
    "join": "join a game by invite code",
    "games": "list your games",
    "game": "show game participants",
    "addoffline": "add an offline participant",
    "exclude": "forbid a giver/receiver pair",
    "unexclude": "remove a restriction",
    "exclusions": "list restrictions",
    "draw": "run the draw",
    "reveal": "see your result",
}


async def set_default_commands() -> None:
    await bot.set_my_commands(
        [
            BotCommand(command=command, description=description)
            for command, description in USERS_COMMANDS.items()
        ],
        scope=BotCommandScopeDefault(),
    )


async def on_startup() -> None:
    logger.info("bot starting...")

    await set_default_commands()

    bot_info = await bot.get_me()

    logger.info("Name     - {name}", name=bot_info.full_name)
    logger.info("Username - @{username}", username=bot_info.username)
    logger.info("ID       - {id}", id=bot_info.id)
    logger.info(
        "Draw     - strategy={strategy}, max_attempts={attempts}, min_participants={minimum}",
        strategy=settings.draw.strategy,
        attempts=settings.draw.max_attempts,
        minimum=settings.draw.min_participants,
    )

    logger.info("bot started")


async def on_shutdown() -> None:
    logger.info("bot stopping...")

    await dp.fsm.storage.close()

    await bot.session.close()

    logger.info("bot stopped")


async def main() -> None:
    setup_logging(settings.log_level, settings.log_path)
    init_engine(settings.database_url)

    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())


if __name__ == "__main__":
    uvloop.run(main())
