from aiogram import Dispatcher

from santa_draw.bot.handlers import router as handlers_router
from santa_draw.bot.loader import bot, settings

dp = Dispatcher()
dp.include_router(handlers_router)

__all__ = ["bot", "dp", "settings"]
