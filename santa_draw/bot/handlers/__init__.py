from aiogram import Router

from santa_draw.bot.handlers import draw, exclusions, games, start

router = Router()
router.include_router(start.router)
router.include_router(games.router)
router.include_router(exclusions.router)
router.include_router(draw.router)
