from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from santa_draw.core.config import load_settings
from santa_draw.services.rate_limit import RateLimiter

settings = load_settings()

bot = Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))

rate_limiter = RateLimiter(max_calls=settings.rate_limit_calls, period_seconds=settings.rate_limit_period)
