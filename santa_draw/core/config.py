import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()

DRAW_STRATEGIES = ("retry", "backtrack")


@dataclass(frozen=True)
class DrawSettings:
    max_attempts: int = 5000
    min_participants: int = 3
    strategy: str = "retry"
    max_search_steps: int = 200_000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("DRAW_MAX_ATTEMPTS must be a positive integer.")
        if self.min_participants < 3:
            raise ValueError("DRAW_MIN_PARTICIPANTS cannot be lower than 3.")
        if self.strategy not in DRAW_STRATEGIES:
            raise ValueError(f"DRAW_STRATEGY must be one of: {', '.join(DRAW_STRATEGIES)}.")
        if self.max_search_steps < 1:
            raise ValueError("DRAW_MAX_SEARCH_STEPS must be a positive integer.")


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str
    log_level: str
    log_path: str
    draw: DrawSettings = field(default_factory=DrawSettings)
    rate_limit_calls: int = 5
    rate_limit_period: int = 10


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc


def load_draw_settings() -> DrawSettings:
    return DrawSettings(
        max_attempts=_int_from_env("DRAW_MAX_ATTEMPTS", 5000),
        min_participants=_int_from_env("DRAW_MIN_PARTICIPANTS", 3),
        strategy=os.getenv("DRAW_STRATEGY", "retry").strip().lower(),
        max_search_steps=_int_from_env("DRAW_MAX_SEARCH_STEPS", 200_000),
    )


def load_settings() -> Settings:
    bot_token = os.getenv("BOT_TOKEN")
    database_url = os.getenv("DATABASE_URL")
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "logs/santa_draw.log")

    if not bot_token:
        raise ValueError("BOT_TOKEN is required. Set it in the environment or .env file.")
    if not database_url:
        raise ValueError("DATABASE_URL is required. Set it in the environment or .env file.")

    return Settings(
        bot_token=bot_token,
        database_url=database_url,
        log_level=log_level,
        log_path=log_path,
        draw=load_draw_settings(),
        rate_limit_calls=_int_from_env("RATE_LIMIT_CALLS", 5),
        rate_limit_period=_int_from_env("RATE_LIMIT_PERIOD", 10),
    )
