from santa_draw.db.models import (
    Base,
    Exclusion,
    Game,
    GameStatus,
    Participant,
    User,
)
from santa_draw.db.session import SessionLocal, get_session, init_engine

__all__ = [
    "Base",
    "Exclusion",
    "Game",
    "GameStatus",
    "Participant",
    "User",
    "SessionLocal",
    "get_session",
    "init_engine",
]
