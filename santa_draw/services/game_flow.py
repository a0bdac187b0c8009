from __future__ import annotations

import html
import secrets
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError

from santa_draw.db import Game, GameStatus, Participant, User, repo
from santa_draw.services import access
from santa_draw.services.errors import ErrorKind, GameError, Outcome

INVITE_CODE_BYTES = 4
MAX_INVITE_CODE_TRIES = 5


@dataclass(frozen=True)
class GameResult(Outcome):
    game: Optional[Game] = None
    participant: Optional[Participant] = None


@dataclass(frozen=True)
class GameDetails(Outcome):
    game: Optional[Game] = None
    participants: List[Participant] = field(default_factory=list)
    is_creator: bool = False


def display_name(user: User) -> str:
    return user.first_name or user.telegram_username or "Player"


def format_participant_label(participant: Participant) -> str:
    label = html.escape(participant.name)
    if participant.is_proxy_managed:
        label += " (offline)"
    return label


def format_user_label(user: User) -> str:
    if user.telegram_username:
        return f"@{html.escape(user.telegram_username)}"
    return html.escape(display_name(user))


def ensure_user(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> User:
    return repo.upsert_user(session, telegram_id, telegram_username, first_name, last_name)


def generate_invite_code() -> str:
    return secrets.token_hex(INVITE_CODE_BYTES).upper()


def create_game(session, creator: User, title: str) -> GameResult:
    title = title.strip()
    if not title:
        return GameResult(ok=False, error=ErrorKind.INVALID_INPUT, message="Game title is required.")

    for _ in range(MAX_INVITE_CODE_TRIES):
        invite_code = generate_invite_code()
        if repo.get_game_by_invite_code(session, invite_code) is None:
            break
    else:
        raise RuntimeError("Could not allocate a unique invite code.")

    game = repo.create_game(session, creator.id, title, invite_code)
    participant = repo.add_participant(session, game.id, display_name(creator), user_id=creator.id)
    logger.bind(game_id=game.id, user_id=creator.id).info("Game created")
    return GameResult(ok=True, message="Game created.", game=game, participant=participant)


def join_game(session, user: User, invite_code: str) -> GameResult:
    game = repo.get_game_by_invite_code(session, invite_code.strip().upper())
    if game is None:
        return GameResult(ok=False, error=ErrorKind.NOT_FOUND, message="Game not found.")

    existing = repo.get_participant_for_user(session, game.id, user.id)
    if existing is not None:
        return GameResult(ok=True, message="You are already in this game.", game=game, participant=existing)

    if game.status != GameStatus.DRAFT:
        return GameResult(
            ok=False,
            error=ErrorKind.WRONG_STATE,
            message="Game already started or completed.",
            game=game,
        )

    try:
        with session.begin_nested():
            participant = repo.add_participant(session, game.id, display_name(user), user_id=user.id)
    except IntegrityError:
        participant = repo.get_participant_for_user(session, game.id, user.id)

    logger.bind(game_id=game.id, user_id=user.id).info("Participant joined")
    return GameResult(ok=True, message="You have joined the game!", game=game, participant=participant)


def add_offline_participant(session, game_id: int, requester_id: int, name: str) -> GameResult:
    try:
        game = repo.get_game_by_id(session, game_id)
        if game is None:
            raise GameError(ErrorKind.NOT_FOUND, "Game not found.")
        access.require_owner(game, requester_id, "add offline participants")
        if game.status != GameStatus.DRAFT:
            raise GameError(ErrorKind.WRONG_STATE, "Game already started.")
        name = name.strip()
        if not name:
            raise GameError(ErrorKind.INVALID_INPUT, "Participant name is required.")
    except GameError as exc:
        return GameResult(ok=False, error=exc.kind, message=exc.message)

    participant = repo.add_participant(session, game.id, name, user_id=None)
    logger.bind(game_id=game.id, participant_id=participant.id).info("Offline participant added")
    return GameResult(ok=True, message="Participant added.", game=game, participant=participant)


def list_games_for_user(session, user: User) -> List[Game]:
    return repo.list_games_for_user(session, user.id)


def get_game_details(session, game_id: int, requester_id: int) -> GameDetails:
    game = repo.get_game_by_id(session, game_id)
    if game is None:
        return GameDetails(ok=False, error=ErrorKind.NOT_FOUND, message="Game not found.")

    participants = repo.load_participants(session, game.id)
    if not any(access.is_self(participant, requester_id) for participant in participants):
        return GameDetails(
            ok=False,
            error=ErrorKind.UNAUTHORIZED,
            message="You are not a participant of this game.",
        )

    return GameDetails(
        ok=True,
        game=game,
        participants=sorted(participants, key=lambda p: p.name.lower()),
        is_creator=access.is_owner(game, requester_id),
    )
