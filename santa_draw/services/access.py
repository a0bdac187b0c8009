"""Who may see or change what inside a game.

Every service goes through these helpers instead of comparing ids inline, so the
read path (revealing an assignment) and the write paths (exclusions, draw) cannot
drift apart.
"""
from __future__ import annotations

from santa_draw.db import Game, Participant
from santa_draw.services.errors import ErrorKind, GameError


def is_owner(game: Game, user_id: int) -> bool:
    return game.creator_id == user_id


def is_self(participant: Participant, user_id: int) -> bool:
    return participant.user_id is not None and participant.user_id == user_id


def can_view_assignment(game: Game, participant: Participant, user_id: int) -> bool:
    if is_self(participant, user_id):
        return True
    return is_owner(game, user_id) and participant.is_proxy_managed


def can_manage_exclusions(game: Game, who: Participant, user_id: int) -> bool:
    return is_owner(game, user_id) or is_self(who, user_id)


def require_owner(game: Game, user_id: int, action: str) -> None:
    if not is_owner(game, user_id):
        raise GameError(ErrorKind.UNAUTHORIZED, f"Only the game creator can {action}.")
