from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError

from santa_draw.db import Exclusion, Game, GameStatus, repo
from santa_draw.services import access
from santa_draw.services.errors import ErrorKind, GameError, Outcome


@dataclass(frozen=True)
class ExclusionResult(Outcome):
    exclusion: Optional[Exclusion] = None
    mutual_exclusion: Optional[Exclusion] = None


@dataclass(frozen=True)
class ExclusionListing(Outcome):
    exclusions: List[Exclusion] = field(default_factory=list)


def _load_draft_game(session, game_id: int) -> Game:
    game = repo.get_game_by_id(session, game_id)
    if game is None:
        raise GameError(ErrorKind.NOT_FOUND, "Game not found.")
    if game.status != GameStatus.DRAFT:
        raise GameError(ErrorKind.WRONG_STATE, "Game already started.")
    return game


def add_exclusion(
    session,
    game_id: int,
    requester_id: int,
    who_id: int,
    whom_id: int,
    mutual: bool = False,
) -> ExclusionResult:
    """Forbid ``who`` from giving to ``whom``; ``mutual`` also forbids the reverse.

    The reverse pair is skipped silently when it already exists.
    """
    log = logger.bind(game_id=game_id, requester_id=requester_id)
    try:
        if who_id == whom_id:
            raise GameError(ErrorKind.SELF_EXCLUSION, "Cannot exclude yourself.")

        game = _load_draft_game(session, game_id)
        who = repo.get_participant(session, who_id)
        whom = repo.get_participant(session, whom_id)
        if who is None or whom is None or who.game_id != game.id or whom.game_id != game.id:
            raise GameError(ErrorKind.NOT_FOUND, "Participants not found in this game.")
        if not access.can_manage_exclusions(game, who, requester_id):
            raise GameError(ErrorKind.UNAUTHORIZED, "Permission denied.")
        if repo.find_exclusion(session, game.id, who_id, whom_id) is not None:
            raise GameError(ErrorKind.DUPLICATE, "Exclusion already exists.")

        try:
            with session.begin_nested():
                exclusion = repo.create_exclusion(session, game.id, who_id, whom_id)
                mutual_exclusion = None
                if mutual and repo.find_exclusion(session, game.id, whom_id, who_id) is None:
                    mutual_exclusion = repo.create_exclusion(session, game.id, whom_id, who_id)
        except IntegrityError as exc:
            raise GameError(ErrorKind.DUPLICATE, "Exclusion already exists.") from exc
    except GameError as exc:
        log.info("Exclusion rejected: {kind}", kind=exc.kind.value)
        return ExclusionResult(ok=False, error=exc.kind, message=exc.message)

    log.info(
        "Exclusion added {who} -> {whom} (mutual={mutual})",
        who=who_id,
        whom=whom_id,
        mutual=mutual_exclusion is not None,
    )
    return ExclusionResult(
        ok=True,
        message="Exclusion added.",
        exclusion=exclusion,
        mutual_exclusion=mutual_exclusion,
    )


def remove_exclusion(session, game_id: int, requester_id: int, exclusion_id: int) -> Outcome:
    try:
        exclusion = repo.get_exclusion(session, exclusion_id)
        if exclusion is None or exclusion.game_id != game_id:
            raise GameError(ErrorKind.NOT_FOUND, "Exclusion not found.")
        game = _load_draft_game(session, game_id)
        if not access.can_manage_exclusions(game, exclusion.who, requester_id):
            raise GameError(ErrorKind.UNAUTHORIZED, "Permission denied.")
        if not repo.delete_exclusion(session, exclusion.id):
            raise GameError(ErrorKind.NOT_FOUND, "Exclusion not found.")
    except GameError as exc:
        return Outcome(ok=False, error=exc.kind, message=exc.message)

    logger.bind(game_id=game_id, requester_id=requester_id).info(
        "Exclusion {exclusion_id} removed", exclusion_id=exclusion_id
    )
    return Outcome(ok=True, message="Exclusion removed.")


def list_exclusions(session, game_id: int, requester_id: int, participant_id: int) -> ExclusionListing:
    """Exclusions declared by one participant, visible to the owner or that participant."""
    try:
        game = repo.get_game_by_id(session, game_id)
        if game is None:
            raise GameError(ErrorKind.NOT_FOUND, "Game not found.")
        participant = repo.get_participant(session, participant_id)
        if participant is None or participant.game_id != game.id:
            raise GameError(ErrorKind.NOT_FOUND, "Participant not found.")
        if not access.can_manage_exclusions(game, participant, requester_id):
            raise GameError(ErrorKind.UNAUTHORIZED, "Permission denied.")
    except GameError as exc:
        return ExclusionListing(ok=False, error=exc.kind, message=exc.message)

    return ExclusionListing(ok=True, exclusions=repo.list_exclusions_for(session, game.id, participant.id))
