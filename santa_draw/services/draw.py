from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Optional, Sequence

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from santa_draw.core.config import DrawSettings
from santa_draw.db import GameStatus, repo
from santa_draw.services import access
from santa_draw.services.assignment import (
    MIN_PARTICIPANTS,
    CycleDraw,
    ExclusionGraph,
    cycle_pairs,
    first_violation,
    generate_cycle,
)
from santa_draw.services.errors import ErrorKind, GameError, Outcome


@dataclass(frozen=True)
class DrawResult(Outcome):
    participant_count: int = 0
    attempts: int = 0


@dataclass(frozen=True)
class AssignmentLookup(Outcome):
    receiver_name: Optional[str] = None


def run_draw(
    session,
    game_id: int,
    requester_id: int,
    settings: Optional[DrawSettings] = None,
    seed: Optional[int] = None,
) -> DrawResult:
    settings = settings or DrawSettings()
    log = logger.bind(game_id=game_id, requester_id=requester_id)

    try:
        game = repo.get_game_by_id(session, game_id)
        if game is None:
            raise GameError(ErrorKind.NOT_FOUND, "Game not found.")
        access.require_owner(game, requester_id, "start the draw")
        if game.status != GameStatus.DRAFT:
            raise GameError(ErrorKind.WRONG_STATE, "Game is not in draft status.")

        participants = repo.load_participants(session, game.id)
        exclusions = repo.load_exclusions(session, game.id)
        draw = generate_cycle(
            [participant.id for participant in participants],
            exclusions,
            seed=seed,
            strategy=settings.strategy,
            max_attempts=settings.max_attempts,
            max_search_steps=settings.max_search_steps,
            min_participants=settings.min_participants,
        )
    except GameError as exc:
        log.info("Draw rejected: {kind}", kind=exc.kind.value)
        return DrawResult(ok=False, error=exc.kind, message=exc.message)
    except SQLAlchemyError as exc:
        session.rollback()
        log.warning("Draw could not load the game: {error}", error=str(exc))
        return DrawResult(
            ok=False,
            error=ErrorKind.COMMIT_FAILED,
            message="Failed to load the game. Please run the draw again.",
        )

    log.debug(
        "Cycle found after {attempts} attempts ({strategy})",
        attempts=draw.attempts,
        strategy=draw.strategy,
    )
    return commit_cycle(session, game_id, requester_id, draw, settings)


def commit_cycle(
    session,
    game_id: int,
    requester_id: int,
    draw: CycleDraw | Sequence[int],
    settings: Optional[DrawSettings] = None,
) -> DrawResult:
    """Persist a cycle and complete the game in a single transaction.

    Preconditions are checked again against storage, not against whatever the
    caller saw when sampling. The session is committed on success and rolled
    back on any storage error, so either every receiver and the status change
    become durable or none of them do.
    """
    settings = settings or DrawSettings()
    order = tuple(draw.order if isinstance(draw, CycleDraw) else draw)
    attempts = draw.attempts if isinstance(draw, CycleDraw) else 0
    log = logger.bind(game_id=game_id, requester_id=requester_id)

    try:
        game = repo.lock_game(session, game_id)
        if game is None:
            raise GameError(ErrorKind.NOT_FOUND, "Game not found.")
        access.require_owner(game, requester_id, "start the draw")
        if game.status != GameStatus.DRAFT:
            raise GameError(ErrorKind.WRONG_STATE, "The draw has already been run for this game.")

        participant_ids = sorted(participant.id for participant in repo.load_participants(session, game_id))
        required = max(settings.min_participants, MIN_PARTICIPANTS)
        if len(participant_ids) < required:
            raise GameError(
                ErrorKind.TOO_FEW_PARTICIPANTS, f"Need at least {required} participants to play."
            )
        if sorted(order) != participant_ids:
            raise GameError(
                ErrorKind.COMMIT_FAILED,
                "Participants changed while drawing. Please run the draw again.",
            )

        graph = ExclusionGraph.from_pairs(repo.load_exclusions(session, game_id))
        if first_violation(order, graph) is not None:
            raise GameError(
                ErrorKind.COMMIT_FAILED,
                "Restrictions changed while drawing. Please run the draw again.",
            )
    except GameError as exc:
        log.info("Draw commit rejected: {kind}", kind=exc.kind.value)
        return DrawResult(ok=False, error=exc.kind, message=exc.message)
    except SQLAlchemyError as exc:
        session.rollback()
        log.warning("Draw commit could not re-read the game: {error}", error=str(exc))
        return DrawResult(
            ok=False,
            error=ErrorKind.COMMIT_FAILED,
            message="Failed to save results. Please run the draw again.",
        )

    try:
        completed_at = datetime.datetime.now(datetime.timezone.utc)
        if not repo.mark_game_completed(session, game_id, completed_at):
            log.info("Draw commit lost the race to another draw")
            return DrawResult(
                ok=False,
                error=ErrorKind.WRONG_STATE,
                message="The draw has already been run for this game.",
            )
        for giver_id, receiver_id in cycle_pairs(order):
            repo.set_receiver(session, giver_id, receiver_id)
        session.flush()
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        log.warning("Draw commit failed: {error}", error=str(exc))
        return DrawResult(
            ok=False,
            error=ErrorKind.COMMIT_FAILED,
            message="Failed to save results. Please run the draw again.",
        )

    log.info("Draw completed for {count} participants", count=len(order))
    return DrawResult(
        ok=True,
        message="Draw completed.",
        participant_count=len(order),
        attempts=attempts,
    )


def get_assignment(session, game_id: int, requester_id: int, participant_id: int) -> AssignmentLookup:
    try:
        game = repo.get_game_by_id(session, game_id)
        if game is None:
            raise GameError(ErrorKind.NOT_FOUND, "Game not found.")
        if game.status != GameStatus.COMPLETED:
            raise GameError(ErrorKind.NOT_COMPLETED, "Game not completed yet.")

        participant = repo.get_participant(session, participant_id)
        if participant is None or participant.game_id != game.id:
            raise GameError(ErrorKind.NOT_FOUND, "Participant not found.")
        if not access.can_view_assignment(game, participant, requester_id):
            raise GameError(ErrorKind.UNAUTHORIZED, "Permission denied.")

        receiver = repo.read_receiver(session, participant.id)
        if receiver is None:
            logger.bind(game_id=game_id, participant_id=participant_id).error(
                "Completed game has a participant without a receiver"
            )
            raise GameError(ErrorKind.NOT_FOUND, "No receiver assigned.")
    except GameError as exc:
        return AssignmentLookup(ok=False, error=exc.kind, message=exc.message)

    return AssignmentLookup(ok=True, receiver_name=receiver.name)


def get_own_assignment(session, game_id: int, requester_id: int) -> AssignmentLookup:
    participant = repo.get_participant_for_user(session, game_id, requester_id)
    if participant is None:
        if repo.get_game_by_id(session, game_id) is None:
            return AssignmentLookup(ok=False, error=ErrorKind.NOT_FOUND, message="Game not found.")
        return AssignmentLookup(
            ok=False,
            error=ErrorKind.NOT_FOUND,
            message="You are not a participant of this game.",
        )
    return get_assignment(session, game_id, requester_id, participant.id)
