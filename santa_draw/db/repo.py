from __future__ import annotations

import datetime
from typing import List, Optional, Set, Tuple

from sqlalchemy import and_, delete, func, select, update

from santa_draw.db.models import Exclusion, Game, GameStatus, Participant, User


def get_user_by_telegram_id(session, telegram_id: int) -> Optional[User]:
    return session.scalar(select(User).where(User.telegram_id == telegram_id))


def upsert_user(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> User:
    user = get_user_by_telegram_id(session, telegram_id)
    if user:
        user.telegram_username = telegram_username
        user.first_name = first_name
        user.last_name = last_name
        return user

    user = User(
        telegram_id=telegram_id,
        telegram_username=telegram_username,
        first_name=first_name,
        last_name=last_name,
    )
    session.add(user)
    session.flush()
    return user


def get_game_by_id(session, game_id: int) -> Optional[Game]:
    return session.scalar(select(Game).where(Game.id == game_id))


def get_game_by_invite_code(session, invite_code: str) -> Optional[Game]:
    return session.scalar(select(Game).where(Game.invite_code == invite_code))


def lock_game(session, game_id: int) -> Optional[Game]:
    """Re-read a game from storage, bypassing the identity map.

    On backends that support it the row stays locked until the transaction ends.
    """
    return session.scalar(
        select(Game)
        .where(Game.id == game_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def create_game(session, creator_id: int, title: str, invite_code: str) -> Game:
    game = Game(creator_id=creator_id, title=title, invite_code=invite_code, status=GameStatus.DRAFT)
    session.add(game)
    session.flush()
    return game


def list_games_for_user(session, user_id: int) -> List[Game]:
    return list(
        session.scalars(
            select(Game)
            .join(Participant, Participant.game_id == Game.id)
            .where(Participant.user_id == user_id)
            .order_by(Game.created_at.desc(), Game.id.desc())
        ).all()
    )


def mark_game_completed(session, game_id: int, completed_at: datetime.datetime) -> bool:
    """Move a game from DRAFT to COMPLETED; False when another writer got there first."""
    result = session.execute(
        update(Game)
        .where(and_(Game.id == game_id, Game.status == GameStatus.DRAFT))
        .values(status=GameStatus.COMPLETED, completed_at=completed_at)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def add_participant(
    session,
    game_id: int,
    name: str,
    user_id: Optional[int] = None,
) -> Participant:
    """Participants without a linked user are offline and managed by the game creator."""
    participant = Participant(game_id=game_id, user_id=user_id, name=name, is_offline=user_id is None)
    session.add(participant)
    session.flush()
    return participant


def get_participant(session, participant_id: int) -> Optional[Participant]:
    return session.get(Participant, participant_id)


def get_participant_for_user(session, game_id: int, user_id: int) -> Optional[Participant]:
    return session.scalar(
        select(Participant).where(and_(Participant.game_id == game_id, Participant.user_id == user_id))
    )


def load_participants(session, game_id: int) -> List[Participant]:
    return list(
        session.scalars(
            select(Participant)
            .where(Participant.game_id == game_id)
            .order_by(Participant.id)
            .execution_options(populate_existing=True)
        ).all()
    )


def count_participants(session, game_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(Participant).where(Participant.game_id == game_id)
    )


def load_exclusions(session, game_id: int) -> Set[Tuple[int, int]]:
    rows = session.execute(
        select(Exclusion.who_id, Exclusion.whom_id).where(Exclusion.game_id == game_id)
    ).all()
    return {(who_id, whom_id) for who_id, whom_id in rows}


def set_receiver(session, giver_id: int, receiver_id: int) -> None:
    session.execute(
        update(Participant)
        .where(Participant.id == giver_id)
        .values(receiver_id=receiver_id)
        .execution_options(synchronize_session="fetch")
    )


def read_receiver(session, participant_id: int) -> Optional[Participant]:
    participant = session.get(Participant, participant_id, populate_existing=True)
    if participant is None or participant.receiver_id is None:
        return None
    return session.get(Participant, participant.receiver_id)


def get_exclusion(session, exclusion_id: int) -> Optional[Exclusion]:
    return session.get(Exclusion, exclusion_id)


def find_exclusion(session, game_id: int, who_id: int, whom_id: int) -> Optional[Exclusion]:
    return session.scalar(
        select(Exclusion).where(
            and_(
                Exclusion.game_id == game_id,
                Exclusion.who_id == who_id,
                Exclusion.whom_id == whom_id,
            )
        )
    )


def create_exclusion(session, game_id: int, who_id: int, whom_id: int) -> Exclusion:
    exclusion = Exclusion(game_id=game_id, who_id=who_id, whom_id=whom_id)
    session.add(exclusion)
    session.flush()
    return exclusion


def delete_exclusion(session, exclusion_id: int) -> int:
    result = session.execute(delete(Exclusion).where(Exclusion.id == exclusion_id))
    return result.rowcount or 0


def list_exclusions_for(session, game_id: int, who_id: int) -> List[Exclusion]:
    return list(
        session.scalars(
            select(Exclusion)
            .where(and_(Exclusion.game_id == game_id, Exclusion.who_id == who_id))
            .order_by(Exclusion.id)
        ).all()
    )
