import itertools
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from santa_draw.db.models import Base
from santa_draw.services import game_flow


@pytest.fixture
def engine():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = sessionmaker(bind=engine, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def make_user(session):
    telegram_ids = itertools.count(1000)

    def factory(first_name="Player", username=None):
        user = game_flow.ensure_user(session, next(telegram_ids), username, first_name, None)
        session.commit()
        return user

    return factory


@pytest.fixture
def make_game(session, make_user):
    """Create a game owned by the first name; the others join, ``offline`` are proxy-managed."""

    def factory(names=("Alice", "Bob", "Carol"), offline=()):
        owner = make_user(names[0])
        created = game_flow.create_game(session, owner, "Office party")
        users = {names[0]: owner}
        members = {names[0]: created.participant}
        for name in names[1:]:
            users[name] = make_user(name)
            members[name] = game_flow.join_game(session, users[name], created.game.invite_code).participant
        for name in offline:
            members[name] = game_flow.add_offline_participant(
                session, created.game.id, owner.id, name
            ).participant
        session.commit()
        return SimpleNamespace(game=created.game, owner=owner, users=users, members=members)

    return factory
