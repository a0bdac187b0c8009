from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from santa_draw.core.config import DrawSettings
from santa_draw.db import GameStatus, repo
from santa_draw.db.models import Base
from santa_draw.services import assignment, draw, exclusions, game_flow
from santa_draw.services.assignment import generate_cycle, is_single_cycle
from santa_draw.services.errors import ErrorKind


def stored_receivers(session, game_id):
    return {p.id: p.receiver_id for p in repo.load_participants(session, game_id)}


def test_draw_assigns_single_cycle(session, make_game):
    ctx = make_game(names=("Alice", "Bob", "Carol", "Dave", "Eve"))

    result = draw.run_draw(session, ctx.game.id, ctx.owner.id, seed=1)

    assert result.ok
    assert result.error is None
    assert result.participant_count == 5
    receivers = stored_receivers(session, ctx.game.id)
    assert all(receiver is not None for receiver in receivers.values())
    assert is_single_cycle(receivers)
    assert repo.get_game_by_id(session, ctx.game.id).status == GameStatus.COMPLETED


def test_draw_never_violates_exclusions(session, make_game):
    for seed in range(15):
        ctx = make_game(names=("Ann", "Ben", "Cat", "Dan", "Eva", "Fay"))
        m = ctx.members
        for who, whom in (("Ann", "Ben"), ("Cat", "Dan"), ("Eva", "Fay")):
            outcome = exclusions.add_exclusion(
                session, ctx.game.id, ctx.owner.id, m[who].id, m[whom].id, mutual=True
            )
            assert outcome.ok
        session.commit()

        result = draw.run_draw(session, ctx.game.id, ctx.owner.id, seed=seed)
        assert result.ok

        receivers = stored_receivers(session, ctx.game.id)
        assert is_single_cycle(receivers)
        for who_id, whom_id in repo.load_exclusions(session, ctx.game.id):
            assert receivers[who_id] != whom_id


def test_backtracking_strategy_draws(session, make_game):
    ctx = make_game(names=("Alice", "Bob", "Carol", "Dave"))
    settings = DrawSettings(strategy="backtrack")

    result = draw.run_draw(session, ctx.game.id, ctx.owner.id, settings=settings, seed=4)

    assert result.ok
    assert is_single_cycle(stored_receivers(session, ctx.game.id))


def test_second_draw_is_rejected_and_keeps_first_cycle(session, make_game):
    ctx = make_game(names=("Alice", "Bob", "Carol", "Dave"))
    assert draw.run_draw(session, ctx.game.id, ctx.owner.id, seed=1).ok
    first = stored_receivers(session, ctx.game.id)

    again = draw.run_draw(session, ctx.game.id, ctx.owner.id, seed=2)

    assert not again.ok
    assert again.error == ErrorKind.WRONG_STATE
    assert stored_receivers(session, ctx.game.id) == first


def test_only_creator_can_draw(session, make_game):
    ctx = make_game()
    result = draw.run_draw(session, ctx.game.id, ctx.users["Bob"].id)
    assert result.error == ErrorKind.UNAUTHORIZED
    assert repo.get_game_by_id(session, ctx.game.id).status == GameStatus.DRAFT


def test_draw_unknown_game(session, make_user):
    user = make_user()
    assert draw.run_draw(session, 999, user.id).error == ErrorKind.NOT_FOUND


def test_two_participants_are_rejected_before_sampling(session, make_game, monkeypatch):
    ctx = make_game(names=("Alice", "Bob"))

    def fail(*args, **kwargs):
        raise AssertionError("sampler should not run")

    monkeypatch.setattr(assignment, "sample_cycle", fail)
    result = draw.run_draw(session, ctx.game.id, ctx.owner.id)

    assert result.error == ErrorKind.TOO_FEW_PARTICIPANTS
    assert all(receiver is None for receiver in stored_receivers(session, ctx.game.id).values())


def test_infeasible_draw_leaves_game_untouched(session, make_game):
    ctx = make_game()
    m = ctx.members
    for whom in ("Bob", "Carol"):
        exclusions.add_exclusion(session, ctx.game.id, ctx.owner.id, m["Alice"].id, m[whom].id)
    session.commit()

    result = draw.run_draw(session, ctx.game.id, ctx.owner.id, settings=DrawSettings(max_attempts=100))

    assert result.error == ErrorKind.INFEASIBLE
    assert "restrictions" in result.message
    assert repo.get_game_by_id(session, ctx.game.id).status == GameStatus.DRAFT
    assert all(receiver is None for receiver in stored_receivers(session, ctx.game.id).values())


def test_storage_failure_rolls_back_everything(session, make_game, monkeypatch):
    ctx = make_game(names=("Alice", "Bob", "Carol", "Dave"))
    original = repo.set_receiver
    calls = []

    def flaky_set_receiver(session_, giver_id, receiver_id):
        calls.append(giver_id)
        if len(calls) == 3:
            raise OperationalError("UPDATE participants", {}, Exception("disk I/O error"))
        original(session_, giver_id, receiver_id)

    monkeypatch.setattr(repo, "set_receiver", flaky_set_receiver)
    result = draw.run_draw(session, ctx.game.id, ctx.owner.id, seed=3)

    assert result.error == ErrorKind.COMMIT_FAILED
    assert len(calls) == 3
    assert repo.get_game_by_id(session, ctx.game.id).status == GameStatus.DRAFT
    assert all(receiver is None for receiver in stored_receivers(session, ctx.game.id).values())

    monkeypatch.setattr(repo, "set_receiver", original)
    assert draw.run_draw(session, ctx.game.id, ctx.owner.id, seed=3).ok


def test_lock_failure_is_reported_as_commit_failed(session, make_game, monkeypatch):
    ctx = make_game(names=("Alice", "Bob", "Carol", "Dave"))

    def locked_out(*args, **kwargs):
        raise OperationalError("SELECT games FOR UPDATE", {}, Exception("lock timeout"))

    monkeypatch.setattr(repo, "lock_game", locked_out)
    result = draw.run_draw(session, ctx.game.id, ctx.owner.id, seed=3)

    assert result.error == ErrorKind.COMMIT_FAILED
    assert repo.get_game_by_id(session, ctx.game.id).status == GameStatus.DRAFT
    assert all(receiver is None for receiver in stored_receivers(session, ctx.game.id).values())


def test_load_failure_before_sampling_is_a_result(session, make_game, monkeypatch):
    ctx = make_game()

    def broken(*args, **kwargs):
        raise OperationalError("SELECT exclusions", {}, Exception("connection reset"))

    monkeypatch.setattr(repo, "load_exclusions", broken)
    result = draw.run_draw(session, ctx.game.id, ctx.owner.id)

    assert not result.ok
    assert result.error == ErrorKind.COMMIT_FAILED


def test_commit_rejects_cycle_when_participants_changed(session, make_game):
    ctx = make_game()
    ids = [p.id for p in repo.load_participants(session, ctx.game.id)]
    cycle = generate_cycle(ids, seed=1)

    game_flow.add_offline_participant(session, ctx.game.id, ctx.owner.id, "Grandma")
    session.commit()
    result = draw.commit_cycle(session, ctx.game.id, ctx.owner.id, cycle)

    assert result.error == ErrorKind.COMMIT_FAILED
    assert repo.get_game_by_id(session, ctx.game.id).status == GameStatus.DRAFT


def test_commit_rechecks_exclusions(session, make_game):
    ctx = make_game(names=("Alice", "Bob", "Carol", "Dave"))
    ids = [p.id for p in repo.load_participants(session, ctx.game.id)]
    cycle = generate_cycle(ids, seed=5)
    giver, receiver = cycle.order[0], cycle.order[1]

    assert exclusions.add_exclusion(session, ctx.game.id, ctx.owner.id, giver, receiver).ok
    session.commit()
    result = draw.commit_cycle(session, ctx.game.id, ctx.owner.id, cycle)

    assert result.error == ErrorKind.COMMIT_FAILED
    assert all(value is None for value in stored_receivers(session, ctx.game.id).values())


def test_commit_accepts_plain_order(session, make_game):
    ctx = make_game()
    a, b, c = (ctx.members[name].id for name in ("Alice", "Bob", "Carol"))

    result = draw.commit_cycle(session, ctx.game.id, ctx.owner.id, [a, c, b])

    assert result.ok
    assert stored_receivers(session, ctx.game.id) == {a: c, c: b, b: a}


def test_completion_transition_happens_once(session, make_game):
    ctx = make_game()
    assert repo.mark_game_completed(session, ctx.game.id, None)
    assert not repo.mark_game_completed(session, ctx.game.id, None)


def test_stale_commit_loses_to_concurrent_draw(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", future=True)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)

    with Session() as setup:
        owner = game_flow.ensure_user(setup, 1, "owner", "Owner", None)
        game = game_flow.create_game(setup, owner, "Race").game
        for telegram_id, name in ((2, "Bob"), (3, "Carol"), (4, "Dave")):
            user = game_flow.ensure_user(setup, telegram_id, None, name, None)
            game_flow.join_game(setup, user, game.invite_code)
        setup.commit()
        game_id, owner_id = game.id, owner.id

    first, second = Session(), Session()
    try:
        ids = [p.id for p in repo.load_participants(second, game_id)]
        stale = generate_cycle(ids, repo.load_exclusions(second, game_id), seed=8)

        assert draw.run_draw(first, game_id, owner_id, seed=9).ok
        winner = stored_receivers(first, game_id)

        result = draw.commit_cycle(second, game_id, owner_id, stale)
        assert result.error == ErrorKind.WRONG_STATE
        assert stored_receivers(second, game_id) == winner
    finally:
        first.close()
        second.close()
        engine.dispose()
