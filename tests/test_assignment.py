import itertools
import random
from collections import Counter

import pytest

from santa_draw.services.assignment import (
    AssignmentError,
    ExclusionGraph,
    cycle_pairs,
    first_violation,
    generate_cycle,
    is_single_cycle,
    receiver_map,
    sample_cycle,
    search_cycle,
    shuffled,
)
from santa_draw.services.errors import ErrorKind

A, B, C, D = 1, 2, 3, 4


def valid_cycles(participants, exclusions):
    """Every single-cycle assignment that respects the exclusions, by brute force."""
    graph = ExclusionGraph.from_pairs(exclusions)
    first, rest = participants[0], participants[1:]
    found = set()
    for tail in itertools.permutations(rest):
        order = (first,) + tail
        if first_violation(order, graph) is None:
            found.add(frozenset(receiver_map(order).items()))
    return found


def test_assignment_single_cycle():
    for size in (3, 4, 10, 25):
        participants = list(range(1, size + 1))
        draw = generate_cycle(participants, seed=size)
        receivers = draw.receivers()
        assert set(receivers) == set(participants)
        assert set(receivers.values()) == set(participants)
        assert all(giver != receiver for giver, receiver in receivers.items())
        assert is_single_cycle(receivers)


def test_assignment_deterministic_seed():
    participants = [1, 2, 3, 4, 5]
    first = generate_cycle(participants, seed=123)
    second = generate_cycle(participants, seed=123)
    assert first.order == second.order


def test_three_people_have_two_possible_cycles():
    outcomes = {frozenset(generate_cycle([A, B, C], seed=seed).receivers().items()) for seed in range(50)}
    assert outcomes == {
        frozenset({(A, B), (B, C), (C, A)}),
        frozenset({(A, C), (C, B), (B, A)}),
    }


def test_assignment_respects_exclusions():
    for seed in range(30):
        receivers = generate_cycle([A, B, C], exclusions=[(A, B)], seed=seed).receivers()
        assert receivers == {A: C, C: B, B: A}


def test_four_cycle_of_exclusions_has_one_solution():
    exclusions = [(A, B), (B, C), (C, D), (D, A)]
    expected = valid_cycles([A, B, C, D], exclusions)
    assert expected == {frozenset({(A, D), (D, C), (C, B), (B, A)})}

    for strategy in ("retry", "backtrack"):
        for seed in range(10):
            draw = generate_cycle([A, B, C, D], exclusions, seed=seed, strategy=strategy)
            assert frozenset(draw.receivers().items()) in expected


def test_assignment_fails_for_too_few_participants():
    with pytest.raises(AssignmentError) as excinfo:
        generate_cycle([A, B])
    assert excinfo.value.kind == ErrorKind.TOO_FEW_PARTICIPANTS


def test_minimum_cannot_be_lowered_below_three():
    with pytest.raises(AssignmentError) as excinfo:
        generate_cycle([A, B], min_participants=2)
    assert excinfo.value.kind == ErrorKind.TOO_FEW_PARTICIPANTS


def test_minimum_can_be_raised():
    with pytest.raises(AssignmentError):
        generate_cycle([A, B, C, D], min_participants=5)


def test_assignment_fails_for_tight_constraints():
    exclusions = [(A, B), (A, C)]
    with pytest.raises(AssignmentError) as excinfo:
        generate_cycle([A, B, C], exclusions=exclusions, seed=7, max_attempts=200)
    assert excinfo.value.kind == ErrorKind.INFEASIBLE

    with pytest.raises(AssignmentError) as excinfo:
        generate_cycle([A, B, C], exclusions=exclusions, seed=7, strategy="backtrack")
    assert excinfo.value.kind == ErrorKind.INFEASIBLE


def test_no_exclusions_succeeds_first_try_for_large_groups():
    draw = generate_cycle(list(range(300)), seed=11)
    assert draw.attempts == 1
    assert is_single_cycle(draw.receivers())


def test_retry_draws_every_cycle_evenly():
    participants = [A, B, C, D]
    graph = ExclusionGraph.from_pairs([])
    rng = random.Random(2024)
    counts = Counter(
        frozenset(sample_cycle(participants, graph, rng).receivers().items()) for _ in range(3000)
    )
    assert set(counts) == valid_cycles(participants, [])
    assert len(counts) == 6
    assert all(400 < count < 600 for count in counts.values())


def test_backtracking_finds_the_only_cycle():
    participants = list(range(1, 9))
    target = [3, 7, 1, 5, 8, 2, 6, 4]
    allowed = set(cycle_pairs(target))
    exclusions = [
        (giver, receiver)
        for giver in participants
        for receiver in participants
        if giver != receiver and (giver, receiver) not in allowed
    ]

    draw = generate_cycle(participants, exclusions, seed=3, strategy="backtrack")
    assert draw.receivers() == dict(allowed)
    assert draw.strategy == "backtrack"


def test_backtracking_proves_infeasibility():
    # A and B may only give to each other, so no cycle can reach C and D
    exclusions = [(A, C), (A, D), (B, C), (B, D)]
    graph = ExclusionGraph.from_pairs(exclusions)
    with pytest.raises(AssignmentError, match="No valid assignment exists"):
        search_cycle([A, B, C, D], graph, random.Random(1))


def test_backtracking_respects_step_budget():
    graph = ExclusionGraph.from_pairs([(A, C), (A, D), (B, C), (B, D)])
    with pytest.raises(AssignmentError, match="budget"):
        search_cycle([A, B, C, D], graph, random.Random(1), max_steps=1)


def test_unknown_strategy_is_rejected():
    with pytest.raises(ValueError):
        generate_cycle([A, B, C], strategy="annealing")


def test_duplicate_participants_are_rejected():
    with pytest.raises(ValueError):
        generate_cycle([A, B, B])


def test_shuffled_returns_new_list():
    items = [1, 2, 3, 4, 5]
    result = shuffled(items, random.Random(5))
    assert items == [1, 2, 3, 4, 5]
    assert sorted(result) == items
    assert result == shuffled(items, random.Random(5))


def test_exclusion_graph_is_directed():
    graph = ExclusionGraph.from_pairs([(A, B)])
    assert graph.forbidden(A, B)
    assert not graph.forbidden(B, A)
    assert graph.allows(B, A)
    assert not graph.allows(C, C)
    assert len(graph) == 1


def test_is_single_cycle_rejects_sub_cycles():
    assert is_single_cycle({A: B, B: C, C: D, D: A})
    assert not is_single_cycle({A: B, B: A, C: D, D: C})
    assert not is_single_cycle({A: B, B: B})
    assert not is_single_cycle({})


def test_cycle_pairs_wrap_around():
    assert cycle_pairs([A, B, C]) == [(A, B), (B, C), (C, A)]
