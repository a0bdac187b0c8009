"""Exclusion-aware single-cycle gift assignment.

Participants are placed in a random order and each one gives to the next,
the last giving to the first. The resulting assignment is always one cycle
covering everybody, so nobody can deduce a giver from a closed pair.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple, TypeVar

from santa_draw.services.errors import ErrorKind, GameError

T = TypeVar("T")

MIN_PARTICIPANTS = 3
DEFAULT_MAX_ATTEMPTS = 5000
DEFAULT_MAX_SEARCH_STEPS = 200_000

STRATEGY_RETRY = "retry"
STRATEGY_BACKTRACK = "backtrack"


class AssignmentError(GameError):
    def __init__(self, message: str, kind: ErrorKind = ErrorKind.INFEASIBLE) -> None:
        super().__init__(kind, message)


@dataclass(frozen=True)
class ExclusionGraph:
    """Directed forbidden giver -> receiver pairs."""

    forbidden_receivers: Mapping[int, FrozenSet[int]] = field(default_factory=dict)

    @classmethod
    def from_pairs(cls, pairs: Optional[Iterable[Tuple[int, int]]]) -> ExclusionGraph:
        grouped: Dict[int, Set[int]] = {}
        for who, whom in pairs or ():
            grouped.setdefault(who, set()).add(whom)
        return cls({who: frozenset(whoms) for who, whoms in grouped.items()})

    def forbidden(self, giver: int, receiver: int) -> bool:
        return receiver in self.forbidden_receivers.get(giver, ())

    def allows(self, giver: int, receiver: int) -> bool:
        return giver != receiver and not self.forbidden(giver, receiver)

    def __len__(self) -> int:
        return sum(len(whoms) for whoms in self.forbidden_receivers.values())


@dataclass(frozen=True)
class CycleDraw:
    order: Tuple[int, ...]
    attempts: int
    strategy: str

    def pairs(self) -> List[Tuple[int, int]]:
        return cycle_pairs(self.order)

    def receivers(self) -> Dict[int, int]:
        return receiver_map(self.order)


def shuffled(items: Sequence[T], rng: random.Random) -> List[T]:
    result = list(items)
    rng.shuffle(result)
    return result


def cycle_pairs(order: Sequence[int]) -> List[Tuple[int, int]]:
    size = len(order)
    return [(order[index], order[(index + 1) % size]) for index in range(size)]


def receiver_map(order: Sequence[int]) -> Dict[int, int]:
    return dict(cycle_pairs(order))


def first_violation(order: Sequence[int], graph: ExclusionGraph) -> Optional[Tuple[int, int]]:
    for giver, receiver in cycle_pairs(order):
        if not graph.allows(giver, receiver):
            return giver, receiver
    return None


def is_single_cycle(receivers: Mapping[int, int]) -> bool:
    """True when following receivers from anyone visits everybody once and returns."""
    if not receivers or set(receivers.values()) != set(receivers):
        return False
    start = next(iter(receivers))
    seen = {start}
    current = receivers[start]
    while current != start:
        if current in seen:
            return False
        seen.add(current)
        current = receivers[current]
    return len(seen) == len(receivers)


def sample_cycle(
    participant_ids: Sequence[int],
    graph: ExclusionGraph,
    rng: random.Random,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> CycleDraw:
    for attempt in range(1, max_attempts + 1):
        order = shuffled(participant_ids, rng)
        if first_violation(order, graph) is None:
            return CycleDraw(tuple(order), attempt, STRATEGY_RETRY)

    raise AssignmentError(
        f"Could not find a valid assignment in {max_attempts} attempts. "
        "Try removing some restrictions."
    )


def search_cycle(
    participant_ids: Sequence[int],
    graph: ExclusionGraph,
    rng: random.Random,
    max_steps: int = DEFAULT_MAX_SEARCH_STEPS,
) -> CycleDraw:
    """Randomized depth-first search for a Hamiltonian cycle avoiding exclusions.

    Unlike :func:`sample_cycle` this can prove that no assignment exists, at the
    cost of a non-uniform choice among the valid cycles. The step budget bounds
    latency on large, dense exclusion sets.
    """
    participants = shuffled(participant_ids, rng)
    successors = {
        giver: [receiver for receiver in participants if graph.allows(giver, receiver)]
        for giver in participants
    }
    has_giver = {receiver for receivers in successors.values() for receiver in receivers}
    if any(not successors[p] or p not in has_giver for p in participants):
        raise AssignmentError(
            "No valid assignment exists: someone is excluded from everybody. Remove some restrictions."
        )

    start = participants[0]
    path = [start]
    visited = {start}

    def ordered_choices(giver: int) -> Iterator[int]:
        choices = [receiver for receiver in successors[giver] if receiver not in visited]
        rng.shuffle(choices)
        # fail-first; the sort is stable so ties keep their random order
        choices.sort(key=lambda r: sum(1 for nxt in successors[r] if nxt not in visited))
        return iter(choices)

    stack = [ordered_choices(start)]
    steps = 0
    while stack:
        steps += 1
        if steps > max_steps:
            raise AssignmentError(
                f"Search budget of {max_steps} steps exhausted. Try removing some restrictions."
            )
        receiver = next(stack[-1], None)
        if receiver is None:
            stack.pop()
            visited.discard(path.pop())
            continue

        path.append(receiver)
        visited.add(receiver)
        if len(path) == len(participants):
            if graph.allows(receiver, start):
                return CycleDraw(tuple(path), steps, STRATEGY_BACKTRACK)
            visited.discard(path.pop())
            continue
        stack.append(ordered_choices(receiver))

    raise AssignmentError("No valid assignment exists with these restrictions. Remove some of them.")


def generate_cycle(
    participant_ids: Sequence[int],
    exclusions: Optional[Iterable[Tuple[int, int]]] = None,
    seed: Optional[int] = None,
    strategy: str = STRATEGY_RETRY,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    max_search_steps: int = DEFAULT_MAX_SEARCH_STEPS,
    min_participants: int = MIN_PARTICIPANTS,
    rng: Optional[random.Random] = None,
) -> CycleDraw:
    participants = list(participant_ids)
    if len(set(participants)) != len(participants):
        raise ValueError("Participant ids must be unique.")

    required = max(min_participants, MIN_PARTICIPANTS)
    if len(participants) < required:
        raise AssignmentError(
            f"Need at least {required} participants to play.",
            kind=ErrorKind.TOO_FEW_PARTICIPANTS,
        )

    rng = rng or random.Random(seed)
    graph = ExclusionGraph.from_pairs(exclusions)

    if strategy == STRATEGY_RETRY:
        return sample_cycle(participants, graph, rng, max_attempts)
    if strategy == STRATEGY_BACKTRACK:
        return search_cycle(participants, graph, rng, max_search_steps)
    raise ValueError(f"Unknown draw strategy: {strategy!r}")
