from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    FrozenSet,
    Hashable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from loguru import logger

DEFAULT_MAX_ATTEMPTS = 1000
DEFAULT_MAX_BACKTRACK_STEPS = 100_000

_NONE = object()

ParticipantId = Hashable
Assignment = Dict[ParticipantId, ParticipantId]


class MatchingError(RuntimeError):
    pass


class InvalidInput(MatchingError, ValueError):
    pass


class MatchingImpossible(MatchingError):
    pass


class MatchingTimeout(MatchingError):
    pass


@dataclass(frozen=True)
class Participant:
    id: ParticipantId
    name: str = field(default="", compare=False)


@dataclass(frozen=True)
class Restriction:
    a: ParticipantId
    b: ParticipantId

    @property
    def pair(self) -> FrozenSet[ParticipantId]:
        return frozenset((self.a, self.b))


def _participant_id(entry: Any) -> ParticipantId:
    if isinstance(entry, Participant):
        return entry.id
    if isinstance(entry, Mapping):
        if "id" not in entry:
            raise InvalidInput(f"Participant entry has no id: {entry!r}")
        return entry["id"]
    try:
        hash(entry)
    except TypeError as exc:
        raise InvalidInput(f"Participant id must be hashable: {entry!r}") from exc
    return entry


def _restriction_ends(entry: Any) -> Tuple[ParticipantId, ParticipantId]:
    if isinstance(entry, Restriction):
        return entry.a, entry.b
    if isinstance(entry, Mapping):
        for first, second in (("participant1_id", "participant2_id"), ("participant1", "participant2")):
            if first in entry and second in entry:
                return entry[first], entry[second]
        raise InvalidInput(f"Restriction entry has no participant pair: {entry!r}")
    if isinstance(entry, (str, bytes)):
        raise InvalidInput(f"Restriction entry must be a pair, got {entry!r}")
    try:
        a, b = entry
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Restriction entry must be a pair, got {entry!r}") from exc
    return a, b


def participant_ids(participants: Iterable[Any]) -> List[ParticipantId]:
    ids = [_participant_id(entry) for entry in participants]
    if len(set(ids)) != len(ids):
        raise InvalidInput("Participant ids must be unique.")
    return ids


def restriction_set(
    restrictions: Optional[Iterable[Any]],
    known_ids: Optional[Set[ParticipantId]] = None,
) -> Set[FrozenSet[ParticipantId]]:
    pairs: Set[FrozenSet[ParticipantId]] = set()
    for entry in restrictions or []:
        a, b = _restriction_ends(entry)
        try:
            pair = frozenset((a, b))
        except TypeError as exc:
            raise InvalidInput(f"Restriction ids must be hashable: {entry!r}") from exc
        if known_ids is not None:
            unknown = pair - known_ids
            if unknown:
                raise InvalidInput(
                    "Restriction references unknown participant(s): "
                    + ", ".join(sorted(repr(item) for item in unknown))
                )
        if a == b:
            continue
        pairs.add(pair)
    return pairs


def has_restriction(a: ParticipantId, b: ParticipantId, restrictions: Iterable[Any]) -> bool:
    for entry in restrictions:
        first, second = _restriction_ends(entry)
        if (first == a and second == b) or (first == b and second == a):
            return True
    return False


def validate_matching(
    assignment: Any,
    participants: Iterable[Any],
    restrictions: Optional[Iterable[Any]] = None,
) -> bool:
    if not isinstance(assignment, Mapping):
        return False
    try:
        ids = set(participant_ids(participants))
        forbidden = restriction_set(restrictions)
        givers = set(assignment.keys())
        receivers = list(assignment.values())
        receiver_set = set(receivers)
    except (MatchingError, TypeError):
        return False

    if len(assignment) != len(ids):
        return False
    if givers != ids:
        return False
    if len(receiver_set) != len(receivers) or receiver_set != ids:
        return False

    for giver, receiver in assignment.items():
        if giver == receiver:
            return False
        if frozenset((giver, receiver)) in forbidden:
            return False
    return True


def _allowed_receivers(
    ids: Sequence[ParticipantId],
    forbidden: Set[FrozenSet[ParticipantId]],
) -> Dict[ParticipantId, Set[ParticipantId]]:
    everyone = set(ids)
    return {
        giver: {receiver for receiver in everyone - {giver} if frozenset((giver, receiver)) not in forbidden}
        for giver in ids
    }


def _has_perfect_matching(
    ids: Sequence[ParticipantId],
    allowed: Dict[ParticipantId, Set[ParticipantId]],
) -> bool:
    # Augmenting paths over the giver/receiver bipartite graph, seeded greedily.
    owner: Dict[ParticipantId, ParticipantId] = {}
    unmatched: List[ParticipantId] = []
    for giver in ids:
        free = next((receiver for receiver in allowed[giver] if receiver not in owner), _NONE)
        if free is _NONE:
            unmatched.append(giver)
        else:
            owner[free] = giver
    return all(_augment(giver, allowed, owner) for giver in unmatched)


def _augment(
    start: ParticipantId,
    allowed: Dict[ParticipantId, Set[ParticipantId]],
    owner: Dict[ParticipantId, ParticipantId],
) -> bool:
    seen: Set[ParticipantId] = set()
    stack = [(start, iter(allowed[start]))]
    path: List[ParticipantId] = []
    while stack:
        _, receivers = stack[-1]
        for receiver in receivers:
            if receiver in seen:
                continue
            seen.add(receiver)
            path.append(receiver)
            if receiver not in owner:
                for (giver, _), taken in zip(stack, path):
                    owner[taken] = giver
                return True
            holder = owner[receiver]
            stack.append((holder, iter(allowed[holder])))
            break
        else:
            stack.pop()
            if path:
                path.pop()
    return False


def _random_attempts(
    ids: Sequence[ParticipantId],
    forbidden: Set[FrozenSet[ParticipantId]],
    rng: random.Random,
    max_attempts: int,
) -> Optional[Assignment]:
    receivers = list(ids)
    for _ in range(max_attempts):
        rng.shuffle(receivers)
        if all(
            giver != receiver and frozenset((giver, receiver)) not in forbidden
            for giver, receiver in zip(ids, receivers)
        ):
            return dict(zip(ids, receivers))
    return None


def _backtrack(
    ids: Sequence[ParticipantId],
    allowed: Dict[ParticipantId, Set[ParticipantId]],
    rng: random.Random,
    max_steps: int,
) -> Optional[Assignment]:
    assignments: Assignment = {}
    remaining_receivers = set(ids)
    # allowed is symmetric, so allowed[r] is also the set of givers that could take r.
    open_choices = {giver: len(allowed[giver]) for giver in ids}
    frames: List[Tuple[ParticipantId, Iterator[ParticipantId]]] = []
    steps = 0

    def push_frame() -> None:
        giver = min(
            (g for g in ids if g not in assignments),
            key=lambda g: open_choices[g],
        )
        choices = list(allowed[giver] & remaining_receivers)
        rng.shuffle(choices)
        frames.append((giver, iter(choices)))

    def take(giver: ParticipantId, receiver: ParticipantId) -> None:
        assignments[giver] = receiver
        remaining_receivers.remove(receiver)
        for other in allowed[receiver]:
            open_choices[other] -= 1

    def release(giver: ParticipantId) -> None:
        receiver = assignments.pop(giver)
        remaining_receivers.add(receiver)
        for other in allowed[receiver]:
            open_choices[other] += 1

    push_frame()
    while frames:
        giver, choices = frames[-1]
        if giver in assignments:
            release(giver)
        receiver = next(choices, _NONE)
        if receiver is _NONE:
            frames.pop()
            continue
        steps += 1
        if steps > max_steps:
            raise MatchingTimeout(
                f"Backtracking exceeded {max_steps} steps without completing an assignment."
            )
        take(giver, receiver)
        if len(assignments) == len(ids):
            return assignments
        push_frame()
    return None


def generate_matches(
    participants: Iterable[Any],
    restrictions: Optional[Iterable[Any]] = None,
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    max_backtrack_steps: int = DEFAULT_MAX_BACKTRACK_STEPS,
) -> Assignment:
    if max_attempts < 0 or max_backtrack_steps < 0:
        raise InvalidInput("Attempt and step budgets must not be negative.")

    ids = participant_ids(participants)
    if len(ids) < 2:
        raise InvalidInput("At least 2 participants are required.")
    forbidden = restriction_set(restrictions, known_ids=set(ids))

    if rng is None:
        rng = random.Random(seed)
    log = logger.bind(participants=len(ids), restrictions=len(forbidden))

    allowed = _allowed_receivers(ids, forbidden)
    stuck = [giver for giver in ids if not allowed[giver]]
    if stuck:
        log.info("Matching impossible: {count} participant(s) have no allowed receiver", count=len(stuck))
        raise MatchingImpossible("Cannot complete the raffle with the current restrictions.")

    if not _has_perfect_matching(ids, allowed):
        log.info("Matching impossible: restrictions leave no complete assignment")
        raise MatchingImpossible("Cannot complete the raffle with the current restrictions.")

    assignments = _random_attempts(ids, forbidden, rng, max_attempts)
    if assignments is None:
        log.debug("Random attempts exhausted ({attempts}), falling back to search", attempts=max_attempts)
        try:
            assignments = _backtrack(ids, allowed, rng, max_backtrack_steps)
        except MatchingTimeout:
            log.warning("Matching search ran out of budget ({steps} steps)", steps=max_backtrack_steps)
            raise
        if assignments is None:
            raise MatchingImpossible("Cannot complete the raffle with the current restrictions.")

    if not validate_matching(assignments, ids, forbidden):
        raise MatchingError("Generated assignment failed validation.")
    return assignments
