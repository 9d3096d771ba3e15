from __future__ import annotations

import datetime
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from secret_santa.core.config import Settings
from secret_santa.services.matching import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_BACKTRACK_STEPS,
    MatchingError,
    Participant,
    ParticipantId,
    generate_matches,
    restriction_set,
)

MIN_RAFFLE_PARTICIPANTS = 3


class RaffleError(RuntimeError):
    pass


@dataclass(frozen=True)
class Member:
    id: ParticipantId
    name: str = ""
    kicked: bool = False


@dataclass(frozen=True)
class GroupSnapshot:
    id: Any
    name: str
    organizer_id: Any
    members: Sequence[Member] = field(default_factory=tuple)
    restrictions: Sequence[Any] = field(default_factory=tuple)
    deadline: Optional[datetime.datetime] = None
    raffled_at: Optional[datetime.datetime] = None


@dataclass(frozen=True)
class RaffleResult:
    group_id: Any
    assignments: Dict[ParticipantId, ParticipantId]
    seed: int
    raffled_at: datetime.datetime

    def receiver_for(self, giver_id: ParticipantId) -> ParticipantId:
        try:
            return self.assignments[giver_id]
        except KeyError as exc:
            raise RaffleError(f"Participant {giver_id!r} is not part of this raffle.") from exc


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc)


def _as_aware(moment: datetime.datetime) -> datetime.datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=datetime.timezone.utc)
    return moment


def active_participants(group: GroupSnapshot) -> List[Participant]:
    return [Participant(id=member.id, name=member.name) for member in group.members if not member.kicked]


def active_restrictions(group: GroupSnapshot) -> List[tuple]:
    # Restrictions touching a kicked member never reach the matcher.
    active_ids = {participant.id for participant in active_participants(group)}
    return [
        tuple(pair)
        for pair in restriction_set(group.restrictions)
        if pair <= active_ids
    ]


def is_raffle_due(
    group: GroupSnapshot,
    now: Optional[datetime.datetime] = None,
    min_participants: int = MIN_RAFFLE_PARTICIPANTS,
) -> bool:
    if group.raffled_at is not None or group.deadline is None:
        return False
    if len(active_participants(group)) < min_participants:
        return False
    now = _as_aware(now or _utcnow())
    return _as_aware(group.deadline) <= now


def check_raffle_allowed(
    group: GroupSnapshot,
    organizer_id: Any = None,
    min_participants: int = MIN_RAFFLE_PARTICIPANTS,
) -> None:
    if group.raffled_at is not None:
        raise RaffleError("Raffle already completed for this group.")
    if organizer_id is not None and group.organizer_id != organizer_id:
        raise RaffleError("Only the organizer can trigger the raffle.")
    if len(active_participants(group)) < min_participants:
        raise RaffleError(f"At least {min_participants} participants are required.")


def execute_raffle(
    group: GroupSnapshot,
    organizer_id: Any = None,
    seed: Optional[int] = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime.datetime] = None,
) -> RaffleResult:
    min_participants = settings.raffle_min_participants if settings else MIN_RAFFLE_PARTICIPANTS
    check_raffle_allowed(group, organizer_id=organizer_id, min_participants=min_participants)

    participants = active_participants(group)
    restrictions = active_restrictions(group)
    log = logger.bind(group_id=group.id, participants=len(participants), restrictions=len(restrictions))

    if seed is None:
        seed = random.randint(1, 2**31 - 1)

    try:
        assignments = generate_matches(
            participants,
            restrictions,
            seed=seed,
            max_attempts=settings.match_max_attempts if settings else DEFAULT_MAX_ATTEMPTS,
            max_backtrack_steps=(
                settings.match_max_backtrack_steps if settings else DEFAULT_MAX_BACKTRACK_STEPS
            ),
        )
    except MatchingError as exc:
        log.warning("Raffle failed: {error}", error=str(exc))
        raise

    log.bind(seed=seed).info("Assignments generated")
    return RaffleResult(
        group_id=group.id,
        assignments=assignments,
        seed=seed,
        raffled_at=now or _utcnow(),
    )
