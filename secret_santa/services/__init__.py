from secret_santa.services.matching import (
    InvalidInput,
    MatchingError,
    MatchingImpossible,
    MatchingTimeout,
    Participant,
    Restriction,
    generate_matches,
    has_restriction,
    validate_matching,
)
from secret_santa.services.raffle import GroupSnapshot, Member, RaffleError, RaffleResult, execute_raffle

__all__ = [
    "InvalidInput",
    "MatchingError",
    "MatchingImpossible",
    "MatchingTimeout",
    "Participant",
    "Restriction",
    "generate_matches",
    "has_restriction",
    "validate_matching",
    "GroupSnapshot",
    "Member",
    "RaffleError",
    "RaffleResult",
    "execute_raffle",
]
