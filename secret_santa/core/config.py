import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    log_level: str
    log_path: Optional[str]
    match_max_attempts: int
    match_max_backtrack_steps: int
    raffle_min_participants: int


def _int_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}.")
    return value


def load_settings() -> Settings:
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "logs/secret_santa.log") or None

    return Settings(
        log_level=log_level,
        log_path=log_path,
        match_max_attempts=_int_env("MATCH_MAX_ATTEMPTS", 1000, minimum=0),
        match_max_backtrack_steps=_int_env("MATCH_MAX_BACKTRACK_STEPS", 100_000, minimum=1),
        raffle_min_participants=_int_env("RAFFLE_MIN_PARTICIPANTS", 3, minimum=2),
    )
