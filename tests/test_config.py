import pytest

from secret_santa.core.config import load_settings

ENV_VARS = [
    "LOG_LEVEL",
    "LOG_PATH",
    "MATCH_MAX_ATTEMPTS",
    "MATCH_MAX_BACKTRACK_STEPS",
    "RAFFLE_MIN_PARTICIPANTS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings.log_level == "INFO"
    assert settings.log_path == "logs/secret_santa.log"
    assert settings.match_max_attempts == 1000
    assert settings.match_max_backtrack_steps == 100_000
    assert settings.raffle_min_participants == 3


def test_overrides(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_PATH", "")
    monkeypatch.setenv("MATCH_MAX_ATTEMPTS", "0")
    monkeypatch.setenv("MATCH_MAX_BACKTRACK_STEPS", "500")
    monkeypatch.setenv("RAFFLE_MIN_PARTICIPANTS", "4")

    settings = load_settings()
    assert settings.log_level == "DEBUG"
    assert settings.log_path is None
    assert settings.match_max_attempts == 0
    assert settings.match_max_backtrack_steps == 500
    assert settings.raffle_min_participants == 4


def test_non_integer_rejected(monkeypatch):
    monkeypatch.setenv("MATCH_MAX_ATTEMPTS", "lots")
    with pytest.raises(ValueError, match="MATCH_MAX_ATTEMPTS"):
        load_settings()


def test_out_of_range_rejected(monkeypatch):
    monkeypatch.setenv("RAFFLE_MIN_PARTICIPANTS", "1")
    with pytest.raises(ValueError, match="RAFFLE_MIN_PARTICIPANTS"):
        load_settings()
