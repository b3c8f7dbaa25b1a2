from __future__ import annotations

import pytest

from snake3d.rooms import ConfigError, RoomConfig, room_config_from_env


def test_room_config_defaults() -> None:
    config = RoomConfig()

    assert config.max_phantoms == 3
    assert config.max_spawn_points == 4
    assert config.score_per_step_cap == 10
    assert config.elo_proximity_threshold == 500
    assert config.matchmaking == "least_played"
    assert config.leaderboard_source == "phantoms"
    assert config.repair_on_join is True


def test_room_config_requires_a_free_spawn_for_the_joining_player() -> None:
    with pytest.raises(ConfigError, match="must exceed max_phantoms"):
        RoomConfig(max_phantoms=4, max_spawn_points=4)


def test_room_config_rejects_unknown_policies() -> None:
    with pytest.raises(ConfigError, match="matchmaking"):
        RoomConfig(matchmaking="skill")  # type: ignore[arg-type]
    with pytest.raises(ConfigError, match="leaderboard"):
        RoomConfig(leaderboard_source="everyone")  # type: ignore[arg-type]


def test_room_config_from_env_applies_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SNAKE3D_MAX_PHANTOMS", "5")
    monkeypatch.setenv("SNAKE3D_MAX_SPAWN_POINTS", "8")
    monkeypatch.setenv("SNAKE3D_MATCHMAKING", " ELO ")
    monkeypatch.setenv("SNAKE3D_REPAIR_ON_JOIN", "off")

    config = room_config_from_env()

    assert config.max_phantoms == 5
    assert config.max_spawn_points == 8
    assert config.matchmaking == "elo"
    assert config.repair_on_join is False


def test_room_config_from_env_ignores_unparseable_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SNAKE3D_SCORE_PER_STEP_CAP", "lots")
    monkeypatch.delenv("SNAKE3D_MAX_PHANTOMS", raising=False)

    config = room_config_from_env()

    assert config.score_per_step_cap == 10
    assert config.max_phantoms == 3
