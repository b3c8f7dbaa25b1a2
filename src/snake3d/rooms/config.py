from __future__ import annotations

from dataclasses import dataclass, replace
import os
from typing import Literal, TypeAlias

from ..geom import GRID_EPSILON

MatchmakingPolicy: TypeAlias = Literal["least_played", "elo"]
LeaderboardSource: TypeAlias = Literal["phantoms", "users"]

MAX_PHANTOMS = 3
MAX_SPAWN_POINTS = 4
SCORE_PER_STEP_CAP = 10
ELO_PROXIMITY_THRESHOLD = 500
DEFAULT_ELO = 1000
SEED_SPACE = 1_000_000

# Scores at or below this are tolerated without any recorded turn.
FREE_SCORE_WITHOUT_TURNS = 10
HIGH_SCORE_THRESHOLD = 1000
HIGH_SCORE_MIN_CHANGES = 5
CONTINUITY_EPSILON = GRID_EPSILON

ENV_PREFIX = "SNAKE3D_"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class RoomConfig:
    max_phantoms: int = MAX_PHANTOMS
    max_spawn_points: int = MAX_SPAWN_POINTS
    score_per_step_cap: int = SCORE_PER_STEP_CAP
    elo_proximity_threshold: int = ELO_PROXIMITY_THRESHOLD
    default_elo: int = DEFAULT_ELO
    matchmaking: MatchmakingPolicy = "least_played"
    leaderboard_source: LeaderboardSource = "phantoms"
    repair_on_join: bool = True
    seed_space: int = SEED_SPACE

    def __post_init__(self) -> None:
        if int(self.max_phantoms) < 1:
            raise ConfigError(f"max_phantoms must be >= 1, got {self.max_phantoms}")
        # The joining player needs a spawn point that no phantom occupies.
        if int(self.max_spawn_points) <= int(self.max_phantoms):
            raise ConfigError(
                f"max_spawn_points ({self.max_spawn_points}) must exceed max_phantoms ({self.max_phantoms})"
            )
        if int(self.score_per_step_cap) <= 0:
            raise ConfigError(f"score_per_step_cap must be positive, got {self.score_per_step_cap}")
        if self.matchmaking not in ("least_played", "elo"):
            raise ConfigError(f"unknown matchmaking policy: {self.matchmaking!r}")
        if self.leaderboard_source not in ("phantoms", "users"):
            raise ConfigError(f"unknown leaderboard source: {self.leaderboard_source!r}")
        if int(self.seed_space) < 2:
            raise ConfigError(f"seed_space must be >= 2, got {self.seed_space}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None:
        return bool(default)
    return str(raw).strip().lower() not in {"0", "false", "off", "no"}


def room_config_from_env(base: RoomConfig | None = None) -> RoomConfig:
    """Apply `SNAKE3D_*` environment overrides on top of `base`.

    Unparseable numbers fall back to the base value; an out-of-range combination
    still raises `ConfigError`.
    """

    base = base if base is not None else RoomConfig()
    matchmaking = str(os.environ.get(ENV_PREFIX + "MATCHMAKING", base.matchmaking)).strip().lower()
    leaderboard = str(os.environ.get(ENV_PREFIX + "LEADERBOARD_SOURCE", base.leaderboard_source)).strip().lower()
    return replace(
        base,
        max_phantoms=_env_int("MAX_PHANTOMS", base.max_phantoms),
        max_spawn_points=_env_int("MAX_SPAWN_POINTS", base.max_spawn_points),
        score_per_step_cap=_env_int("SCORE_PER_STEP_CAP", base.score_per_step_cap),
        elo_proximity_threshold=_env_int("ELO_PROXIMITY_THRESHOLD", base.elo_proximity_threshold),
        matchmaking=matchmaking,  # type: ignore[arg-type]
        leaderboard_source=leaderboard,  # type: ignore[arg-type]
        repair_on_join=_env_bool("REPAIR_ON_JOIN", base.repair_on_join),
    )
