from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

from ..replay.types import ReplayData

AdmissionCode: TypeAlias = Literal[
    "admitted",
    "replaced_spawn",
    "evicted_weakest",
    "lost_spawn",
    "lost_capacity",
    "invalid",
    "rejected",
]


@dataclass(slots=True)
class PhantomInfo:
    replay_id: str
    score: int
    spawn_index: int
    player_id: str | None = None
    elo: float | None = None


@dataclass(slots=True)
class RoomMeta:
    seed: str
    total_games_played: int = 0
    active_phantoms: list[PhantomInfo] = field(default_factory=list)
    players_history: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RoomData:
    seed: int
    phantoms: list[ReplayData]
    player_spawn_index: int


@dataclass(frozen=True, slots=True)
class AdmissionResult:
    admitted: bool
    code: AdmissionCode
    message: str
    replay_id: str | None = None
    evicted_replay_id: str | None = None


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    player_name: str
    score: int
    seed: int
    date: int
    replay_id: str


@dataclass(frozen=True, slots=True)
class RoomSummaryRow:
    seed: str
    phantom_count: int
    total_games_played: int
    best_score: int | None
