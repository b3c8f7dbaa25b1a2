from __future__ import annotations

from .config import (
    ELO_PROXIMITY_THRESHOLD,
    MAX_PHANTOMS,
    MAX_SPAWN_POINTS,
    SCORE_PER_STEP_CAP,
    ConfigError,
    RoomConfig,
    room_config_from_env,
)
from .eviction import AdmissionDecision, decide_admission, first_free_spawn_index, trim_to_capacity
from .matchmaker import MatchResult, RoomMatchmaker
from .service import RoomService, SeedLocks
from .store import RoomStore, RoomStoreError, room_key
from .types import AdmissionResult, LeaderboardEntry, PhantomInfo, RoomData, RoomMeta, RoomSummaryRow
from .validator import ValidationResult, validate_replay

__all__ = [
    "AdmissionDecision",
    "AdmissionResult",
    "ConfigError",
    "ELO_PROXIMITY_THRESHOLD",
    "LeaderboardEntry",
    "MAX_PHANTOMS",
    "MAX_SPAWN_POINTS",
    "MatchResult",
    "PhantomInfo",
    "RoomConfig",
    "RoomData",
    "RoomMatchmaker",
    "RoomMeta",
    "RoomService",
    "RoomStore",
    "RoomStoreError",
    "RoomSummaryRow",
    "SCORE_PER_STEP_CAP",
    "SeedLocks",
    "ValidationResult",
    "decide_admission",
    "first_free_spawn_index",
    "room_config_from_env",
    "room_key",
    "trim_to_capacity",
    "validate_replay",
]
