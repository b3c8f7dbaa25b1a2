from __future__ import annotations

from .codec import (
    ReplayCodecError,
    dump_replay,
    dump_replay_file,
    load_replay,
    load_replay_file,
    replay_from_obj,
    replay_to_obj,
)
from .player import ReplayPlayer
from .recorder import TrajectoryRecorder, initial_pose
from .types import (
    DEFAULT_INITIAL_SPEED,
    ReplayData,
    ReplayDraft,
    StartParams,
    TrajectoryChange,
)

__all__ = [
    "DEFAULT_INITIAL_SPEED",
    "ReplayCodecError",
    "ReplayData",
    "ReplayDraft",
    "ReplayPlayer",
    "StartParams",
    "TrajectoryChange",
    "TrajectoryRecorder",
    "dump_replay",
    "dump_replay_file",
    "initial_pose",
    "load_replay",
    "load_replay_file",
    "replay_from_obj",
    "replay_to_obj",
]
