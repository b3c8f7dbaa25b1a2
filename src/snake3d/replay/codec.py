from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..geom import Vec3
from .types import DEFAULT_INITIAL_SPEED, ReplayData, StartParams, TrajectoryChange


class ReplayCodecError(ValueError):
    pass


def vec3_to_obj(value: Vec3) -> dict[str, float]:
    return {"x": float(value.x), "y": float(value.y), "z": float(value.z)}


def vec3_from_obj(value: Any, *, what: str) -> Vec3:
    if not isinstance(value, dict):
        raise ReplayCodecError(f"{what} must be an object with x, y, z")
    coords: list[float] = []
    for axis in ("x", "y", "z"):
        raw = value.get(axis)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ReplayCodecError(f"{what}.{axis} must be a number, got {raw!r}")
        coords.append(float(raw))
    return Vec3(coords[0], coords[1], coords[2])


def _optional_vec3(value: Any, *, what: str) -> Vec3 | None:
    if value is None:
        return None
    return vec3_from_obj(value, what=what)


def _require_int(obj: dict[str, Any], key: str, *, what: str) -> int:
    raw = obj.get(key)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ReplayCodecError(f"{what}.{key} must be a number, got {raw!r}")
    return int(raw)


def start_params_to_obj(params: StartParams) -> dict[str, Any]:
    out: dict[str, Any] = {
        "seed": int(params.seed),
        "spawnIndex": int(params.spawn_index),
        "initialSpeed": float(params.initial_speed),
    }
    if params.start_position is not None:
        out["startPosition"] = vec3_to_obj(params.start_position)
    if params.start_direction is not None:
        out["startDirection"] = vec3_to_obj(params.start_direction)
    return out


def start_params_from_obj(obj: Any) -> StartParams:
    if not isinstance(obj, dict):
        raise ReplayCodecError("startParams must be an object")
    speed = obj.get("initialSpeed", DEFAULT_INITIAL_SPEED)
    if isinstance(speed, bool) or not isinstance(speed, (int, float)):
        raise ReplayCodecError(f"startParams.initialSpeed must be a number, got {speed!r}")
    return StartParams(
        seed=_require_int(obj, "seed", what="startParams"),
        spawn_index=_require_int(obj, "spawnIndex", what="startParams"),
        initial_speed=float(speed),
        start_position=_optional_vec3(obj.get("startPosition"), what="startParams.startPosition"),
        start_direction=_optional_vec3(obj.get("startDirection"), what="startParams.startDirection"),
    )


def trajectory_to_arrays(log: list[TrajectoryChange]) -> list[dict[str, Any]]:
    return [
        {"position": vec3_to_obj(change.position), "direction": vec3_to_obj(change.direction)}
        for change in log
    ]


def trajectory_from_arrays(value: Any) -> list[TrajectoryChange]:
    if not isinstance(value, list):
        raise ReplayCodecError("trajectoryLog must be a list")
    out: list[TrajectoryChange] = []
    for idx, raw in enumerate(value):
        if not isinstance(raw, dict):
            raise ReplayCodecError(f"trajectoryLog[{idx}] must be an object")
        out.append(
            TrajectoryChange(
                position=vec3_from_obj(raw.get("position"), what=f"trajectoryLog[{idx}].position"),
                direction=vec3_from_obj(raw.get("direction"), what=f"trajectoryLog[{idx}].direction"),
            )
        )
    return out


def replay_to_obj(replay: ReplayData) -> dict[str, Any]:
    return {
        "id": str(replay.id),
        "playerId": str(replay.player_id),
        "playerName": str(replay.player_name),
        "timestamp": int(replay.timestamp),
        "startParams": start_params_to_obj(replay.start_params),
        "finalScore": int(replay.final_score),
        "deathPosition": vec3_to_obj(replay.death_position),
        "trajectoryLog": trajectory_to_arrays(replay.trajectory_log),
    }


def replay_from_obj(obj: dict[str, Any]) -> ReplayData:
    for key in ("id", "playerId"):
        if not isinstance(obj.get(key), str) or not obj.get(key):
            raise ReplayCodecError(f"replay {key} must be a non-empty string")
    if "deathPosition" not in obj:
        raise ReplayCodecError("replay missing deathPosition")
    if "trajectoryLog" not in obj:
        raise ReplayCodecError("replay missing trajectoryLog")
    return ReplayData(
        id=str(obj["id"]),
        player_id=str(obj["playerId"]),
        player_name=str(obj.get("playerName") or ""),
        timestamp=_require_int(obj, "timestamp", what="replay"),
        start_params=start_params_from_obj(obj.get("startParams")),
        final_score=_require_int(obj, "finalScore", what="replay"),
        death_position=vec3_from_obj(obj["deathPosition"], what="deathPosition"),
        trajectory_log=trajectory_from_arrays(obj["trajectoryLog"]),
    )


def dump_replay(replay: ReplayData) -> bytes:
    obj = replay_to_obj(replay)
    return json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")


def load_replay(data: bytes) -> ReplayData:
    try:
        obj = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ReplayCodecError(f"replay is not valid JSON: {exc}") from exc
    if not isinstance(obj, dict):
        raise ReplayCodecError("replay root must be an object")
    return replay_from_obj(obj)


def dump_replay_file(path: Path, replay: ReplayData) -> None:
    path = Path(path)
    path.write_bytes(dump_replay(replay))


def load_replay_file(path: Path) -> ReplayData:
    path = Path(path)
    return load_replay(path.read_bytes())
