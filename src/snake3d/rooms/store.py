"""File-backed storage for room metadata and replay blobs.

Layout under the store root:

    seed_<seed>/meta.json            room metadata
    seed_<seed>/replays/<id>.json    one replay per admitted run
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from ..paths import atomic_write_bytes
from ..replay.codec import ReplayCodecError, dump_replay, load_replay
from ..replay.types import ReplayData
from .types import PhantomInfo, RoomMeta

META_NAME = "meta.json"
REPLAYS_DIR_NAME = "replays"
ROOM_DIR_PREFIX = "seed_"

_SEED_RE = re.compile(r"^-?\d+$")
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class RoomStoreError(RuntimeError):
    pass


def room_key(seed: int | str) -> str:
    """Normalize a room seed into its storage key."""
    if isinstance(seed, bool):
        raise ValueError(f"invalid room seed: {seed!r}")
    if isinstance(seed, int):
        return str(seed)
    text = str(seed).strip()
    if not _SEED_RE.match(text):
        raise ValueError(f"invalid room seed: {seed!r}")
    return str(int(text))


def _safe_replay_id(replay_id: str) -> str:
    text = str(replay_id)
    if not _SAFE_ID_RE.match(text):
        raise ValueError(f"unsafe replay id: {replay_id!r}")
    return text


def phantom_to_obj(phantom: PhantomInfo) -> dict[str, Any]:
    out: dict[str, Any] = {
        "replayId": str(phantom.replay_id),
        "score": int(phantom.score),
        "spawnIndex": int(phantom.spawn_index),
    }
    if phantom.player_id is not None:
        out["playerId"] = str(phantom.player_id)
    if phantom.elo is not None:
        out["elo"] = float(phantom.elo)
    return out


def phantom_from_obj(obj: Any) -> PhantomInfo:
    if not isinstance(obj, dict):
        raise RoomStoreError(f"active phantom must be an object, got {obj!r}")
    replay_id = obj.get("replayId")
    if not isinstance(replay_id, str) or not replay_id:
        raise RoomStoreError(f"active phantom missing replayId: {obj!r}")
    try:
        score = int(obj.get("score", 0))
        spawn_index = int(obj.get("spawnIndex", 0))
        elo_raw = obj.get("elo")
        elo = None if elo_raw is None else float(elo_raw)
    except (TypeError, ValueError) as exc:
        raise RoomStoreError(f"active phantom has malformed fields: {obj!r}") from exc
    player_id = obj.get("playerId")
    return PhantomInfo(
        replay_id=replay_id,
        score=score,
        spawn_index=spawn_index,
        player_id=None if player_id is None else str(player_id),
        elo=elo,
    )


def meta_to_obj(meta: RoomMeta) -> dict[str, Any]:
    return {
        "seed": str(meta.seed),
        "total_games_played": int(meta.total_games_played),
        "active_phantoms": [phantom_to_obj(phantom) for phantom in meta.active_phantoms],
        "players_history": [str(player) for player in meta.players_history],
    }


def meta_from_obj(obj: Any, *, seed: str) -> RoomMeta:
    if not isinstance(obj, dict):
        raise RoomStoreError(f"room {seed} meta root must be an object")
    phantoms_in = obj.get("active_phantoms") or []
    if not isinstance(phantoms_in, list):
        raise RoomStoreError(f"room {seed} active_phantoms must be a list")
    # Rooms written before the "one attempt" rule carry no history.
    history_in = obj.get("players_history") or []
    if not isinstance(history_in, list):
        raise RoomStoreError(f"room {seed} players_history must be a list")
    try:
        total = int(obj.get("total_games_played", 0))
    except (TypeError, ValueError) as exc:
        raise RoomStoreError(f"room {seed} total_games_played is not a number") from exc
    return RoomMeta(
        seed=str(obj.get("seed") or seed),
        total_games_played=total,
        active_phantoms=[phantom_from_obj(raw) for raw in phantoms_in],
        players_history=[str(player) for player in history_in],
    )


def top_by_score(phantoms: list[PhantomInfo], limit: int) -> list[PhantomInfo]:
    # Stable sort keeps insertion order among equal scores.
    return sorted(phantoms, key=lambda phantom: -int(phantom.score))[: max(0, int(limit))]


class RoomStore:
    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def room_dir(self, seed: int | str) -> Path:
        return self._root / f"{ROOM_DIR_PREFIX}{room_key(seed)}"

    def meta_path(self, seed: int | str) -> Path:
        return self.room_dir(seed) / META_NAME

    def replays_dir(self, seed: int | str) -> Path:
        return self.room_dir(seed) / REPLAYS_DIR_NAME

    def replay_path(self, seed: int | str, replay_id: str) -> Path:
        return self.replays_dir(seed) / f"{_safe_replay_id(replay_id)}.json"

    def _ensure_room_dir(self, seed: int | str) -> None:
        self.replays_dir(seed).mkdir(parents=True, exist_ok=True)

    def get_room_meta(self, seed: int | str) -> RoomMeta:
        key = room_key(seed)
        path = self.meta_path(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return RoomMeta(seed=key)
        try:
            obj = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise RoomStoreError(f"room {key} meta is not valid JSON: {exc}") from exc
        return meta_from_obj(obj, seed=key)

    def save_room_meta(self, seed: int | str, meta: RoomMeta) -> None:
        key = room_key(seed)
        self._ensure_room_dir(key)
        text = json.dumps(meta_to_obj(meta), indent=2)
        atomic_write_bytes(self.meta_path(key), text.encode("utf-8"))

    def get_replay(self, seed: int | str, replay_id: str) -> ReplayData | None:
        path = self.replay_path(seed, replay_id)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        try:
            return load_replay(raw)
        except ReplayCodecError as exc:
            raise RoomStoreError(f"replay {replay_id} in room {room_key(seed)} is corrupt: {exc}") from exc

    def save_replay(self, seed: int | str, replay: ReplayData) -> None:
        self._ensure_room_dir(seed)
        atomic_write_bytes(self.replay_path(seed, replay.id), dump_replay(replay))

    def delete_replay(self, seed: int | str, replay_id: str) -> None:
        self.replay_path(seed, replay_id).unlink(missing_ok=True)

    def has_replay(self, seed: int | str, replay_id: str) -> bool:
        return self.replay_path(seed, replay_id).is_file()

    def get_active_replays(self, seed: int | str, *, max_phantoms: int) -> list[ReplayData]:
        """Resolve the active phantoms of a room to their replays.

        Over-capacity rooms (written under an older, larger limit) are reported
        as their top `max_phantoms` by score; storage is left untouched.
        """

        meta = self.get_room_meta(seed)
        phantoms = list(meta.active_phantoms)
        if len(phantoms) > int(max_phantoms):
            phantoms = top_by_score(phantoms, int(max_phantoms))
        replays: list[ReplayData] = []
        for phantom in phantoms:
            replay = self.get_replay(seed, phantom.replay_id)
            if replay is not None:
                replays.append(replay)
        return replays

    def get_all_room_seeds(self) -> list[str]:
        if not self._root.is_dir():
            return []
        seeds: list[str] = []
        for entry in sorted(self._root.iterdir()):
            if not entry.is_dir() or not entry.name.startswith(ROOM_DIR_PREFIX):
                continue
            seed = entry.name[len(ROOM_DIR_PREFIX) :]
            if _SEED_RE.match(seed):
                seeds.append(seed)
        return seeds

    def has_player_played_in_room(self, seed: int | str, player_id: str) -> bool:
        return str(player_id) in self.get_room_meta(seed).players_history

    def is_player_active_in_room(self, seed: int | str, player_id: str) -> bool:
        return self.is_player_active_in_meta(self.get_room_meta(seed), player_id)

    def is_player_active_in_meta(self, meta: RoomMeta, player_id: str) -> bool:
        for phantom in meta.active_phantoms:
            if phantom.player_id is not None:
                if phantom.player_id == player_id:
                    return True
                continue
            # Older records only carry the id inside the replay itself.
            replay = self.get_replay(meta.seed, phantom.replay_id)
            if replay is not None and replay.player_id == player_id:
                return True
        return False
