"""Room operations behind the `room:join`, `game:over` and leaderboard messages."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
import datetime as dt
import random
from threading import Lock
import time
from typing import Protocol

from ..replay.types import ReplayData, ReplayDraft
from ..server_log import server_log, server_log_critical
from .config import RoomConfig
from .eviction import decide_admission, first_free_spawn_index, record_attempt, trim_to_capacity
from .matchmaker import RoomMatchmaker
from .store import RoomStore, room_key, top_by_score
from .types import AdmissionResult, LeaderboardEntry, PhantomInfo, RoomData, RoomSummaryRow
from .validator import validate_replay

MSG_SAVED = "Replay saved! You are now a phantom in this room."
MSG_REPLACED_SPAWN = "Replay saved! You took over your spawn point from a weaker phantom."
MSG_LOST_SPAWN = "Your score did not beat the phantom at your spawn point."
MSG_LOST_CAPACITY = "Your score was not high enough to become a phantom."


class PlayerDirectory(Protocol):
    """What the room service needs from the user/auth collaborator."""

    def get_elo(self, player_id: str) -> float | None: ...

    def peek_user(self, token: str) -> object | None: ...

    def record_game(self, token: str, *, score: int, seed: int, replay_id: str | None) -> object | None: ...

    def top_high_scores(self, limit: int = 10) -> list[tuple[str, object]]: ...


class SeedLocks:
    """One mutex per room seed; rooms never wait on each other."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[str, Lock] = {}

    @contextmanager
    def hold(self, seed: int | str) -> Iterator[None]:
        key = room_key(seed)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
        with lock:
            yield


def _now_ms() -> int:
    return int(time.time() * 1000)


def default_player_name(player_id: str) -> str:
    return f"Player_{player_id[:4]}"


class RoomService:
    def __init__(
        self,
        store: RoomStore,
        *,
        config: RoomConfig | None = None,
        users: PlayerDirectory | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self._config = config if config is not None else RoomConfig()
        self._users = users
        self._clock = clock
        self._locks = SeedLocks()
        self._matchmaker = RoomMatchmaker(
            store,
            self._config,
            rng=rng,
            ratings=users,
        )

    @property
    def store(self) -> RoomStore:
        return self._store

    @property
    def config(self) -> RoomConfig:
        return self._config

    @property
    def matchmaker(self) -> RoomMatchmaker:
        return self._matchmaker

    # -- repair / spawn assignment ---------------------------------------

    def _repair_locked(self, seed: str) -> int:
        meta = self._store.get_room_meta(seed)
        removed = trim_to_capacity(meta, max_phantoms=self._config.max_phantoms)
        if not removed:
            return 0
        self._store.save_room_meta(seed, meta)
        for phantom in removed:
            self._store.delete_replay(seed, phantom.replay_id)
            server_log("room_repair_evict", seed=seed, replay_id=phantom.replay_id, score=phantom.score)
        return len(removed)

    def repair_room(self, seed: int | str) -> int:
        """Bring a legacy room back within capacity; returns phantoms evicted."""
        key = room_key(seed)
        with self._locks.hold(key):
            return self._repair_locked(key)

    def repair_all_rooms(self) -> dict[str, int]:
        return {seed: self.repair_room(seed) for seed in self._store.get_all_room_seeds()}

    def _assign_spawn_locked(self, seed: str, player_id: str | None) -> int:
        if self._config.repair_on_join:
            self._repair_locked(seed)
        meta = self._store.get_room_meta(seed)
        index = first_free_spawn_index(meta, max_spawn_points=self._config.max_spawn_points)
        if index is None:
            server_log_critical(
                "spawn_slot_exhausted",
                seed=seed,
                player_id=player_id or "",
                active=len(meta.active_phantoms),
                max_spawn_points=self._config.max_spawn_points,
            )
            return 0
        return index

    def assign_spawn_index(self, seed: int | str, player_id: str | None = None) -> int:
        key = room_key(seed)
        with self._locks.hold(key):
            return self._assign_spawn_locked(key, player_id)

    # -- join -------------------------------------------------------------

    def get_room_data(self, seed: int, player_id: str | None = None) -> RoomData:
        key = room_key(seed)
        with self._locks.hold(key):
            spawn_index = self._assign_spawn_locked(key, player_id)
            phantoms = self._store.get_active_replays(key, max_phantoms=self._config.max_phantoms)
        server_log("room_data", seed=key, phantoms=len(phantoms), spawn_index=spawn_index)
        return RoomData(seed=int(seed), phantoms=phantoms, player_spawn_index=spawn_index)

    def find_room_for_player(self, player_id: str) -> RoomData:
        match = self._matchmaker.find_room(player_id)
        server_log(
            "matchmake",
            player_id=player_id[:8],
            policy=self._config.matchmaking,
            kind=match.kind,
            seed=match.seed,
            candidates=match.candidates,
        )
        if match.kind == "minted":
            return RoomData(seed=int(match.seed), phantoms=[], player_spawn_index=0)
        return self.get_room_data(match.seed, player_id)

    def join_room(self, seed: int | None, player_id: str) -> RoomData:
        if seed is None:
            return self.find_room_for_player(player_id)
        return self.get_room_data(int(seed), player_id)

    # -- game over ----------------------------------------------------------

    def _new_replay_id(self, seed: str, player_id: str, timestamp: int) -> str:
        base = f"replay_{_id_fragment(player_id)[:8]}_{int(timestamp)}"
        replay_id = base
        suffix = 1
        while self._store.has_replay(seed, replay_id):
            replay_id = f"{base}_{suffix}"
            suffix += 1
        return replay_id

    def _player_name(self, player_id: str, draft: ReplayDraft) -> str:
        if draft.player_name:
            return str(draft.player_name)
        if self._users is not None:
            user = self._users.peek_user(player_id)
            username = getattr(user, "username", None)
            if username:
                return str(username)
        return default_player_name(player_id)

    def _player_elo(self, player_id: str) -> float | None:
        if self._users is None:
            return None
        return self._users.get_elo(player_id)

    def check_draft(self, draft: ReplayDraft | None) -> str | None:
        """Structural checks on a submission; returns a rejection message or None."""
        if draft is None or draft.trajectory_log is None:
            return "Invalid replay data"
        params = draft.start_params
        if params is None:
            return "Invalid start params"
        if not 0 <= int(params.spawn_index) < int(self._config.max_spawn_points):
            return "Invalid start params"
        if draft.final_score is None or int(draft.final_score) < 0:
            return "Invalid score"
        if draft.death_position is None:
            return "Missing death position"
        return None

    def add_replay_to_room(self, seed: int | str, replay: ReplayData) -> AdmissionResult:
        key = room_key(seed)
        with self._locks.hold(key):
            meta = self._store.get_room_meta(key)
            record_attempt(meta, replay.player_id)
            candidate = PhantomInfo(
                replay_id=replay.id,
                score=int(replay.final_score),
                spawn_index=int(replay.start_params.spawn_index),
                player_id=replay.player_id,
                elo=self._player_elo(replay.player_id),
            )
            decision = decide_admission(meta, candidate, max_phantoms=self._config.max_phantoms)
            if decision.admitted:
                self._store.save_replay(key, replay)
            self._store.save_room_meta(key, meta)
            if decision.evicted is not None:
                self._store.delete_replay(key, decision.evicted.replay_id)

        evicted_id = decision.evicted.replay_id if decision.evicted is not None else None
        server_log(
            "room_admission",
            seed=key,
            replay_id=replay.id,
            score=replay.final_score,
            spawn_index=candidate.spawn_index,
            code=decision.code,
            evicted=evicted_id or "",
            incumbent_score="" if decision.incumbent_score is None else decision.incumbent_score,
            phantoms=len(meta.active_phantoms),
        )
        if decision.code == "replaced_spawn":
            message = MSG_REPLACED_SPAWN
        elif decision.admitted:
            message = MSG_SAVED
        elif decision.code == "lost_spawn":
            message = MSG_LOST_SPAWN
        else:
            message = MSG_LOST_CAPACITY
        return AdmissionResult(
            admitted=decision.admitted,
            code=decision.code,
            message=message,
            replay_id=replay.id if decision.admitted else None,
            evicted_replay_id=evicted_id,
        )

    def process_game_over(self, player_id: str, seed: int, draft: ReplayDraft | None) -> AdmissionResult:
        problem = self.check_draft(draft)
        if problem is not None:
            server_log("game_over_invalid", seed=seed, player_id=player_id[:8], reason=problem)
            return AdmissionResult(admitted=False, code="invalid", message=problem)
        assert draft is not None
        assert draft.start_params is not None
        assert draft.final_score is not None
        assert draft.death_position is not None
        assert draft.trajectory_log is not None

        key = room_key(seed)
        timestamp = int(self._clock())
        replay = ReplayData(
            id=self._new_replay_id(key, player_id, timestamp),
            player_id=player_id,
            player_name=self._player_name(player_id, draft),
            timestamp=timestamp,
            start_params=draft.start_params,
            final_score=int(draft.final_score),
            death_position=draft.death_position,
            trajectory_log=list(draft.trajectory_log),
        )

        verdict = validate_replay(replay, score_per_step_cap=self._config.score_per_step_cap)
        if not verdict.ok:
            server_log(
                "game_over_rejected",
                seed=key,
                player_id=player_id[:8],
                score=replay.final_score,
                code=verdict.code,
            )
            return AdmissionResult(admitted=False, code="rejected", message=f"Replay rejected: {verdict.reason}")

        result = self.add_replay_to_room(key, replay)
        if self._users is not None:
            self._users.record_game(
                player_id,
                score=replay.final_score,
                seed=int(key),
                replay_id=result.replay_id,
            )
        return result

    # -- reporting ----------------------------------------------------------

    def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        if self._config.leaderboard_source == "users" and self._users is not None:
            return self._leaderboard_from_users(limit)
        return self._leaderboard_from_phantoms(limit)

    def _leaderboard_from_phantoms(self, limit: int) -> list[LeaderboardEntry]:
        ranked: list[tuple[PhantomInfo, str]] = []
        for seed in self._store.get_all_room_seeds():
            meta = self._store.get_room_meta(seed)
            ranked.extend((phantom, seed) for phantom in meta.active_phantoms)
        ranked.sort(key=lambda item: -int(item[0].score))
        entries: list[LeaderboardEntry] = []
        for phantom, seed in ranked:
            if len(entries) >= int(limit):
                break
            replay = self._store.get_replay(seed, phantom.replay_id)
            if replay is None:
                continue
            entries.append(
                LeaderboardEntry(
                    player_name=replay.player_name,
                    score=int(replay.final_score),
                    seed=int(seed),
                    date=int(replay.timestamp),
                    replay_id=replay.id,
                )
            )
        return entries

    def _leaderboard_from_users(self, limit: int) -> list[LeaderboardEntry]:
        assert self._users is not None
        entries: list[LeaderboardEntry] = []
        for _token, user in self._users.top_high_scores(limit):
            date_text = getattr(user, "high_score_date", None)
            entries.append(
                LeaderboardEntry(
                    player_name=str(getattr(user, "username", "")),
                    score=int(getattr(user, "high_score", 0)),
                    seed=int(getattr(user, "high_score_seed", None) or 0),
                    date=_iso_to_ms(date_text),
                    replay_id=str(getattr(user, "high_score_replay_id", None) or ""),
                )
            )
        return entries

    def rooms_summary(self) -> list[RoomSummaryRow]:
        rows: list[RoomSummaryRow] = []
        for seed in self._store.get_all_room_seeds():
            meta = self._store.get_room_meta(seed)
            best = top_by_score(meta.active_phantoms, 1)
            rows.append(
                RoomSummaryRow(
                    seed=seed,
                    phantom_count=len(meta.active_phantoms),
                    total_games_played=int(meta.total_games_played),
                    best_score=int(best[0].score) if best else None,
                )
            )
        return rows


def _id_fragment(player_id: str) -> str:
    """Player id reduced to characters that are safe inside a replay id."""
    return "".join(ch for ch in str(player_id) if ch.isalnum() or ch in "-_") or "anon"


def _iso_to_ms(text: object) -> int:
    if not isinstance(text, str) or not text:
        return 0
    try:
        return int(dt.datetime.fromisoformat(text).timestamp() * 1000)
    except ValueError:
        return 0
