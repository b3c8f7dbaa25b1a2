from __future__ import annotations

from dataclasses import dataclass
import random
from typing import Literal, Protocol, TypeAlias

from .config import RoomConfig
from .store import RoomStore
from .types import RoomMeta

MatchKind: TypeAlias = Literal["existing", "minted"]

_MINT_ATTEMPTS = 32


class EloLookup(Protocol):
    def get_elo(self, player_id: str) -> float | None: ...


@dataclass(frozen=True, slots=True)
class MatchResult:
    seed: int
    kind: MatchKind
    candidates: int = 0


def average_phantom_elo(meta: RoomMeta, *, default_elo: float) -> float:
    ratings = [float(phantom.elo) for phantom in meta.active_phantoms if phantom.elo is not None]
    if not ratings:
        return float(default_elo)
    return sum(ratings) / len(ratings)


class RoomMatchmaker:
    """Pick a room seed for a joining player.

    `least_played` sends the player to the least-played room where they have
    no active phantom. `elo` sends them to the room whose phantoms' average
    rating is closest to theirs. Both mint a fresh seed when nothing fits.
    """

    def __init__(
        self,
        store: RoomStore,
        config: RoomConfig,
        *,
        rng: random.Random | None = None,
        ratings: EloLookup | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._rng = rng if rng is not None else random.Random()
        self._ratings = ratings

    def mint_seed(self, existing: set[str] | None = None) -> int:
        if existing is None:
            existing = set(self._store.get_all_room_seeds())
        seed = self._rng.randrange(int(self._config.seed_space))
        for _ in range(_MINT_ATTEMPTS):
            if str(seed) not in existing:
                break
            seed = self._rng.randrange(int(self._config.seed_space))
        return int(seed)

    def find_room(self, player_id: str) -> MatchResult:
        if self._config.matchmaking == "elo":
            return self._find_by_elo(player_id)
        return self._find_least_played(player_id)

    def _find_least_played(self, player_id: str) -> MatchResult:
        seeds = self._store.get_all_room_seeds()
        candidates: list[str] = []
        min_games: int | None = None
        for seed in seeds:
            meta = self._store.get_room_meta(seed)
            if self._store.is_player_active_in_meta(meta, player_id):
                continue
            games = int(meta.total_games_played)
            if min_games is None or games < min_games:
                min_games = games
                candidates = [seed]
            elif games == min_games:
                candidates.append(seed)
        if candidates:
            chosen = candidates[self._rng.randrange(len(candidates))]
            return MatchResult(seed=int(chosen), kind="existing", candidates=len(candidates))
        return MatchResult(seed=self.mint_seed(set(seeds)), kind="minted")

    def _player_elo(self, player_id: str) -> float:
        if self._ratings is not None:
            elo = self._ratings.get_elo(player_id)
            if elo is not None:
                return float(elo)
        return float(self._config.default_elo)

    def _find_by_elo(self, player_id: str) -> MatchResult:
        player_elo = self._player_elo(player_id)
        seeds = self._store.get_all_room_seeds()
        best_seed: str | None = None
        best_gap: float | None = None
        for seed in seeds:
            meta = self._store.get_room_meta(seed)
            gap = abs(average_phantom_elo(meta, default_elo=self._config.default_elo) - player_elo)
            if best_gap is None or gap < best_gap:
                best_gap = gap
                best_seed = seed
        if best_seed is not None and best_gap is not None and best_gap <= float(self._config.elo_proximity_threshold):
            return MatchResult(seed=int(best_seed), kind="existing", candidates=len(seeds))
        return MatchResult(seed=self.mint_seed(set(seeds)), kind="minted")
