"""Per-user records: generated names, ELO ratings and personal bests.

One JSON file per user token. The room subsystem reads names and ratings
from here and reports finished games back; clients may edit their name and
settings.
"""

from __future__ import annotations

from collections.abc import Mapping
import datetime as dt
import random
import re
import time
import uuid
from pathlib import Path
from threading import Lock

import msgspec

from .paths import atomic_write_bytes
from .rooms.config import DEFAULT_ELO

_UNSAFE_TOKEN_CHARS = re.compile(r"[^a-zA-Z0-9-]")

_NAME_ADJECTIVES = (
    "Swift",
    "Mighty",
    "Stellar",
    "Cosmic",
    "Thunder",
    "Blazing",
    "Shadow",
    "Crystal",
    "Neon",
    "Cyber",
    "Golden",
    "Silver",
    "Phantom",
    "Turbo",
    "Ultra",
)
_NAME_NOUNS = (
    "Snake",
    "Viper",
    "Python",
    "Cobra",
    "Serpent",
    "Dragon",
    "Hunter",
    "Striker",
    "Racer",
    "Champion",
    "Phoenix",
    "Warrior",
    "Ninja",
    "Pilot",
    "Runner",
)

_PROTECTED_FIELDS = frozenset({"created_at"})


class UserSettings(msgspec.Struct, rename="camel"):
    music_volume: float = 0.5
    sfx_volume: float = 0.7


class UserData(msgspec.Struct, rename="camel"):
    username: str
    created_at: str
    last_seen: str
    high_score: int = 0
    high_score_seed: int | None = None
    high_score_replay_id: str | None = None
    high_score_date: str | None = None
    games_played: int = 0
    total_score: int = 0
    elo: float | None = None
    settings: UserSettings = msgspec.field(default_factory=UserSettings)


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")


def _merge_settings(current: UserSettings, changes: Mapping[str, object]) -> UserSettings:
    unknown = sorted(set(changes) - set(UserSettings.__struct_fields__))
    if unknown:
        raise ValueError(f"unknown user setting: {unknown[0]}")
    return msgspec.structs.replace(current, **changes)


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value <= 0:
        return "0"
    out: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


class UserStore:
    def __init__(self, root: Path, *, rng: random.Random | None = None) -> None:
        self._root = Path(root)
        self._rng = rng if rng is not None else random.Random()
        self._lock = Lock()

    @property
    def root(self) -> Path:
        return self._root

    def generate_token(self) -> str:
        return f"{uuid.uuid4()}-{_base36(int(time.time() * 1000))}"

    def generate_username(self) -> str:
        adjective = self._rng.choice(_NAME_ADJECTIVES)
        noun = self._rng.choice(_NAME_NOUNS)
        return f"{adjective}{noun}{self._rng.randrange(999)}"

    def user_path(self, token: str) -> Path:
        safe = _UNSAFE_TOKEN_CHARS.sub("", str(token))
        if not safe:
            raise ValueError(f"unusable user token: {token!r}")
        return self._root / f"{safe}.json"

    def _read(self, token: str) -> UserData | None:
        try:
            raw = self.user_path(token).read_bytes()
        except FileNotFoundError:
            return None
        user = msgspec.json.decode(raw, type=UserData)
        if user.elo is None:
            # Accounts created before ratings start from their best score.
            user.elo = float(user.high_score or DEFAULT_ELO)
        return user

    def _write(self, token: str, user: UserData) -> None:
        atomic_write_bytes(self.user_path(token), msgspec.json.encode(user))

    def create_user(self, token: str) -> UserData:
        now = _now_iso()
        user = UserData(
            username=self.generate_username(),
            created_at=now,
            last_seen=now,
            elo=float(DEFAULT_ELO),
        )
        with self._lock:
            self._write(token, user)
        return user

    def peek_user(self, token: str) -> UserData | None:
        """Read a user without touching `last_seen`."""
        with self._lock:
            return self._read(token)

    def get_user(self, token: str) -> UserData | None:
        with self._lock:
            user = self._read(token)
            if user is None:
                return None
            user.last_seen = _now_iso()
            self._write(token, user)
            return user

    def update_user(self, token: str, **changes: object) -> UserData | None:
        with self._lock:
            user = self._read(token)
            if user is None:
                return None
            for name, value in changes.items():
                if name in _PROTECTED_FIELDS:
                    continue
                if name not in UserData.__struct_fields__:
                    raise ValueError(f"unknown user field: {name}")
                if name == "settings" and isinstance(value, Mapping):
                    value = _merge_settings(user.settings, value)
                setattr(user, name, value)
            user.last_seen = _now_iso()
            self._write(token, user)
            return user

    def record_game(self, token: str, *, score: int, seed: int, replay_id: str | None) -> UserData | None:
        with self._lock:
            user = self._read(token)
            if user is None:
                return None
            user.games_played += 1
            user.total_score += int(score)
            if int(score) > int(user.high_score):
                user.high_score = int(score)
                user.high_score_seed = int(seed)
                user.high_score_replay_id = replay_id
                user.high_score_date = _now_iso()
            user.last_seen = _now_iso()
            self._write(token, user)
            return user

    def get_elo(self, player_id: str) -> float | None:
        try:
            user = self.peek_user(player_id)
        except ValueError:
            return None
        if user is None:
            return None
        return user.elo

    def all_users(self) -> list[tuple[str, UserData]]:
        if not self._root.is_dir():
            return []
        out: list[tuple[str, UserData]] = []
        for path in sorted(self._root.glob("*.json")):
            user = self.peek_user(path.stem)
            if user is not None:
                out.append((path.stem, user))
        return out

    def top_high_scores(self, limit: int = 10) -> list[tuple[str, UserData]]:
        ranked = [(token, user) for token, user in self.all_users() if user.high_score > 0]
        ranked.sort(key=lambda item: -int(item[1].high_score))
        return ranked[: max(0, int(limit))]
