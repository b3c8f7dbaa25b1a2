from __future__ import annotations

import json
import random
from pathlib import Path

import pytest

from snake3d.users import UserStore


def test_create_and_get_user(tmp_path: Path) -> None:
    users = UserStore(tmp_path, rng=random.Random(4))
    token = users.generate_token()

    created = users.create_user(token)
    loaded = users.get_user(token)

    assert loaded is not None
    assert loaded.username == created.username
    assert loaded.elo == 1000.0
    assert loaded.games_played == 0
    assert (tmp_path / f"{token}.json").is_file()
    assert users.get_user("missing-token") is None


def test_generated_usernames_combine_adjective_noun_and_number(tmp_path: Path) -> None:
    users = UserStore(tmp_path, rng=random.Random(9))

    name = users.generate_username()

    assert name[0].isupper()
    assert name[-1].isdigit()


def test_user_files_use_camel_case_and_sanitized_tokens(tmp_path: Path) -> None:
    users = UserStore(tmp_path)
    users.create_user("abc/../def")

    path = tmp_path / "abcdef.json"
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert "createdAt" in raw
    assert raw["highScore"] == 0
    with pytest.raises(ValueError):
        users.user_path("///")


def test_missing_elo_migrates_from_high_score(tmp_path: Path) -> None:
    path = tmp_path / "legacy.json"
    path.write_text(
        json.dumps({"username": "Old", "createdAt": "2024-01-01T00:00:00", "lastSeen": "2024-01-01T00:00:00", "highScore": 640}),
        encoding="utf-8",
    )

    users = UserStore(tmp_path)

    assert users.get_elo("legacy") == 640.0
    assert users.get_elo("nobody") is None


def test_update_user_protects_created_at_and_rejects_unknown_fields(tmp_path: Path) -> None:
    users = UserStore(tmp_path)
    created = users.create_user("tok")

    updated = users.update_user("tok", username="Renamed", created_at="1999-01-01")

    assert updated is not None
    assert updated.username == "Renamed"
    assert updated.created_at == created.created_at
    with pytest.raises(ValueError, match="unknown user field"):
        users.update_user("tok", favourite_colour="green")


def test_record_game_tracks_high_score(tmp_path: Path) -> None:
    users = UserStore(tmp_path)
    users.create_user("tok")

    users.record_game("tok", score=120, seed=42, replay_id="replay_tok_1")
    user = users.record_game("tok", score=80, seed=7, replay_id=None)

    assert user is not None
    assert user.games_played == 2
    assert user.total_score == 200
    assert user.high_score == 120
    assert user.high_score_seed == 42
    assert user.high_score_replay_id == "replay_tok_1"
    assert user.high_score_date is not None


def test_top_high_scores_orders_and_skips_zero(tmp_path: Path) -> None:
    users = UserStore(tmp_path)
    for token, score in (("a", 10), ("b", 0), ("c", 30)):
        users.create_user(token)
        if score:
            users.record_game(token, score=score, seed=1, replay_id=None)

    assert [token for token, _user in users.top_high_scores(5)] == ["c", "a"]
    assert len(users.top_high_scores(1)) == 1


def test_update_user_merges_settings(tmp_path: Path) -> None:
    users = UserStore(tmp_path)
    users.create_user("tok")

    users.update_user("tok", settings={"music_volume": 0.2})
    updated = users.update_user("tok", settings={"sfx_volume": 0.9})

    assert updated is not None
    assert updated.settings.music_volume == 0.2
    assert updated.settings.sfx_volume == 0.9
    with pytest.raises(ValueError, match="unknown user setting"):
        users.update_user("tok", settings={"brightness": 1.0})
    assert users.update_user("missing", username="x") is None
