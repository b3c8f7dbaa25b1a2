from __future__ import annotations

import json
from pathlib import Path

import pytest

from snake3d.geom import Vec3
from snake3d.replay import ReplayData, StartParams
from snake3d.rooms import PhantomInfo, RoomMeta, RoomStore, RoomStoreError, room_key


def _replay(replay_id: str, *, player_id: str = "player-1", score: int = 5) -> ReplayData:
    return ReplayData(
        id=replay_id,
        player_id=player_id,
        player_name="Tester",
        timestamp=1,
        start_params=StartParams(seed=42, spawn_index=0),
        final_score=score,
        death_position=Vec3(5.0, 5.0, 5.0),
        trajectory_log=[],
    )


def test_room_key_normalizes_seeds() -> None:
    assert room_key(42) == "42"
    assert room_key("007") == "7"
    assert room_key(" 12 ") == "12"
    with pytest.raises(ValueError):
        room_key("../etc")
    with pytest.raises(ValueError):
        room_key(True)


def test_missing_room_reads_as_empty_meta(tmp_path: Path) -> None:
    store = RoomStore(tmp_path)

    meta = store.get_room_meta(42)

    assert meta == RoomMeta(seed="42")
    assert store.get_all_room_seeds() == []
    assert store.get_active_replays(42, max_phantoms=3) == []


def test_meta_roundtrip_uses_disk_layout(tmp_path: Path) -> None:
    store = RoomStore(tmp_path)
    meta = RoomMeta(
        seed="42",
        total_games_played=3,
        active_phantoms=[PhantomInfo(replay_id="r1", score=10, spawn_index=1, player_id="p1", elo=1200.0)],
        players_history=["p1"],
    )

    store.save_room_meta(42, meta)

    raw = json.loads((tmp_path / "seed_42" / "meta.json").read_text(encoding="utf-8"))
    assert raw == {
        "seed": "42",
        "total_games_played": 3,
        "active_phantoms": [{"replayId": "r1", "score": 10, "spawnIndex": 1, "playerId": "p1", "elo": 1200.0}],
        "players_history": ["p1"],
    }
    assert store.get_room_meta("42") == meta
    assert store.get_all_room_seeds() == ["42"]


def test_legacy_meta_without_history_migrates(tmp_path: Path) -> None:
    path = tmp_path / "seed_9" / "meta.json"
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps({"seed": "9", "total_games_played": 2, "active_phantoms": [{"replayId": "old", "score": 4, "spawnIndex": 0}]}),
        encoding="utf-8",
    )

    meta = RoomStore(tmp_path).get_room_meta(9)

    assert meta.players_history == []
    assert meta.active_phantoms[0].player_id is None


def test_corrupt_meta_raises_store_error(tmp_path: Path) -> None:
    path = tmp_path / "seed_5" / "meta.json"
    path.parent.mkdir(parents=True)
    path.write_text("{broken", encoding="utf-8")

    with pytest.raises(RoomStoreError, match="not valid JSON"):
        RoomStore(tmp_path).get_room_meta(5)


def test_replay_blob_lifecycle(tmp_path: Path) -> None:
    store = RoomStore(tmp_path)
    replay = _replay("replay_abc_1")

    store.save_replay(42, replay)
    assert store.has_replay(42, "replay_abc_1") is True
    assert store.get_replay(42, "replay_abc_1") == replay
    assert (tmp_path / "seed_42" / "replays" / "replay_abc_1.json").is_file()

    store.delete_replay(42, "replay_abc_1")
    store.delete_replay(42, "replay_abc_1")
    assert store.get_replay(42, "replay_abc_1") is None


def test_unsafe_replay_id_is_refused(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="unsafe replay id"):
        RoomStore(tmp_path).replay_path(42, "../meta")


def test_active_replays_skip_missing_blobs_and_cap_to_top_scores(tmp_path: Path) -> None:
    store = RoomStore(tmp_path)
    phantoms = []
    for idx, score in enumerate([30, 10, 50, 40]):
        replay_id = f"r{idx}"
        phantoms.append(PhantomInfo(replay_id=replay_id, score=score, spawn_index=idx))
        if replay_id != "r3":
            store.save_replay(42, _replay(replay_id, score=score))
    store.save_room_meta(42, RoomMeta(seed="42", active_phantoms=phantoms))

    active = store.get_active_replays(42, max_phantoms=3)

    # Top three are r2 (50), r3 (40, blob missing) and r0 (30).
    assert [replay.id for replay in active] == ["r2", "r0"]
    assert len(store.get_room_meta(42).active_phantoms) == 4


def test_player_membership_checks(tmp_path: Path) -> None:
    store = RoomStore(tmp_path)
    store.save_replay(42, _replay("legacy", player_id="old-player"))
    store.save_room_meta(
        42,
        RoomMeta(
            seed="42",
            active_phantoms=[
                PhantomInfo(replay_id="fresh", score=5, spawn_index=0, player_id="new-player"),
                PhantomInfo(replay_id="legacy", score=5, spawn_index=1),
            ],
            players_history=["new-player", "old-player", "gone-player"],
        ),
    )

    assert store.is_player_active_in_room(42, "new-player") is True
    assert store.is_player_active_in_room(42, "old-player") is True
    assert store.is_player_active_in_room(42, "gone-player") is False
    assert store.has_player_played_in_room(42, "gone-player") is True
    assert store.has_player_played_in_room(42, "stranger") is False
