from __future__ import annotations

import random
import socket
from collections.abc import Iterator
from pathlib import Path

import pytest

from snake3d.net import (
    AuthLogin,
    AuthSuccess,
    ConnectionState,
    GameOver,
    GameResult,
    LeaderboardData,
    LeaderboardRequest,
    Ping,
    Pong,
    ReplaySubmission,
    RoomClient,
    RoomDataMsg,
    RoomError,
    RoomJoin,
    RoomServer,
    decode_server_message,
    encode_frame,
    read_frame,
    UserDataMsg,
    UserError,
    UserGetData,
    UserUpdate,
    UserUpdated,
    send_request,
)
from snake3d.net.protocol import StartParamsMsg, TrajectoryChangeMsg, UserSettingsPatch, Vec3Msg
from snake3d.rooms import RoomService, RoomStore, RoomStoreError
from snake3d.users import UserStore


def _submission(score: int = 15) -> ReplaySubmission:
    # Spawn 0 starts at (5, 5, 5) heading -z.
    return ReplaySubmission(
        player_name="Netplayer",
        start_params=StartParamsMsg(seed=42, spawn_index=0),
        final_score=score,
        death_position=Vec3Msg(5.0, 5.0, -15.0),
        trajectory_log=[TrajectoryChangeMsg(position=Vec3Msg(5.0, 5.0, 5.0), direction=Vec3Msg(0.0, 0.0, -1.0))],
    )


@pytest.fixture
def service(tmp_path: Path) -> RoomService:
    return RoomService(RoomStore(tmp_path / "rooms"), users=UserStore(tmp_path / "users"), rng=random.Random(0))


@pytest.fixture
def server(service: RoomService, tmp_path: Path) -> Iterator[RoomServer]:
    room_server = RoomServer(service, UserStore(tmp_path / "users"), host="127.0.0.1", port=0)
    room_server.start()
    try:
        yield room_server
    finally:
        room_server.stop()


def test_server_round_trip_over_loopback(server: RoomServer) -> None:
    host, port = server.address

    with RoomClient(host, port) as client:
        pong = client.request(Ping())
        assert isinstance(pong, Pong)
        assert pong.server_time > 0

        auth = client.request(AuthLogin(token=None))
        assert isinstance(auth, AuthSuccess)
        assert auth.is_new is True
        assert auth.user.elo == 1000.0

        room = client.request(RoomJoin(seed=42))
        assert isinstance(room, RoomDataMsg)
        assert room.seed == 42
        assert room.phantoms == []
        assert room.player_spawn_index == 0

        result = client.request(GameOver(seed=42, replay=_submission()))
        assert isinstance(result, GameResult)
        assert result.saved is True, result.message
        assert result.replay_id is not None
        assert result.replay_id.startswith("replay_" + auth.token[:8])

        board = client.request(LeaderboardRequest(limit=5))
        assert isinstance(board, LeaderboardData)
        assert [entry.replay_id for entry in board.entries] == [result.replay_id]
        assert board.entries[0].player_name == "Netplayer"

    relogin = send_request(AuthLogin(token=auth.token), host=host, port=port)
    assert isinstance(relogin, AuthSuccess)
    assert relogin.is_new is False
    assert relogin.user.games_played == 1


def test_server_answers_bad_frames_without_dropping_the_connection(server: RoomServer) -> None:
    host, port = server.address

    with socket.create_connection((host, port), timeout=5.0) as sock:
        sock.sendall(encode_frame(b'{"kind":"room:explode"}'))
        frame = read_frame(sock)
        assert frame is not None
        reply = decode_server_message(frame)
        assert isinstance(reply, RoomError)
        assert reply.message.startswith("Malformed message")

        sock.sendall(encode_frame(b'{"kind":"ping"}'))
        frame = read_frame(sock)
        assert frame is not None
        assert isinstance(decode_server_message(frame), Pong)


def test_rejected_replay_reports_reason(server: RoomServer) -> None:
    host, port = server.address

    with RoomClient(host, port) as client:
        result = client.request(GameOver(seed=42, replay=_submission(score=5000)))

    assert isinstance(result, GameResult)
    assert result.saved is False
    assert result.message.startswith("Replay rejected: score too high for distance")


def test_storage_failure_becomes_server_error(service: RoomService, monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken(*_args, **_kwargs):  # noqa: ANN002, ANN003
        raise RoomStoreError("disk on fire")

    monkeypatch.setattr(service, "process_game_over", _broken)
    monkeypatch.setattr(service, "join_room", _broken)
    room_server = RoomServer(service)
    state = ConnectionState(player_id="p1")

    result = room_server.handle_message(state, GameOver(seed=1, replay=_submission()))
    assert result == GameResult(saved=False, message="Server error")

    error = room_server.handle_message(state, RoomJoin(seed=1))
    assert isinstance(error, RoomError)
    assert error.message == "Failed to join room"


def test_auth_without_user_store_is_refused(service: RoomService) -> None:
    reply = RoomServer(service).handle_message(ConnectionState(player_id="p1"), AuthLogin(token=None))

    assert isinstance(reply, RoomError)


@pytest.mark.parametrize(
    "replay",
    [
        '{"finalScore":"100"}',
        '{"finalScore":12.5}',
        '{"deathPosition":{"x":5,"y":5}}',
        '{"trajectoryLog":"nope"}',
    ],
)
def test_badly_typed_replay_gets_a_game_result(service: RoomService, replay: str) -> None:
    room_server = RoomServer(service)
    frame = f'{{"kind":"game:over","seed":42,"replay":{replay}}}'.encode("utf-8")

    reply = room_server.handle_frame(ConnectionState(player_id="p1"), frame)

    assert isinstance(reply, GameResult)
    assert reply.saved is False
    assert reply.message.startswith("Invalid replay data: ")


def test_badly_typed_seed_gets_a_game_result(service: RoomService) -> None:
    reply = RoomServer(service).handle_frame(ConnectionState(player_id="p1"), b'{"kind":"game:over","seed":"x"}')

    assert isinstance(reply, GameResult)
    assert reply.saved is False
    assert reply.message.startswith("Invalid seed: ")


def test_user_data_and_update_over_loopback(server: RoomServer) -> None:
    host, port = server.address

    with RoomClient(host, port) as client:
        refused = client.request(UserGetData())
        assert refused == UserError(message="Not authenticated")
        assert client.request(UserUpdate(username="Nope")) == UserError(message="Not authenticated")

        auth = client.request(AuthLogin(token=None))
        assert isinstance(auth, AuthSuccess)

        data = client.request(UserGetData())
        assert isinstance(data, UserDataMsg)
        assert data.user.username == auth.user.username

        updated = client.request(UserUpdate(settings=UserSettingsPatch(music_volume=0.1)))
        assert isinstance(updated, UserUpdated)
        assert updated.user.settings.music_volume == 0.1
        assert updated.user.settings.sfx_volume == 0.7
        assert updated.user.username == auth.user.username

        renamed = client.request(UserUpdate(username="  Slitherer  "))
        assert isinstance(renamed, UserUpdated)
        assert renamed.user.username == "Slitherer"
        assert renamed.user.settings.music_volume == 0.1

        blank = client.request(UserUpdate(username="   "))
        assert isinstance(blank, UserError)
        assert blank.message.startswith("Invalid user data")

    relogin = send_request(AuthLogin(token=auth.token), host=host, port=port)
    assert isinstance(relogin, AuthSuccess)
    assert relogin.user.username == "Slitherer"
    assert relogin.user.created_at == auth.user.created_at


def test_user_update_ignores_fields_clients_may_not_edit(server: RoomServer) -> None:
    host, port = server.address

    with socket.create_connection((host, port), timeout=5.0) as sock:
        sock.sendall(encode_frame(b'{"kind":"auth:login"}'))
        frame = read_frame(sock)
        assert frame is not None
        assert isinstance(decode_server_message(frame), AuthSuccess)

        sock.sendall(encode_frame(b'{"kind":"user:update","highScore":99999,"settings":{"sfxVolume":0.2}}'))
        frame = read_frame(sock)
        assert frame is not None
        reply = decode_server_message(frame)

    assert isinstance(reply, UserUpdated)
    assert reply.user.high_score == 0
    assert reply.user.settings.sfx_volume == 0.2
    assert reply.user.settings.music_volume == 0.5
