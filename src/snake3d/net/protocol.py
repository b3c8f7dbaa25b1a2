from __future__ import annotations

from typing import Any, TypeAlias

import msgspec

from ..geom import Vec3
from ..replay.codec import replay_to_obj
from ..replay.types import DEFAULT_INITIAL_SPEED, ReplayData, ReplayDraft, StartParams, TrajectoryChange
from ..rooms.types import AdmissionResult, LeaderboardEntry, RoomData
from ..users import UserData

PROTOCOL_VERSION = 1
DEFAULT_PORT = 31994
MAX_FRAME_BYTES = 4 * 1024 * 1024


class Vec3Msg(msgspec.Struct):
    x: float
    y: float
    z: float


class TrajectoryChangeMsg(msgspec.Struct):
    position: Vec3Msg
    direction: Vec3Msg


class StartParamsMsg(msgspec.Struct, rename="camel"):
    seed: int | None = None
    spawn_index: int | None = None
    initial_speed: float = DEFAULT_INITIAL_SPEED
    start_position: Vec3Msg | None = None
    start_direction: Vec3Msg | None = None


class ReplaySubmission(msgspec.Struct, rename="camel"):
    """Client-side run; identity fields the client may send are ignored."""

    player_name: str | None = None
    start_params: StartParamsMsg | None = None
    final_score: int | None = None
    death_position: Vec3Msg | None = None
    trajectory_log: list[TrajectoryChangeMsg] | None = None


class ReplayMsg(msgspec.Struct, rename="camel"):
    id: str
    player_id: str
    player_name: str
    timestamp: int
    start_params: StartParamsMsg
    final_score: int
    death_position: Vec3Msg
    trajectory_log: list[TrajectoryChangeMsg] = msgspec.field(default_factory=list)


class LeaderboardEntryMsg(msgspec.Struct, rename="camel"):
    player_name: str
    score: int
    seed: int
    date: int
    replay_id: str


class AuthLogin(msgspec.Struct, tag_field="kind", tag="auth:login", forbid_unknown_fields=True):
    token: str | None = None


class AuthSuccess(msgspec.Struct, tag_field="kind", tag="auth:success", rename="camel"):
    token: str
    user: UserData
    is_new: bool = False


class Ping(msgspec.Struct, tag_field="kind", tag="ping", forbid_unknown_fields=True):
    pass


class Pong(msgspec.Struct, tag_field="kind", tag="pong", rename="camel"):
    server_time: int = 0


class RoomJoin(msgspec.Struct, tag_field="kind", tag="room:join", forbid_unknown_fields=True):
    seed: int | None = None


class RoomDataMsg(msgspec.Struct, tag_field="kind", tag="room:data", rename="camel"):
    seed: int
    phantoms: list[ReplayMsg] = msgspec.field(default_factory=list)
    player_spawn_index: int = 0


class RoomError(msgspec.Struct, tag_field="kind", tag="room:error"):
    message: str = ""


class GameOver(msgspec.Struct, tag_field="kind", tag="game:over", forbid_unknown_fields=True):
    """Run report. Fields are typed loosely so bad payloads still get a verdict."""

    seed: Any = None
    replay: Any = None


class GameResult(msgspec.Struct, tag_field="kind", tag="game:result", rename="camel", omit_defaults=True):
    saved: bool
    message: str
    replay_id: str | None = None


class UserGetData(msgspec.Struct, tag_field="kind", tag="user:getData", forbid_unknown_fields=True):
    pass


class UserSettingsPatch(msgspec.Struct, rename="camel"):
    music_volume: float | None = None
    sfx_volume: float | None = None


class UserUpdate(msgspec.Struct, tag_field="kind", tag="user:update", rename="camel"):
    """Profile edit. Only the name and settings are client-editable; other keys are ignored."""

    username: str | None = None
    settings: UserSettingsPatch | None = None


class UserDataMsg(msgspec.Struct, tag_field="kind", tag="user:data"):
    user: UserData


class UserUpdated(msgspec.Struct, tag_field="kind", tag="user:updated"):
    user: UserData


class UserError(msgspec.Struct, tag_field="kind", tag="user:error"):
    message: str = ""


class LeaderboardRequest(msgspec.Struct, tag_field="kind", tag="leaderboard:request", forbid_unknown_fields=True):
    limit: int = 10


class LeaderboardData(msgspec.Struct, tag_field="kind", tag="leaderboard:data"):
    entries: list[LeaderboardEntryMsg] = msgspec.field(default_factory=list)


ClientMessage: TypeAlias = AuthLogin | Ping | RoomJoin | GameOver | LeaderboardRequest | UserGetData | UserUpdate
ServerMessage: TypeAlias = (
    AuthSuccess | Pong | RoomDataMsg | RoomError | GameResult | LeaderboardData | UserDataMsg | UserUpdated | UserError
)


_CLIENT_DECODER = msgspec.json.Decoder(type=ClientMessage)
_SERVER_DECODER = msgspec.json.Decoder(type=ServerMessage)


def encode_message(message: ClientMessage | ServerMessage) -> bytes:
    return msgspec.json.encode(message)


def decode_client_message(blob: bytes) -> ClientMessage:
    return _CLIENT_DECODER.decode(blob)


def decode_server_message(blob: bytes) -> ServerMessage:
    return _SERVER_DECODER.decode(blob)


def _vec3(value: Vec3Msg | None) -> Vec3 | None:
    if value is None:
        return None
    return Vec3(float(value.x), float(value.y), float(value.z))


def submission_from_payload(payload: Any) -> ReplaySubmission | None:
    """Type-check the `replay` field of `game:over`; raises `msgspec.ValidationError`."""
    if payload is None or isinstance(payload, ReplaySubmission):
        return payload
    return msgspec.convert(payload, type=ReplaySubmission)


def draft_from_submission(submission: ReplaySubmission | None) -> ReplayDraft | None:
    if submission is None:
        return None
    params_in = submission.start_params
    start_params: StartParams | None = None
    if params_in is not None and params_in.spawn_index is not None:
        start_params = StartParams(
            seed=int(params_in.seed or 0),
            spawn_index=int(params_in.spawn_index),
            initial_speed=float(params_in.initial_speed),
            start_position=_vec3(params_in.start_position),
            start_direction=_vec3(params_in.start_direction),
        )
    trajectory: list[TrajectoryChange] | None = None
    if submission.trajectory_log is not None:
        trajectory = [
            TrajectoryChange(
                position=Vec3(change.position.x, change.position.y, change.position.z),
                direction=Vec3(change.direction.x, change.direction.y, change.direction.z),
            )
            for change in submission.trajectory_log
        ]
    return ReplayDraft(
        player_name=submission.player_name,
        start_params=start_params,
        final_score=submission.final_score,
        death_position=_vec3(submission.death_position),
        trajectory_log=trajectory,
    )


def replay_message(replay: ReplayData) -> ReplayMsg:
    return msgspec.convert(replay_to_obj(replay), type=ReplayMsg)


def room_data_message(room: RoomData) -> RoomDataMsg:
    return RoomDataMsg(
        seed=int(room.seed),
        phantoms=[replay_message(replay) for replay in room.phantoms],
        player_spawn_index=int(room.player_spawn_index),
    )


def game_result_message(result: AdmissionResult) -> GameResult:
    return GameResult(saved=bool(result.admitted), message=str(result.message), replay_id=result.replay_id)


def leaderboard_message(entries: list[LeaderboardEntry]) -> LeaderboardData:
    return LeaderboardData(
        entries=[
            LeaderboardEntryMsg(
                player_name=entry.player_name,
                score=int(entry.score),
                seed=int(entry.seed),
                date=int(entry.date),
                replay_id=entry.replay_id,
            )
            for entry in entries
        ]
    )


def user_update_changes(message: UserUpdate) -> dict[str, object]:
    """`UserStore.update_user` keyword arguments for the fields the client sent."""
    changes: dict[str, object] = {}
    if message.username is not None:
        username = message.username.strip()
        if not username:
            raise ValueError("username must not be empty")
        changes["username"] = username
    if message.settings is not None:
        settings = {
            name: getattr(message.settings, name)
            for name in message.settings.__struct_fields__
            if getattr(message.settings, name) is not None
        }
        if settings:
            changes["settings"] = settings
    return changes
