from __future__ import annotations

from .protocol import (
    DEFAULT_PORT,
    AuthLogin,
    AuthSuccess,
    ClientMessage,
    GameOver,
    GameResult,
    LeaderboardData,
    LeaderboardRequest,
    Ping,
    Pong,
    ReplayMsg,
    ReplaySubmission,
    RoomDataMsg,
    RoomError,
    RoomJoin,
    ServerMessage,
    UserDataMsg,
    UserError,
    UserGetData,
    UserUpdate,
    UserUpdated,
    decode_client_message,
    decode_server_message,
    draft_from_submission,
    encode_message,
    replay_message,
)
from .server import ConnectionState, ProtocolError, RoomClient, RoomServer, encode_frame, read_frame, send_request

__all__ = [
    "AuthLogin",
    "AuthSuccess",
    "ClientMessage",
    "ConnectionState",
    "DEFAULT_PORT",
    "GameOver",
    "GameResult",
    "LeaderboardData",
    "LeaderboardRequest",
    "Ping",
    "Pong",
    "ProtocolError",
    "ReplayMsg",
    "ReplaySubmission",
    "RoomClient",
    "RoomDataMsg",
    "RoomError",
    "RoomJoin",
    "RoomServer",
    "ServerMessage",
    "UserDataMsg",
    "UserError",
    "UserGetData",
    "UserUpdate",
    "UserUpdated",
    "decode_client_message",
    "decode_server_message",
    "draft_from_submission",
    "encode_frame",
    "encode_message",
    "read_frame",
    "replay_message",
    "send_request",
]
