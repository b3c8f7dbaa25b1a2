"""Threaded TCP room server speaking length-prefixed msgspec JSON frames.

Every frame is a 4-byte big-endian payload length followed by one JSON
message tagged by `kind`. Each connection gets its own thread and its own
player identity: a fresh uuid until `auth:login` binds it to a user token.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
import select
import socket
import threading
import time
import uuid

import msgspec

from ..rooms.service import RoomService
from ..rooms.store import RoomStoreError
from ..server_log import server_log, server_log_critical
from ..users import UserStore
from .protocol import (
    DEFAULT_PORT,
    MAX_FRAME_BYTES,
    AuthLogin,
    AuthSuccess,
    ClientMessage,
    GameOver,
    GameResult,
    LeaderboardRequest,
    Ping,
    Pong,
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
    game_result_message,
    leaderboard_message,
    room_data_message,
    submission_from_payload,
    user_update_changes,
)

_FRAME_LEN_BYTES = 4
_ACCEPT_TIMEOUT_SECONDS = 1.0
_READ_TIMEOUT_SECONDS = 30.0
_CLIENT_TIMEOUT_SECONDS = 10.0
_MAX_LEADERBOARD_LIMIT = 100


class ProtocolError(RuntimeError):
    pass


def encode_frame(payload: bytes) -> bytes:
    if len(payload) > MAX_FRAME_BYTES:
        raise ProtocolError(f"frame too large: {len(payload)} bytes")
    return int(len(payload)).to_bytes(_FRAME_LEN_BYTES, byteorder="big", signed=False) + payload


def _recv_exact(sock: socket.socket, count: int) -> bytes:
    chunks: list[bytes] = []
    remaining = int(count)
    while remaining > 0:
        chunk = sock.recv(remaining)
        if not chunk:
            raise ConnectionError("unexpected EOF while reading frame")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_frame(sock: socket.socket) -> bytes | None:
    """Read one frame; None on a clean EOF between frames."""
    first = sock.recv(1)
    if not first:
        return None
    header = first + _recv_exact(sock, _FRAME_LEN_BYTES - 1)
    frame_len = int.from_bytes(header, byteorder="big", signed=False)
    if frame_len > MAX_FRAME_BYTES:
        raise ProtocolError(f"frame too large: {frame_len} bytes")
    return _recv_exact(sock, frame_len)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True)
class ConnectionState:
    player_id: str
    authenticated: bool = False


class RoomServer:
    def __init__(
        self,
        service: RoomService,
        users: UserStore | None = None,
        *,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
    ) -> None:
        self._service = service
        self._users = users
        self._host = str(host)
        self._port = int(port)
        self._listener: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._stopping = threading.Event()
        self._conn_lock = threading.Lock()
        self._connections: dict[socket.socket, threading.Thread] = {}

    @property
    def address(self) -> tuple[str, int]:
        if self._listener is None:
            return (self._host, self._port)
        host, port = self._listener.getsockname()[:2]
        return (str(host), int(port))

    def bind(self) -> tuple[str, int]:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((self._host, self._port))
        listener.listen(16)
        listener.settimeout(_ACCEPT_TIMEOUT_SECONDS)
        self._listener = listener
        self._stopping.clear()
        host, port = self.address
        server_log("listen", host=host, port=port)
        return (host, port)

    def start(self) -> tuple[str, int]:
        """Bind and run the accept loop on a background thread."""
        address = self.bind()
        self._accept_thread = threading.Thread(target=self._accept_loop, name="snake3d-accept", daemon=True)
        self._accept_thread.start()
        return address

    def serve_forever(self) -> None:
        if self._listener is None:
            self.bind()
        self._accept_loop()

    def stop(self) -> None:
        self._stopping.set()
        if self._listener is not None:
            with contextlib.suppress(OSError):
                self._listener.close()
        with self._conn_lock:
            connections = list(self._connections.items())
        for conn, _thread in connections:
            with contextlib.suppress(OSError):
                conn.shutdown(socket.SHUT_RDWR)
        for _conn, thread in connections:
            thread.join(timeout=2.0)
        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(timeout=2.0)
            self._accept_thread = None
        self._listener = None
        server_log("stopped")

    def _accept_loop(self) -> None:
        listener = self._listener
        assert listener is not None
        while not self._stopping.is_set():
            try:
                conn, addr = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            thread = threading.Thread(
                target=self._serve_connection,
                args=(conn, addr),
                name=f"snake3d-conn-{addr[1]}",
                daemon=True,
            )
            with self._conn_lock:
                self._connections[conn] = thread
            thread.start()

    def _serve_connection(self, conn: socket.socket, addr: tuple[str, int]) -> None:
        state = ConnectionState(player_id=str(uuid.uuid4()))
        server_log("connect", peer=f"{addr[0]}:{addr[1]}", player_id=state.player_id[:8])
        try:
            with conn:
                conn.settimeout(_READ_TIMEOUT_SECONDS)
                while not self._stopping.is_set():
                    readable, _, _ = select.select([conn], [], [], _ACCEPT_TIMEOUT_SECONDS)
                    if not readable:
                        continue
                    frame = read_frame(conn)
                    if frame is None:
                        break
                    reply = self.handle_frame(state, frame)
                    conn.sendall(encode_frame(encode_message(reply)))
        except ProtocolError as exc:
            server_log("protocol_error", player_id=state.player_id[:8], error=str(exc))
        except (ConnectionError, OSError) as exc:
            if not self._stopping.is_set():
                server_log("connection_lost", player_id=state.player_id[:8], error=type(exc).__name__)
        finally:
            with self._conn_lock:
                self._connections.pop(conn, None)
            server_log("disconnect", player_id=state.player_id[:8])

    def handle_frame(self, state: ConnectionState, frame: bytes) -> ServerMessage:
        try:
            message = decode_client_message(frame)
        except msgspec.DecodeError as exc:
            server_log("bad_message", player_id=state.player_id[:8], error=str(exc))
            return RoomError(message=f"Malformed message: {exc}")
        return self.handle_message(state, message)

    def handle_message(self, state: ConnectionState, message: ClientMessage) -> ServerMessage:
        if isinstance(message, Ping):
            return Pong(server_time=_now_ms())
        if isinstance(message, AuthLogin):
            return self._handle_auth(state, message)
        if isinstance(message, RoomJoin):
            return self._handle_join(state, message)
        if isinstance(message, GameOver):
            return self._handle_game_over(state, message)
        if isinstance(message, (UserGetData, UserUpdate)):
            return self._handle_user(state, message)
        if isinstance(message, LeaderboardRequest):
            limit = max(1, min(_MAX_LEADERBOARD_LIMIT, int(message.limit)))
            try:
                return leaderboard_message(self._service.get_leaderboard(limit))
            except (RoomStoreError, msgspec.DecodeError) as exc:
                server_log_critical("leaderboard_failed", error=str(exc))
                return RoomError(message="Failed to load leaderboard")
        raise TypeError(f"unhandled message type: {type(message).__name__}")

    def _handle_auth(self, state: ConnectionState, message: AuthLogin) -> ServerMessage:
        if self._users is None:
            return RoomError(message="Authentication is not available")
        token = message.token
        user = None
        is_new = False
        try:
            if token:
                try:
                    user = self._users.get_user(token)
                except ValueError:
                    user = None
            if user is None:
                token = self._users.generate_token()
                user = self._users.create_user(token)
                is_new = True
        except (msgspec.DecodeError, OSError) as exc:
            server_log_critical("auth_failed", error=str(exc))
            return RoomError(message="Authentication failed")
        assert token is not None
        state.player_id = token
        state.authenticated = True
        server_log("auth", player_id=token[:8], is_new=is_new, username=user.username)
        return AuthSuccess(token=token, user=user, is_new=is_new)

    def _handle_user(self, state: ConnectionState, message: UserGetData | UserUpdate) -> ServerMessage:
        if self._users is None or not state.authenticated:
            return UserError(message="Not authenticated")
        if isinstance(message, UserGetData):
            try:
                user = self._users.get_user(state.player_id)
            except (msgspec.DecodeError, OSError) as exc:
                server_log_critical("user_load_failed", player_id=state.player_id[:8], error=str(exc))
                return UserError(message="Failed to load user data")
            if user is None:
                return UserError(message="User not found")
            return UserDataMsg(user=user)
        try:
            user = self._users.update_user(state.player_id, **user_update_changes(message))
        except ValueError as exc:
            return UserError(message=f"Invalid user data: {exc}")
        except (msgspec.DecodeError, OSError) as exc:
            server_log_critical("user_update_failed", player_id=state.player_id[:8], error=str(exc))
            return UserError(message="Failed to update user data")
        if user is None:
            return UserError(message="User not found")
        server_log("user_updated", player_id=state.player_id[:8], username=user.username)
        return UserUpdated(user=user)

    def _handle_join(self, state: ConnectionState, message: RoomJoin) -> ServerMessage:
        try:
            room = self._service.join_room(message.seed, state.player_id)
        except ValueError as exc:
            return RoomError(message=f"Invalid seed: {exc}")
        except (RoomStoreError, msgspec.DecodeError, OSError) as exc:
            server_log_critical("join_failed", seed=message.seed, player_id=state.player_id[:8], error=str(exc))
            return RoomError(message="Failed to join room")
        return room_data_message(room)

    def _handle_game_over(self, state: ConnectionState, message: GameOver) -> ServerMessage:
        try:
            seed = msgspec.convert(message.seed, type=int)
        except msgspec.ValidationError as exc:
            return GameResult(saved=False, message=f"Invalid seed: {exc}")
        try:
            submission = submission_from_payload(message.replay)
        except msgspec.ValidationError as exc:
            server_log("bad_replay", player_id=state.player_id[:8], seed=seed, error=str(exc))
            return GameResult(saved=False, message=f"Invalid replay data: {exc}")
        draft = draft_from_submission(submission)
        try:
            result = self._service.process_game_over(state.player_id, seed, draft)
        except ValueError as exc:
            return GameResult(saved=False, message=f"Invalid seed: {exc}")
        except (RoomStoreError, msgspec.DecodeError, OSError) as exc:
            server_log_critical(
                "game_over_failed",
                seed=seed,
                player_id=state.player_id[:8],
                error=str(exc),
            )
            return GameResult(saved=False, message="Server error")
        return game_result_message(result)


class RoomClient:
    """Blocking client holding one connection, so its player identity persists."""

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT, *, timeout: float = _CLIENT_TIMEOUT_SECONDS) -> None:
        self._sock = socket.create_connection((str(host), int(port)), timeout=float(timeout))

    def request(self, message: ClientMessage) -> ServerMessage:
        self._sock.sendall(encode_frame(encode_message(message)))
        frame = read_frame(self._sock)
        if frame is None:
            raise ConnectionError("server closed the connection")
        return decode_server_message(frame)

    def close(self) -> None:
        with contextlib.suppress(OSError):
            self._sock.close()

    def __enter__(self) -> RoomClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def send_request(
    message: ClientMessage,
    *,
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    timeout_seconds: float = _CLIENT_TIMEOUT_SECONDS,
) -> ServerMessage:
    with RoomClient(host, port, timeout=timeout_seconds) as client:
        return client.request(message)
