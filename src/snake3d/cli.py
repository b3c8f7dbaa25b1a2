from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import typer

from .paths import default_data_dir, rooms_dir, users_dir
from .replay.codec import ReplayCodecError, load_replay_file
from .replay.player import ReplayPlayer
from .replay.types import ReplayData
from .rooms.config import ConfigError, RoomConfig, room_config_from_env
from .rooms.service import RoomService
from .rooms.store import RoomStore, RoomStoreError
from .rooms.validator import validate_replay
from .users import UserStore

app = typer.Typer(add_completion=False)
rooms_app = typer.Typer(add_completion=False)
replay_app = typer.Typer(add_completion=False)
app.add_typer(rooms_app, name="rooms")
app.add_typer(replay_app, name="replay")

_DATA_DIR_HELP = "data directory (default: per-user OS data dir; override with SNAKE3D_DATA_DIR)"
_MAX_PLAYBACK_STEPS = 1_000_000


def _resolve_data_dir(base_dir: Path | None) -> Path:
    return default_data_dir() if base_dir is None else base_dir


def _load_config(*, matchmaking: str | None = None, leaderboard_source: str | None = None) -> RoomConfig:
    try:
        config = room_config_from_env()
        if matchmaking:
            config = replace(config, matchmaking=str(matchmaking).strip().lower())  # type: ignore[arg-type]
        if leaderboard_source:
            config = replace(config, leaderboard_source=str(leaderboard_source).strip().lower())  # type: ignore[arg-type]
    except ConfigError as exc:
        typer.echo(f"invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    return config


def _build_service(base_dir: Path, config: RoomConfig) -> tuple[RoomService, UserStore]:
    users = UserStore(users_dir(base_dir))
    service = RoomService(RoomStore(rooms_dir(base_dir)), config=config, users=users)
    return service, users


@app.command("serve")
def cmd_serve(
    host: str = typer.Option("127.0.0.1", "--host", help="bind address"),
    port: int = typer.Option(31994, "--port", min=0, max=65535, help="TCP port"),
    base_dir: Path | None = typer.Option(None, "--data-dir", help=_DATA_DIR_HELP),
    matchmaking: str | None = typer.Option(None, "--matchmaking", help="least_played|elo"),
    leaderboard_source: str | None = typer.Option(None, "--leaderboard-source", help="phantoms|users"),
) -> None:
    """Run the room server."""
    base_dir = _resolve_data_dir(base_dir)
    from .net.server import RoomServer
    from .server_log import close_server_log, init_server_log

    config = _load_config(matchmaking=matchmaking, leaderboard_source=leaderboard_source)
    service, users = _build_service(base_dir, config)
    log_path = init_server_log(
        base_dir=base_dir,
        host=host,
        port=port,
        matchmaking=config.matchmaking,
        max_phantoms=config.max_phantoms,
    )
    server = RoomServer(service, users, host=host, port=port)
    bound_host, bound_port = server.bind()
    typer.echo(f"listening on {bound_host}:{bound_port} (data: {base_dir}, log: {log_path})")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        typer.echo("shutting down")
    finally:
        server.stop()
        close_server_log()


@rooms_app.command("summary")
def cmd_rooms_summary(
    base_dir: Path | None = typer.Option(None, "--data-dir", help=_DATA_DIR_HELP),
) -> None:
    """List every stored room."""
    base_dir = _resolve_data_dir(base_dir)
    service, _users = _build_service(base_dir, _load_config())
    try:
        rows = service.rooms_summary()
    except RoomStoreError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    if not rows:
        typer.echo("no rooms")
        return
    typer.echo(f"{'seed':>8}  {'phantoms':>8}  {'games':>6}  {'best':>6}")
    for row in rows:
        best = "-" if row.best_score is None else str(row.best_score)
        typer.echo(f"{row.seed:>8}  {row.phantom_count:>8d}  {row.total_games_played:>6d}  {best:>6}")


@rooms_app.command("repair")
def cmd_rooms_repair(
    seed: str | None = typer.Argument(None, help="room seed (default: all rooms)"),
    base_dir: Path | None = typer.Option(None, "--data-dir", help=_DATA_DIR_HELP),
) -> None:
    """Trim over-capacity rooms and resolve duplicate spawn points."""
    base_dir = _resolve_data_dir(base_dir)
    service, _users = _build_service(base_dir, _load_config())
    try:
        if seed is None:
            removed = service.repair_all_rooms()
        else:
            removed = {seed: service.repair_room(seed)}
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="SEED") from exc
    except RoomStoreError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    total = 0
    for key, count in sorted(removed.items()):
        if count:
            typer.echo(f"seed {key}: removed {count} phantom(s)")
        total += int(count)
    typer.echo(f"repaired {len(removed)} room(s), removed {total} phantom(s)")


@rooms_app.command("show")
def cmd_rooms_show(
    seed: str = typer.Argument(..., help="room seed"),
    base_dir: Path | None = typer.Option(None, "--data-dir", help=_DATA_DIR_HELP),
) -> None:
    """Print a room's metadata and active phantoms."""
    base_dir = _resolve_data_dir(base_dir)
    store = RoomStore(rooms_dir(base_dir))
    try:
        meta = store.get_room_meta(seed)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="SEED") from exc
    except RoomStoreError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Room {meta.seed}: games={meta.total_games_played} players={len(meta.players_history)}")
    if not meta.active_phantoms:
        typer.echo("  no phantoms")
        return
    for phantom in sorted(meta.active_phantoms, key=lambda p: p.spawn_index):
        blob = "ok" if store.has_replay(seed, phantom.replay_id) else "missing"
        typer.echo(
            f"  spawn={phantom.spawn_index}  score={phantom.score:6d}  replay={phantom.replay_id}  blob={blob}"
        )


@app.command("leaderboard")
def cmd_leaderboard(
    limit: int = typer.Option(10, "--limit", min=1, max=100, help="number of entries"),
    source: str | None = typer.Option(None, "--source", help="phantoms|users"),
    base_dir: Path | None = typer.Option(None, "--data-dir", help=_DATA_DIR_HELP),
) -> None:
    """Print the best runs."""
    base_dir = _resolve_data_dir(base_dir)
    service, _users = _build_service(base_dir, _load_config(leaderboard_source=source))
    entries = service.get_leaderboard(limit)
    if not entries:
        typer.echo("leaderboard is empty")
        return
    for rank, entry in enumerate(entries, start=1):
        typer.echo(f"{rank:2d}. {entry.player_name:<24} {entry.score:6d}  seed={entry.seed}  replay={entry.replay_id}")


def _load_replay_arg(path: Path) -> ReplayData:
    try:
        return load_replay_file(path)
    except FileNotFoundError as exc:
        typer.echo(f"replay file not found: {path}", err=True)
        raise typer.Exit(code=1) from exc
    except ReplayCodecError as exc:
        typer.echo(f"invalid replay file: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@replay_app.command("validate")
def cmd_replay_validate(
    replay_file: Path = typer.Argument(..., help="replay JSON file"),
    score_per_step_cap: int = typer.Option(10, "--score-per-step-cap", min=1, help="max score per grid step"),
) -> None:
    """Run the anti-cheat checks on a replay file."""
    replay = _load_replay_arg(replay_file)
    result = validate_replay(replay, score_per_step_cap=score_per_step_cap)
    if not result.ok:
        typer.echo(f"rejected ({result.code}): {result.reason}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"ok: {replay.id} score={replay.final_score} turns={len(replay.trajectory_log)}")


@replay_app.command("play")
def cmd_replay_play(
    replay_file: Path = typer.Argument(..., help="replay JSON file"),
    trace: bool = typer.Option(False, "--trace", help="print the head after every step"),
) -> None:
    """Play a replay headlessly and report where it dies."""
    replay = _load_replay_arg(replay_file)
    player = ReplayPlayer(replay)
    while not player.dead and player.steps < _MAX_PLAYBACK_STEPS:
        if player.step() and trace:
            head = player.head
            typer.echo(f"step={player.steps} head=({head.x:g}, {head.y:g}, {head.z:g})")
    head = player.head
    if player.malformed:
        typer.echo(f"malformed trajectory after {player.steps} steps at ({head.x:g}, {head.y:g}, {head.z:g})", err=True)
        raise typer.Exit(code=1)
    if not player.dead:
        typer.echo(f"playback did not finish within {_MAX_PLAYBACK_STEPS} steps", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"died after {player.steps} steps at ({head.x:g}, {head.y:g}, {head.z:g})")


def main(argv: list[str] | None = None) -> None:
    app(prog_name="snake3d", args=argv)


if __name__ == "__main__":
    main()
