from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "snake3d"
DATA_DIR_ENV = "SNAKE3D_DATA_DIR"

ROOMS_DIR_NAME = "rooms"
USERS_DIR_NAME = "users"


def _app_dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP_NAME, appauthor=False)


def default_data_dir() -> Path:
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser().resolve()
    return Path(_app_dirs().user_data_path)


def rooms_dir(base_dir: Path) -> Path:
    return Path(base_dir) / ROOMS_DIR_NAME


def users_dir(base_dir: Path) -> Path:
    return Path(base_dir) / USERS_DIR_NAME


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + f".tmp.{os.getpid()}")
    tmp_path.write_bytes(data)
    tmp_path.replace(path)
