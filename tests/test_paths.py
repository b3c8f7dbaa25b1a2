from __future__ import annotations

from pathlib import Path

import pytest

from snake3d.paths import atomic_write_bytes, default_data_dir, rooms_dir, users_dir


def test_default_data_dir_honours_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SNAKE3D_DATA_DIR", str(tmp_path / "custom"))

    assert default_data_dir() == (tmp_path / "custom").resolve()


def test_default_data_dir_falls_back_to_platform_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SNAKE3D_DATA_DIR", raising=False)

    assert "snake3d" in str(default_data_dir())


def test_layout_helpers_and_atomic_write(tmp_path: Path) -> None:
    assert rooms_dir(tmp_path) == tmp_path / "rooms"
    assert users_dir(tmp_path) == tmp_path / "users"

    target = tmp_path / "nested" / "file.json"
    atomic_write_bytes(target, b"{}")
    atomic_write_bytes(target, b'{"a": 1}')

    assert target.read_text(encoding="utf-8") == '{"a": 1}'
    assert [path.name for path in target.parent.iterdir()] == ["file.json"]
