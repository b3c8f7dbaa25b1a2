from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    # Ensure the local `src/` tree wins over any other installed copy of the package.
    src_dir = Path(__file__).resolve().parents[1] / "src"
    src_str = str(src_dir)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "SNAKE3D_MAX_PHANTOMS",
        "SNAKE3D_MAX_SPAWN_POINTS",
        "SNAKE3D_SCORE_PER_STEP_CAP",
        "SNAKE3D_ELO_PROXIMITY_THRESHOLD",
        "SNAKE3D_MATCHMAKING",
        "SNAKE3D_LEADERBOARD_SOURCE",
        "SNAKE3D_REPAIR_ON_JOIN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SNAKE3D_DATA_DIR", str(tmp_path / "data"))
