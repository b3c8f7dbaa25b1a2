"""Shared spawn points for live players and phantoms.

Spawns sit near the bottom corners of the world cube, pulled in from the walls,
each facing away from its nearest wall.
"""

from __future__ import annotations

from dataclasses import dataclass

from .geom import Vec3

WORLD_SIZE = 50
SPAWN_WALL_OFFSET = 5


@dataclass(frozen=True, slots=True)
class SpawnPoint:
    position: Vec3
    direction: Vec3


_LOW = float(SPAWN_WALL_OFFSET)
_HIGH = float(WORLD_SIZE - SPAWN_WALL_OFFSET)

SPAWN_POINTS: tuple[SpawnPoint, ...] = (
    SpawnPoint(position=Vec3(_LOW, _LOW, _LOW), direction=Vec3(0.0, 0.0, -1.0)),
    SpawnPoint(position=Vec3(_HIGH, _LOW, _LOW), direction=Vec3(0.0, 0.0, 1.0)),
    SpawnPoint(position=Vec3(_LOW, _LOW, _HIGH), direction=Vec3(1.0, 0.0, 0.0)),
    SpawnPoint(position=Vec3(_HIGH, _LOW, _HIGH), direction=Vec3(-1.0, 0.0, 0.0)),
)


def spawn_point(index: int) -> SpawnPoint:
    return SPAWN_POINTS[abs(int(index)) % len(SPAWN_POINTS)]
