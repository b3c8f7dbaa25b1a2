from __future__ import annotations

import math

from snake3d.geom import Vec3, grid_steps, ray_parameter
from snake3d.spawn_points import SPAWN_POINTS, WORLD_SIZE, spawn_point


def test_vec3_arithmetic_and_length() -> None:
    vec = Vec3(1.0, 2.0, 2.0)

    assert math.isclose(vec.length(), 3.0, abs_tol=1e-9)
    assert vec + Vec3(1.0, 0.0, 0.0) == Vec3(2.0, 2.0, 2.0)
    assert vec - Vec3(1.0, 2.0, 2.0) == Vec3()
    assert vec * 2.0 == Vec3(2.0, 4.0, 4.0)
    assert 2.0 * vec == Vec3(2.0, 4.0, 4.0)
    assert math.isclose(vec.manhattan_to(Vec3()), 5.0, abs_tol=1e-9)


def test_ray_parameter_accepts_points_on_the_ray() -> None:
    origin = Vec3(5.0, 5.0, 5.0)
    heading = Vec3(1.0, 0.0, 0.0)

    assert ray_parameter(origin, heading, Vec3(12.0, 5.0, 5.0), epsilon=0.1) == 7.0
    assert ray_parameter(origin, heading, origin, epsilon=0.1) == 0.0


def test_ray_parameter_rejects_points_off_or_behind_the_ray() -> None:
    origin = Vec3(5.0, 5.0, 5.0)
    heading = Vec3(1.0, 0.0, 0.0)

    assert ray_parameter(origin, heading, Vec3(12.0, 6.0, 5.0), epsilon=0.1) is None
    assert ray_parameter(origin, heading, Vec3(1.0, 5.0, 5.0), epsilon=0.1) is None


def test_spawn_points_sit_inside_the_world_and_face_axis_directions() -> None:
    assert len(SPAWN_POINTS) == 4
    for point in SPAWN_POINTS:
        for coord in (point.position.x, point.position.y, point.position.z):
            assert 0.0 < coord < WORLD_SIZE
        assert math.isclose(point.direction.length(), 1.0, abs_tol=1e-9)
    assert len({point.position for point in SPAWN_POINTS}) == 4


def test_spawn_point_index_wraps() -> None:
    assert spawn_point(4) == SPAWN_POINTS[0]
    assert spawn_point(-1) == SPAWN_POINTS[1]


def test_grid_steps_counts_whole_steps_only() -> None:
    origin = Vec3(5.0, 5.0, 5.0)
    heading = Vec3(1.0, 0.0, 0.0)

    assert grid_steps(origin, heading, Vec3(12.0, 5.0, 5.0)) == 7
    assert grid_steps(origin, heading, Vec3(12.04, 5.0, 5.0)) == 7
    assert grid_steps(origin, heading, origin) == 0
    assert grid_steps(origin, heading, Vec3(10.5, 5.0, 5.0)) is None
    assert grid_steps(origin, heading, Vec3(12.0, 6.0, 5.0)) is None
