from __future__ import annotations

from dataclasses import dataclass
import math

# Positions within this L1 distance of a grid point count as on it.
GRID_EPSILON = 0.1


@dataclass(slots=True, frozen=True)
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def length_sq(self) -> float:
        return self.x * self.x + self.y * self.y + self.z * self.z

    def length(self) -> float:
        return math.sqrt(self.length_sq())

    def __add__(self, other: Vec3) -> Vec3:
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vec3) -> Vec3:
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> Vec3:
        return Vec3(self.x * scalar, self.y * scalar, self.z * scalar)

    def __rmul__(self, scalar: float) -> Vec3:
        return self * scalar

    def distance_to(self, other: Vec3) -> float:
        return (other - self).length()

    def manhattan_to(self, other: Vec3) -> float:
        return abs(other.x - self.x) + abs(other.y - self.y) + abs(other.z - self.z)

    def is_close(self, other: Vec3, *, epsilon: float = 1e-3) -> bool:
        return (
            abs(self.x - other.x) <= epsilon
            and abs(self.y - other.y) <= epsilon
            and abs(self.z - other.z) <= epsilon
        )


def ray_parameter(origin: Vec3, direction: Vec3, target: Vec3, *, epsilon: float) -> float | None:
    """Return `t >= 0` with `origin + direction * t == target` (L1 error below `epsilon`).

    `direction` is expected to be a unit vector. Returns None when `target` is off the ray.
    """

    dist = origin.distance_to(target)
    if dist == 0.0:
        return 0.0
    expected = origin + direction * dist
    if expected.manhattan_to(target) < epsilon:
        return dist
    return None


def grid_steps(origin: Vec3, direction: Vec3, target: Vec3, *, epsilon: float = GRID_EPSILON) -> int | None:
    """Whole unit steps along the ray from `origin` to `target`, or None.

    None when `target` is off the ray or falls between two grid steps.
    """

    t = ray_parameter(origin, direction, target, epsilon=epsilon)
    if t is None or abs(t - round(t)) > epsilon:
        return None
    return int(round(t))
