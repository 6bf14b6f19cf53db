from __future__ import annotations

import math

from pygame.math import Vector3


def safe_normalize(vector: Vector3) -> Vector3:
    magnitude_sq = vector.length_squared()
    if magnitude_sq <= 0.0:
        return Vector3()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector3(vector.x * inv, vector.y * inv, vector.z * inv)


def safe_div(vector: Vector3, scalar: float) -> Vector3:
    if scalar == 0:
        return Vector3()
    return Vector3(vector.x / scalar, vector.y / scalar, vector.z / scalar)


def set_magnitude(vector: Vector3, magnitude: float) -> Vector3:
    return safe_normalize(vector) * magnitude


def limit(vector: Vector3, max_length: float) -> Vector3:
    if max_length <= 0:
        return Vector3()
    magnitude_sq = vector.length_squared()
    if magnitude_sq <= max_length * max_length:
        return Vector3(vector)
    return set_magnitude(vector, max_length)


def is_zero(vector: Vector3) -> bool:
    return vector.x == 0 and vector.y == 0 and vector.z == 0


def clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
