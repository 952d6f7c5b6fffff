"""Collision tests between swept spheres, rays, spheres, cylinders and triangles.

Vectors are anything :func:`numpy.asarray` turns into three floats.
Every test returns a :class:`Collision` on a hit and ``None`` otherwise.
Where a test takes ``collision_t``, it is an upper bound: hits at or after
that time are ignored, which lets callers keep only the earliest hit
across several tests.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

VectorLike = Union[Sequence[float], np.ndarray]

_FALLBACK_DIRECTION = (1.0, 0.0, 0.0)


@dataclass(frozen=True, eq=False)
class Collision:
    """Where and when a collision happens.

    ``t`` is the fraction along the sweep, ``at`` the contact point and
    ``out`` the unit direction that moves the object away fastest.
    """

    t: float
    at: np.ndarray
    out: np.ndarray


def _vec(v: VectorLike) -> np.ndarray:
    return np.asarray(v, dtype=np.float64).reshape(3)


def collide_aabb_vs_aabb(a_min: VectorLike, a_max: VectorLike, b_min: VectorLike, b_max: VectorLike) -> bool:
    """Return whether two axis-aligned boxes overlap (touching counts)."""
    a_lo, a_hi, b_lo, b_hi = _vec(a_min), _vec(a_max), _vec(b_min), _vec(b_max)
    return not (bool(np.any(a_hi < b_lo)) or bool(np.any(b_hi < a_lo)))


def careful_normalize(v: VectorLike) -> np.ndarray:
    """Normalize ``v``; a vector that cannot be normalized becomes (1, 0, 0)."""
    vec = _vec(v)
    with np.errstate(all="ignore"):
        out = vec / np.sqrt(np.dot(vec, vec))
    if math.isnan(out[0]):
        return np.array(_FALLBACK_DIRECTION)
    return out


def collide_ray_vs_sphere(
    ray_start: VectorLike,
    ray_direction: VectorLike,
    sphere_center: VectorLike,
    sphere_radius: float,
    collision_t: Optional[float] = None,
) -> Optional[Collision]:
    """Intersect the segment ``ray_start + t * ray_direction``, t in [0, 1], with a sphere.

    A ray moving away from the sphere's center never collides. A ray that
    starts inside the sphere collides at ``t == 0``.
    """
    start = _vec(ray_start)
    direction = _vec(ray_direction)
    center = _vec(sphere_center)
    rel = start - center

    if np.dot(rel, direction) >= 0.0:
        return None

    a = float(np.dot(direction, direction))
    b = 2.0 * float(np.dot(rel, direction))
    c = float(np.dot(rel, rel)) - sphere_radius * sphere_radius

    disc = b * b - 4.0 * a * c
    if disc < 0.0:
        return None
    disc = math.sqrt(disc)

    t0 = (-b - disc) / (2.0 * a)
    t1 = (-b + disc) / (2.0 * a)

    if t1 < 0.0 or t0 > 1.0:
        return None
    if collision_t is not None and t0 >= collision_t:
        return None

    if t0 <= 0.0:
        return Collision(0.0, start.copy(), careful_normalize(rel))
    at = start + t0 * direction
    return Collision(t0, at, careful_normalize(at - center))


def collide_ray_vs_cylinder(
    ray_start: VectorLike,
    ray_direction: VectorLike,
    cylinder_a: VectorLike,
    cylinder_b: VectorLike,
    cylinder_radius: float,
    collision_t: Optional[float] = None,
) -> Optional[Collision]:
    """Intersect a ray segment with the wall of a cylinder between ``cylinder_a`` and ``cylinder_b``.

    End caps are not tested. ``at`` is the point on the ray at the hit time
    and ``out`` points from the cylinder axis toward it.
    """
    start = _vec(ray_start)
    direction = _vec(ray_direction)
    end_a = _vec(cylinder_a)
    end_b = _vec(cylinder_b)

    along = end_b - end_a
    limit = float(np.dot(along, along))
    if limit == 0.0:
        return None

    a0 = 0.0
    a1 = 1.0
    dot_start = float(np.dot(start - end_a, along))
    dot_end = float(np.dot(start + direction - end_a, along))

    if dot_start < 0.0:
        if dot_end <= dot_start:
            return None
        a0 = (0.0 - dot_start) / (dot_end - dot_start)
    if dot_start > limit:
        if dot_end >= dot_start:
            return None
        a0 = (limit - dot_start) / (dot_end - dot_start)

    if dot_end < 0.0:
        if dot_start <= dot_end:
            return None
        a1 = (0.0 - dot_start) / (dot_end - dot_start)
    if dot_end > limit:
        if dot_start >= dot_end:
            return None
        a1 = (limit - dot_start) / (dot_end - dot_start)

    if collision_t is not None:
        a1 = min(a1, collision_t)
    if a0 >= a1:
        return None

    close_start = end_a + float(np.dot(start - end_a, along)) / limit * along
    close_direction = float(np.dot(direction, along)) / limit * along
    relative_direction = direction - close_direction

    hit = collide_ray_vs_sphere(
        (start - close_start) + a0 * relative_direction,
        relative_direction,
        (0.0, 0.0, 0.0),
        cylinder_radius,
        a1 - a0,
    )
    if hit is None:
        return None
    t = hit.t + a0
    return Collision(
        t,
        start + t * direction,
        careful_normalize(start - close_start + t * relative_direction),
    )


def _inside_triangle(point: np.ndarray, a: np.ndarray, b: np.ndarray, c: np.ndarray, normal: np.ndarray) -> bool:
    return all(
        np.dot(np.cross(edge_end - edge_start, point - edge_start), normal) >= 0
        for edge_start, edge_end in ((a, b), (b, c), (c, a))
    )


def collide_swept_sphere_vs_triangle(
    sphere_from: VectorLike,
    sphere_to: VectorLike,
    sphere_radius: float,
    triangle_a: VectorLike,
    triangle_b: VectorLike,
    triangle_c: VectorLike,
    collision_t: Optional[float] = None,
) -> Optional[Collision]:
    """Sweep a sphere from ``sphere_from`` to ``sphere_to`` against a triangle.

    Returns the first contact: ``t`` in [0, 1] along the sweep, ``at`` the
    point where the sphere touches the triangle and ``out`` the outward
    direction.
    """
    start = _vec(sphere_from)
    end = _vec(sphere_to)
    a, b, c = _vec(triangle_a), _vec(triangle_b), _vec(triangle_c)

    t = 2.0
    if collision_t is not None:
        t = min(t, collision_t)
        if t <= 0.0:
            return None

    perp = np.cross(b - a, c - a)
    if np.any(perp != 0.0):
        normal = perp / np.linalg.norm(perp)
        dot_from = float(np.dot(normal, start - a))
        dot_to = float(np.dot(normal, end - a))

        t0 = 2.0
        t1 = -1.0
        if dot_from < 0.0 and dot_to > dot_from:
            t0 = (-sphere_radius - dot_from) / (dot_to - dot_from)
            t1 = (sphere_radius - dot_from) / (dot_to - dot_from)
        elif dot_from > 0.0 and dot_to < dot_from:
            t0 = (sphere_radius - dot_from) / (dot_to - dot_from)
            t1 = (-sphere_radius - dot_from) / (dot_to - dot_from)

        if t1 < 0.0 or t0 >= t:
            return None

        at_t = max(0.0, t0)
        at = start + at_t * (end - start)
        close = at + float(np.dot(a - at, normal)) * normal
        if _inside_triangle(close, a, b, c, normal):
            return Collision(at_t, close, careful_normalize(at - close))

    sweep = end - start
    bound = collision_t
    result: Optional[Collision] = None

    for edge_start, edge_end in ((a, b), (b, c), (c, a)):
        hit = collide_ray_vs_cylinder(start, sweep, edge_start, edge_end, sphere_radius, bound)
        if hit is not None:
            result = Collision(hit.t, hit.at - hit.out * sphere_radius, hit.out)
            if bound is not None:
                bound = hit.t

    for vertex in (a, b, c):
        hit = collide_ray_vs_sphere(start, sweep, vertex, sphere_radius, bound)
        if hit is not None:
            result = Collision(hit.t, vertex.copy(), hit.out)
            if bound is not None:
                bound = hit.t

    return result