"""Sphere primitive with robust ray-sphere intersection.

This module provides the host-side Sphere description and the intersection
function used by the scene query. The intersection uses the robust quadratic
formula from Ray Tracing Gems to avoid floating-point artifacts.

The robust quadratic formula avoids catastrophic cancellation when b^2 is
nearly equal to 4ac by using a reformulated calculation that maintains
numerical stability.

Example:
    >>> from pathtracer.geometry.sphere import Sphere
    >>> ball = Sphere(center=(0.0, 1.0, 3.0), radius=1.0)
    >>> # Use hit_sphere within a Taichi kernel
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.linalg import Vec3Like, as_vec3

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@dataclass(frozen=True, eq=False)
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere.
        radius: The radius of the sphere (positive float).

    Raises:
        ValueError: If the radius is not positive or the center is not a
            finite 3-vector.
    """

    center: Vec3Like
    radius: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "center", as_vec3(self.center, "Sphere center"))
        if not self.radius > 0.0:
            raise ValueError(f"Sphere radius must be positive, got {self.radius}")
        object.__setattr__(self, "radius", float(self.radius))

    def transformed(
        self, rotation: npt.NDArray[np.float64], translation: npt.NDArray[np.float64], scale: float
    ) -> "Sphere":
        """Return the sphere placed in world space by a similarity transform."""
        center = rotation @ (self.center * scale) + translation
        return Sphere(center=center, radius=self.radius * scale)


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve quadratic equation using robust formula from Ray Tracing Gems.

    Solves a*t^2 + 2*h*t + c = 0 using a numerically stable method.

    Args:
        h: Half of the linear coefficient.
        a: Quadratic coefficient.
        c: Constant term.
        sqrt_d: Square root of discriminant (h^2 - a*c).

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant))
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        # Tangent ray: fall back to the textbook formula
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    center: vec3,
    radius: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
):
    """Test for ray-sphere intersection using robust quadratic formula.

    The ray-sphere intersection is found by solving:
        |ray_origin + t * ray_direction - center|^2 = radius^2

    which expands to a*t^2 + 2*h*t + c = 0 with
        a = dot(direction, direction)
        h = dot(direction, oc)  (half of traditional b)
        c = dot(oc, oc) - radius^2
        oc = origin - center

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        center: The sphere center.
        radius: The sphere radius.
        t_min: Smallest accepted distance (inclusive).
        t_max: Distance bound (exclusive).

    Returns:
        Tuple of (hit, t): hit is 1 when a root lies in [t_min, t_max), and t
        is the nearest such root.
    """
    oc = ray_origin - center

    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - radius * radius

    discriminant = h * h - a * c

    did_hit = 0
    hit_t = 0.0

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        # Nearest root inside [t_min, t_max)
        if t0 >= t_min and t0 < t_max:
            did_hit = 1
            hit_t = t0
        elif t1 >= t_min and t1 < t_max:
            did_hit = 1
            hit_t = t1

    return did_hit, hit_t


@ti.func
def sphere_normal(center: vec3, point: vec3) -> vec3:
    """Outward unit normal of a sphere at a surface point."""
    return tm.normalize(point - center)
