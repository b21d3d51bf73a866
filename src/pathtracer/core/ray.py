"""Ray data structure and small vector utilities used inside Taichi kernels.

This module provides the Ray record that flows from ``camera_ray`` through
``PathIntegrator.radiance`` into the scene queries (``Scene.intersect``,
``Scene.occluded``, ``Scene.surface_at``), plus the small vector helpers
they share. A new Ray is built at every bounce and for every shadow ray.
All functions are ``@ti.func`` so they inline into the render kernel.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 1.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, 1.0)
    >>> # inside a kernel:
    >>> # ray = make_ray(origin, direction)
    >>> # point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Ray:
    """A ray with an origin point and a unit direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction of the ray (vec3). Always normalized by the
            code that builds rays (camera and integrator), so hit distances
            are world-space distances.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from an origin and a direction, normalizing the direction.

    Args:
        origin: The starting point of the ray.
        direction: Any non-zero direction vector.

    Returns:
        A new Ray instance with a unit direction.
    """
    return Ray(origin=origin, direction=tm.normalize(direction))


@ti.func
def max_component(v: vec3) -> ti.f32:
    """Return the largest of the three components of v."""
    return ti.max(v.x, ti.max(v.y, v.z))

