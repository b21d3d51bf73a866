"""Quad primitive with ray-quad intersection.

A quad is defined by:
- corner: A corner point of the quad
- edge_u: Edge vector from the corner to an adjacent corner
- edge_v: Edge vector from the corner to the other adjacent corner

The quad spans the parallelogram from corner to corner+edge_u+edge_v. The
face normal is normalize(cross(edge_u, edge_v)), pointing in the direction
determined by the right-hand rule. Quads are single-sided for shading (the
normal is never flipped toward the viewer) but intersect from both sides.

Ray-quad intersection uses the parametric plane test:
1. Find where ray intersects the plane containing the quad
2. Check if the intersection point lies within the quad bounds

Example:
    >>> from pathtracer.geometry.quad import Quad
    >>> # Floor at y=0 with its normal pointing up (+Y)
    >>> floor = Quad(corner=(-5, 0, -5), edge_u=(0, 0, 10), edge_v=(10, 0, 0))
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.linalg import ZERO_LENGTH_SQUARED, Vec3Like, as_vec3

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@dataclass(frozen=True, eq=False)
class Quad:
    """A quad (parallelogram) defined by a corner point and two edge vectors.

    The quad represents the parallelogram with vertices at:
        corner, corner+edge_u, corner+edge_v, corner+edge_u+edge_v

    Attributes:
        corner: The corner point of the quad.
        edge_u: Edge vector from corner to an adjacent corner.
        edge_v: Edge vector from corner to the other adjacent corner.

    Raises:
        ValueError: If the edges are parallel or zero, leaving the quad
            without a normal.
    """

    corner: Vec3Like
    edge_u: Vec3Like
    edge_v: Vec3Like

    def __post_init__(self) -> None:
        object.__setattr__(self, "corner", as_vec3(self.corner, "Quad corner"))
        object.__setattr__(self, "edge_u", as_vec3(self.edge_u, "Quad edge_u"))
        object.__setattr__(self, "edge_v", as_vec3(self.edge_v, "Quad edge_v"))
        n = np.cross(self.edge_u, self.edge_v)
        if float(np.dot(n, n)) < ZERO_LENGTH_SQUARED:
            raise ValueError(
                f"Degenerate quad: edges {self.edge_u.tolist()} and "
                f"{self.edge_v.tolist()} do not span a plane"
            )

    @property
    def normal(self) -> npt.NDArray[np.float64]:
        """Unit face normal, normalize(cross(edge_u, edge_v))."""
        n = np.cross(self.edge_u, self.edge_v)
        return n / np.linalg.norm(n)

    def transformed(
        self, rotation: npt.NDArray[np.float64], translation: npt.NDArray[np.float64], scale: float
    ) -> "Quad":
        """Return the quad placed in world space by a similarity transform."""
        return Quad(
            corner=rotation @ (self.corner * scale) + translation,
            edge_u=rotation @ (self.edge_u * scale),
            edge_v=rotation @ (self.edge_v * scale),
        )


@ti.func
def hit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    corner: vec3,
    edge_u: vec3,
    edge_v: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
):
    """Test for ray-quad intersection.

    The ray-plane intersection is found by solving:
        ray_origin + t * ray_direction = corner + alpha * edge_u + beta * edge_v

    With n = edge_u x edge_v, the helper vectors
        w_u = (edge_v x n) / dot(n, n),  w_v = (n x edge_u) / dot(n, n)
    give alpha = dot(w_u, P - corner) and beta = dot(w_v, P - corner).

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        corner: Quad corner.
        edge_u: First edge vector.
        edge_v: Second edge vector.
        t_min: Smallest accepted distance (inclusive).
        t_max: Distance bound (exclusive).

    Returns:
        Tuple of (hit, t, alpha, beta) where (alpha, beta) in [0, 1]^2 are the
        hit point's coordinates along the two edges.
    """
    n = tm.cross(edge_u, edge_v)
    n_dot_n = tm.dot(n, n)
    normal = n / ti.sqrt(n_dot_n)
    d = tm.dot(normal, corner)

    denom = tm.dot(normal, ray_direction)

    did_hit = 0
    hit_t = 0.0
    alpha = 0.0
    beta = 0.0

    # Rays parallel to the plane never hit
    if ti.abs(denom) > 1e-8:
        t = (d - tm.dot(normal, ray_origin)) / denom

        if t >= t_min and t < t_max:
            p_minus_q = ray_origin + t * ray_direction - corner
            a = tm.dot(tm.cross(edge_v, n) / n_dot_n, p_minus_q)
            b = tm.dot(tm.cross(n, edge_u) / n_dot_n, p_minus_q)

            if a >= 0.0 and a <= 1.0 and b >= 0.0 and b <= 1.0:
                did_hit = 1
                hit_t = t
                alpha = a
                beta = b

    return did_hit, hit_t, alpha, beta


@ti.func
def quad_normal(edge_u: vec3, edge_v: vec3) -> vec3:
    """Compute the unit face normal, normalize(cross(edge_u, edge_v))."""
    return tm.normalize(tm.cross(edge_u, edge_v))
