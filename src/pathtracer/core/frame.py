"""Local shading frames and directions expressed relative to them.

A Basis is an orthonormal frame built around a surface normal. Materials
sample directions in a local space where +Y is "up" (the normal) and map them
to world space through the basis:

    world = x * tangent + y * normal + z * bitangent

A Direction pairs a world-space unit vector with its clamped cosine against a
basis normal, which is the quantity every BRDF and sampling routine needs.
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# Below this squared xz-length the normal is treated as parallel to +/-Y
_PARALLEL_EPSILON = 1e-8


@ti.dataclass
class Basis:
    """An orthonormal frame (tangent, normal, bitangent).

    Attributes:
        tangent: Local +X axis in world space.
        normal: Local +Y axis in world space (the surface normal).
        bitangent: Local +Z axis in world space.
    """

    tangent: vec3
    normal: vec3
    bitangent: vec3


@ti.dataclass
class Direction:
    """A world-space unit vector and its cosine against a basis normal.

    Attributes:
        vector: The direction (unit length).
        cos_theta: max(0, dot(basis.normal, vector)), always in [0, 1].
    """

    vector: vec3
    cos_theta: ti.f32


@ti.func
def make_basis(normal: vec3) -> Basis:
    """Build an orthonormal basis whose normal axis is the given normal.

    The tangent candidate is cross(up, n) = (n.z, 0, -n.x). When the normal is
    (nearly) parallel to the up axis that candidate degenerates, so the X axis
    is used instead, orthogonalized against the normal.

    Args:
        normal: The surface normal. Need not be unit length but must be
            non-zero (checked when Taichi runs in debug mode; geometry
            construction rejects zero normals on the host).

    Returns:
        A Basis with unit, pairwise orthogonal axes.
    """
    assert tm.dot(normal, normal) > 0.0, "cannot build a basis from a zero normal"
    n = tm.normalize(normal)

    tangent = vec3(n.z, 0.0, -n.x)
    if n.x * n.x + n.z * n.z < _PARALLEL_EPSILON:
        tangent = vec3(1.0, 0.0, 0.0) - n.x * n
    tangent = tm.normalize(tangent)

    bitangent = tm.cross(tangent, n)
    return Basis(tangent=tangent, normal=n, bitangent=bitangent)


@ti.func
def to_world(basis: Basis, local: vec3) -> vec3:
    """Transform a local-space vector (+Y up) into world space."""
    return local.x * basis.tangent + local.y * basis.normal + local.z * basis.bitangent


@ti.func
def make_direction(vector: vec3, basis: Basis) -> Direction:
    """Pair a unit vector with its clamped cosine against basis.normal.

    Directions pointing into the surface get a cosine of exactly zero.
    """
    return Direction(vector=vector, cos_theta=ti.max(0.0, tm.dot(basis.normal, vector)))
