"""Geometry module for shape primitives.

Components:
    sphere: Sphere description with robust ray-sphere intersection
    quad: Parallelogram description with ray-quad intersection
    mesh: Triangle meshes, OBJ loading, normal generation and
        Moller-Trumbore intersection

Host-side descriptions validate themselves on construction and know how to
move into world space. Intersection routines are Taichi functions
(@ti.func) that return the hit flag, distance and surface coordinates:

    hit, t, ... = hit_shape(ray_origin, ray_direction, shape_data, t_min, t_max)
"""

from .mesh import TriangleMesh, hit_triangle, interpolate_normal, load_obj
from .quad import Quad, hit_quad, quad_normal
from .sphere import Sphere, hit_sphere, sphere_normal

__all__ = [
    "Sphere",
    "hit_sphere",
    "sphere_normal",
    "Quad",
    "hit_quad",
    "quad_normal",
    "TriangleMesh",
    "load_obj",
    "hit_triangle",
    "interpolate_normal",
]
