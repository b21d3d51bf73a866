"""Core rendering module.

Components:
    ray: Ray data structure and kernel-side vector helpers
    linalg: Host-side (NumPy) vectors and rotation matrices
    frame: Orthonormal shading frames and local directions
    context: Per-task render context owning a random stream
    integrator: The path tracing radiance estimator
    renderer: Parallel render loop and progressive accumulation

All compute-intensive operations use Taichi kernels for GPU acceleration.
"""

from .context import RenderContext, make_context, next_uniform
from .frame import Basis, Direction, make_basis, make_direction, to_world
from .ray import Ray, make_ray, max_component, ray_at, vec3

# Note: integrator and renderer are NOT imported here; they depend on the
# materials and camera packages. Import them from pathtracer.core.integrator
# and pathtracer.core.renderer.

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "max_component",
    "vec3",
    "Basis",
    "Direction",
    "make_basis",
    "make_direction",
    "to_world",
    "RenderContext",
    "make_context",
    "next_uniform",
]
