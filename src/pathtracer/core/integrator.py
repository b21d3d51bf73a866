"""Path tracing integrator for Monte Carlo light transport.

This module implements the radiance estimator: an iterative path tracer
with point-light next event estimation, importance-sampled material
scattering and Russian roulette termination.

Each bounce of ``PathIntegrator.radiance``:

1. Finds the nearest hit in [T_MIN, T_MAX). A miss adds
   throughput * background and ends the path (escaped).
2. Resolves the shading frame and material at the hit.
3. Adds the surface's own emission.
4. Adds direct light from every unoccluded point light,
   throughput * brdf * cos(theta_in) * intensity / d^2.
5. Computes the bounce weight (BRDF * cos / pdf) and its largest channel p.
   A path with p <= 0 is absorbed. Once ``rr_min_bounces`` bounces have
   been taken, the path survives with probability p and its weight is
   divided by p (Russian roulette).
6. Multiplies the weight into the throughput, samples the next direction
   and continues from the hit point.

Paths that survive ``max_bounces`` bounces are truncated (exhausted).
There is no clamping inside the loop; non-finite values are dealt with by
the renderer.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.integrator import PathIntegrator
    >>> integrator = PathIntegrator(scene, max_bounces=10)
    >>> @ti.kernel
    ... def estimate(seed: ti.u32) -> ti.f32:
    ...     ctx = make_context(seed, 0)
    ...     return integrator.radiance(make_ray(origin, direction), ctx).x
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.context import next_uniform
from pathtracer.core.frame import Basis, Direction, make_direction
from pathtracer.core.ray import Ray, max_component, ray_at
from pathtracer.materials.base import Material
from pathtracer.materials.dispatch import brdf, emittance, sample_pdf, weight_pdf
from pathtracer.scene.scene import Scene

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Maximum ray bounces (path length)
MAX_BOUNCES = 10

# Bounces taken unconditionally before Russian roulette can terminate paths
MIN_BOUNCES_BEFORE_RR = 3

# Minimum hit distance, keeps rays from re-hitting the surface they leave
T_MIN = 1e-4

# Upper bound of the primary and bounce ray windows
T_MAX = 1e10

# Radiance of rays that escape the scene
BACKGROUND_COLOR = (0.5, 0.5, 0.5)


@ti.data_oriented
class PathIntegrator:
    """Radiance estimator bound to a committed scene.

    The settings are compile-time constants of every kernel that calls
    ``radiance``, so they are fixed at construction.

    Args:
        scene: A committed Scene. Borrowed, never modified.
        max_bounces: Maximum path length.
        rr_min_bounces: Number of bounces taken before Russian roulette is
            applied. Values >= max_bounces disable roulette.
        background: Radiance added for rays that escape the scene.

    Raises:
        RuntimeError: If the scene has not been committed.
        ValueError: If a setting is out of range.
    """

    def __init__(
        self,
        scene: Scene,
        max_bounces: int = MAX_BOUNCES,
        rr_min_bounces: int = MIN_BOUNCES_BEFORE_RR,
        background: tuple[float, float, float] = BACKGROUND_COLOR,
    ) -> None:
        if not scene.committed:
            raise RuntimeError("Scene must be committed before it can be rendered")
        if max_bounces < 1:
            raise ValueError(f"max_bounces must be at least 1, got {max_bounces}")
        if rr_min_bounces < 0:
            raise ValueError(f"rr_min_bounces must be non-negative, got {rr_min_bounces}")
        if len(background) != 3 or any(c < 0.0 for c in background):
            raise ValueError(f"background must be 3 non-negative values, got {background}")

        self.scene = scene
        self.max_bounces = int(max_bounces)
        self.rr_min_bounces = int(rr_min_bounces)
        self.background = tuple(float(c) for c in background)

    @ti.func
    def direct_lighting(
        self, hit_point: vec3, basis: Basis, material: Material, outgoing: Direction
    ) -> vec3:
        """Unoccluded point-light contribution at a surface point.

        Shadow rays leave the hit point along the unit direction to each
        light and are tested over [T_MIN, distance to the light).

        Args:
            hit_point: The shaded point.
            basis: Shading frame at the point.
            material: Material at the point.
            outgoing: Direction toward the previous path vertex.

        Returns:
            Sum over lights of brdf * cos(theta_in) * intensity / d^2.
        """
        result = vec3(0.0)
        for j in range(self.scene.light_count):
            position, intensity = self.scene.light(j)
            to_light = position - hit_point
            distance_squared = tm.dot(to_light, to_light)
            distance = ti.sqrt(distance_squared)
            incoming = make_direction(to_light / distance, basis)

            shadow = Ray(origin=hit_point, direction=incoming.vector)
            if self.scene.occluded(shadow, T_MIN, distance) == 0:
                f = brdf(material, incoming, outgoing, basis)
                result += f * incoming.cos_theta * intensity / distance_squared
        return result

    @ti.func
    def radiance(self, primary: Ray, ctx: ti.template()) -> vec3:
        """Estimate the radiance arriving at the ray origin along the ray.

        Args:
            primary: The camera ray, with a unit direction.
            ctx: The task's RenderContext; consumed for roulette and
                diffuse sampling.

        Returns:
            One Monte Carlo estimate of the incoming radiance (RGB).
        """
        bg = self.background
        background = vec3(bg[0], bg[1], bg[2])

        origin = primary.origin
        direction = primary.direction
        result = vec3(0.0)
        throughput = vec3(1.0)

        # Path continuation flag (escaped or absorbed paths set it to 0)
        active = 1

        for bounce in range(self.max_bounces):
            if active == 1:
                ray = Ray(origin=origin, direction=direction)
                hit = self.scene.intersect(ray, T_MIN, T_MAX)

                if hit.hit == 0:
                    result += throughput * background
                    active = 0
                else:
                    hit_point = ray_at(ray, hit.distance)
                    attributes = self.scene.surface_at(ray, hit)
                    basis = attributes.basis
                    material = attributes.material
                    outgoing = make_direction(-ray.direction, basis)

                    result += throughput * emittance(material, outgoing, basis)
                    result += throughput * self.direct_lighting(
                        hit_point, basis, material, outgoing
                    )

                    weight = weight_pdf(material, outgoing, basis)
                    p = max_component(weight)

                    if p <= 0.0:
                        active = 0
                    elif bounce >= self.rr_min_bounces:
                        if next_uniform(ctx) < p:
                            weight /= p
                        else:
                            active = 0

                    if active == 1:
                        throughput *= weight
                        direction = sample_pdf(material, outgoing, basis, ctx)
                        origin = hit_point

        return result
