"""Lambertian (ideal diffuse) material implementation.

This module implements the Lambertian BRDF, which models ideal diffuse
reflection where incident light is scattered uniformly in all directions
weighted by the cosine of the angle from the surface normal.

The Lambertian BRDF is:
    f_r(wi, wo) = albedo / pi

Directions are importance sampled from the cosine-weighted hemisphere, whose
probability density is:
    pdf(wi) = cos(theta) / pi

so the per-bounce weight BRDF * cos(theta) / pdf collapses to the albedo.

Example:
    >>> from pathtracer.materials.lambertian import Lambertian
    >>> gray = Lambertian(albedo=(0.8, 0.8, 0.8))
    >>> lamp = Lambertian(albedo=(0.0, 0.0, 0.0), emittance=(4.0, 4.0, 4.0))
"""

from dataclasses import dataclass
from typing import ClassVar

import taichi as ti
import taichi.math as tm

from pathtracer.core.context import next_uniform
from pathtracer.core.frame import Basis, to_world
from pathtracer.materials.base import RGB, MaterialKind, validate_emittance, validate_reflectance

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(frozen=True)
class Lambertian:
    """Lambertian (ideal diffuse) material description.

    Attributes:
        albedo: The diffuse reflectance color (RGB, each component in [0, 1]).
            Represents the fraction of light reflected for each color channel.
        emittance: Constant emitted radiance (RGB, non-negative). Defaults to
            black, i.e. not an emitter.

    Raises:
        ValueError: If any albedo component is outside [0, 1] or any
            emittance component is negative.
    """

    albedo: RGB
    emittance: RGB = (0.0, 0.0, 0.0)

    kind: ClassVar[MaterialKind] = MaterialKind.LAMBERTIAN

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", validate_reflectance(self.albedo, "Albedo"))
        object.__setattr__(self, "emittance", validate_emittance(self.emittance))

    @property
    def reflectance(self) -> RGB:
        """The value stored in the device record's reflectance slot."""
        return self.albedo


@ti.func
def eval_lambertian(albedo: vec3) -> vec3:
    """Evaluate the Lambertian BRDF.

    The Lambertian BRDF is constant for all directions:
        f_r = albedo / pi

    This function returns the BRDF value (not including the cosine term,
    which is applied separately in the rendering equation).

    Args:
        albedo: The diffuse reflectance color (RGB).

    Returns:
        The BRDF value (albedo / pi).
    """
    return albedo / tm.pi


@ti.func
def pdf_lambertian(normal: vec3, direction: vec3) -> ti.f32:
    """Compute the PDF for cosine-weighted hemisphere sampling.

    Args:
        normal: The surface normal (should be normalized).
        direction: The sampled direction (should be normalized).

    Returns:
        cos(theta) / pi, or 0 if the direction is below the surface.
    """
    cos_theta = tm.dot(normal, direction)
    pdf = 0.0
    if cos_theta > 0.0:
        pdf = cos_theta / tm.pi
    return pdf


@ti.func
def sample_lambertian(basis: Basis, ctx: ti.template()) -> vec3:
    """Draw a cosine-weighted direction about basis.normal.

    With u1, u2 uniform in [0, 1):
        sin(theta) = sqrt(u1), cos(theta) = sqrt(1 - u1), phi = 2 * pi * u2

    The local vector (sin(theta) cos(phi), cos(theta), sin(theta) sin(phi))
    has +Y as up and is mapped to world space through the basis.

    Args:
        basis: The shading frame at the hit point.
        ctx: The task's RenderContext; two uniforms are drawn from it.

    Returns:
        A unit direction in the hemisphere around basis.normal.
    """
    u1 = next_uniform(ctx)
    u2 = next_uniform(ctx)

    sin_theta = ti.sqrt(u1)
    cos_theta = ti.sqrt(1.0 - u1)
    phi = 2.0 * tm.pi * u2

    local = vec3(sin_theta * ti.cos(phi), cos_theta, sin_theta * ti.sin(phi))
    return tm.normalize(to_world(basis, local))
