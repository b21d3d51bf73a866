"""Mirror (perfect specular) material implementation.

A mirror reflects every incoming ray about the surface normal:

    R = 2 * cos(theta_out) * N - V_out

where V_out is the outgoing direction (pointing away from the surface) and
cos(theta_out) its clamped cosine against the normal. Sampling is
deterministic and consumes no randomness.

The true mirror BRDF is a delta function. Two independently chosen
directions (a point light direction and the camera direction) are exact
reflections of each other with probability zero, so for direct point-light
evaluation the BRDF is taken to be zero.

Example:
    >>> from pathtracer.materials.mirror import Mirror
    >>> tinted = Mirror(reflectance=(0.85, 0.95, 0.85))
"""

from dataclasses import dataclass
from typing import ClassVar

import taichi as ti
import taichi.math as tm

from pathtracer.core.frame import Basis, Direction
from pathtracer.materials.base import RGB, MaterialKind, validate_emittance, validate_reflectance

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(frozen=True)
class Mirror:
    """Mirror material description.

    Attributes:
        reflectance: The reflection color (RGB, each component in [0, 1]).
        emittance: Constant emitted radiance (RGB, non-negative).

    Raises:
        ValueError: If any reflectance component is outside [0, 1] or any
            emittance component is negative.
    """

    reflectance: RGB
    emittance: RGB = (0.0, 0.0, 0.0)

    kind: ClassVar[MaterialKind] = MaterialKind.MIRROR

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "reflectance", validate_reflectance(self.reflectance, "Reflectance")
        )
        object.__setattr__(self, "emittance", validate_emittance(self.emittance))


@ti.func
def sample_mirror(outgoing: Direction, basis: Basis) -> vec3:
    """Return the perfect reflection of the outgoing direction.

    Args:
        outgoing: Direction toward the previous path vertex.
        basis: The shading frame at the hit point.

    Returns:
        2 * cos(theta_out) * normal - outgoing.vector.
    """
    return 2.0 * outgoing.cos_theta * basis.normal - outgoing.vector
