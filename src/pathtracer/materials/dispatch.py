"""Material dispatch on Material.kind.

Each function selects the reflectance model from the material's tag. The
integrator only ever calls these four operations, so adding a model means
adding a MaterialKind and a branch here.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.frame import Basis, Direction
from pathtracer.materials.base import Material, MaterialKind
from pathtracer.materials.lambertian import eval_lambertian, sample_lambertian
from pathtracer.materials.mirror import sample_mirror

vec3 = tm.vec3

# Plain ints so kernels see compile-time constants
_LAMBERTIAN = int(MaterialKind.LAMBERTIAN)
_MIRROR = int(MaterialKind.MIRROR)


@ti.func
def weight_pdf(material: Material, outgoing: Direction, basis: Basis) -> vec3:
    """Throughput factor for one bounce, BRDF * cos / pdf.

    For cosine-sampled Lambertian surfaces this is the albedo; for mirrors it
    is the reflectance. Both are stored in the same slot.
    """
    return material.reflectance


@ti.func
def sample_pdf(material: Material, outgoing: Direction, basis: Basis, ctx: ti.template()) -> vec3:
    """Choose the next path direction.

    Args:
        material: The surface material.
        outgoing: Direction toward the previous path vertex.
        basis: The shading frame at the hit point.
        ctx: The task's RenderContext. Lambertian surfaces draw two uniforms;
            mirrors draw none.

    Returns:
        The world-space direction of the next ray.
    """
    direction = vec3(0.0)
    if material.kind == _MIRROR:
        direction = sample_mirror(outgoing, basis)
    else:
        direction = sample_lambertian(basis, ctx)
    return direction


@ti.func
def brdf(material: Material, incoming: Direction, outgoing: Direction, basis: Basis) -> vec3:
    """Evaluate the BRDF for an explicit pair of directions.

    Mirrors return zero: a delta lobe never lines up with an independently
    chosen light direction.
    """
    value = vec3(0.0)
    if material.kind == _LAMBERTIAN:
        value = eval_lambertian(material.reflectance)
    return value


@ti.func
def emittance(material: Material, outgoing: Direction, basis: Basis) -> vec3:
    """Self-emission of the surface."""
    return material.emittance
