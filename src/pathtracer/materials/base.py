"""Material record shared by every reflectance model.

Materials are a tagged variant: on the device every material is the same
``Material`` struct and the ``kind`` tag selects which model the dispatch
functions in ``pathtracer.materials.dispatch`` evaluate. On the host each
model has its own frozen dataclass (``Lambertian``, ``Mirror``) that validates
its parameters and knows how to fill the record.
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

RGB = tuple[float, float, float]


class MaterialKind(IntEnum):
    """Tag stored in Material.kind.

    Used for material dispatch in the path tracer to determine which
    reflectance model to evaluate.
    """

    LAMBERTIAN = 0
    MIRROR = 1


@ti.dataclass
class Material:
    """Device-side material record.

    Attributes:
        kind: A MaterialKind value.
        reflectance: Per-channel reflectance in [0, 1]. The albedo for
            Lambertian surfaces, the reflection color for mirrors.
        emittance: Constant self-emission (zero for non-emitters).
    """

    kind: ti.i32
    reflectance: vec3
    emittance: vec3


def validate_reflectance(value: RGB, name: str) -> RGB:
    """Check a reflectance color for energy conservation.

    Raises:
        ValueError: If the color does not have three components or any
            component is outside [0, 1].
    """
    if len(value) != 3:
        raise ValueError(f"{name} must have exactly 3 components, got {len(value)}")
    for i, component in enumerate(value):
        if not 0.0 <= component <= 1.0:
            raise ValueError(
                f"{name} component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )
    return (float(value[0]), float(value[1]), float(value[2]))


def validate_emittance(value: RGB) -> RGB:
    """Check an emission color.

    Values above 1.0 are allowed (HDR emitters).

    Raises:
        ValueError: If the color does not have three components or any
            component is negative.
    """
    if len(value) != 3:
        raise ValueError(f"Emittance must have exactly 3 components, got {len(value)}")
    for i, component in enumerate(value):
        if component < 0.0:
            raise ValueError(f"Emittance component {i} = {component} is negative")
    return (float(value[0]), float(value[1]), float(value[2]))
