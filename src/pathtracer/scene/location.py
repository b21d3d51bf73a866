"""Placement of a surface in the world.

A Location is a similarity transform (uniform scale, then rotation, then
translation) plus a visibility flag. Scenes apply it once, when they are
committed, so kernels only ever see world-space geometry.
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from pathtracer.core.linalg import Vec3Like, as_vec3, rotation


@dataclass(frozen=True, eq=False)
class Location:
    """Where and how a surface is placed.

    Attributes:
        translation: World-space offset applied last.
        pitch: Rotation about +X in radians.
        yaw: Rotation about +Y in radians.
        roll: Rotation about +Z in radians.
        scale: Uniform scale factor (positive).
        visible: Invisible surfaces are skipped when the scene is committed.

    Raises:
        ValueError: If scale is not positive or translation is not a finite
            3-vector.
    """

    translation: Vec3Like = (0.0, 0.0, 0.0)
    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0
    scale: float = 1.0
    visible: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "translation", as_vec3(self.translation, "Location translation"))
        if not self.scale > 0.0:
            raise ValueError(f"Location scale must be positive, got {self.scale}")

    @property
    def rotation(self) -> npt.NDArray[np.float64]:
        """The 3x3 rotation matrix for (pitch, yaw, roll)."""
        return rotation(self.pitch, self.yaw, self.roll)

    def transform_point(self, point: Vec3Like) -> npt.NDArray[np.float64]:
        """Map a local-space point to world space."""
        return self.rotation @ (as_vec3(point, "point") * self.scale) + self.translation

    def place(self, geometry):
        """Return a world-space copy of a Sphere, Quad or TriangleMesh."""
        return geometry.transformed(self.rotation, self.translation, float(self.scale))
