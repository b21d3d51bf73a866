"""Pitch/yaw pinhole camera for primary ray generation.

The camera is placed at ``position`` and looks along its local +Z axis,
rotated first by ``pitch`` about +X (positive looks up) and then by ``yaw``
about +Y. There is no roll. The vertical field of view sets the distance of
the image plane:

    fov_factor = 1 / tan(fov / 2)

and a primary ray through normalized image coordinates (u, v) in [-1, 1]
has direction

    normalize(R @ (u, v, fov_factor))

Changing any property eagerly recomputes the cached rotation and
fov_factor, so ``trace_ray`` never sees stale state. The same mapping runs
inside kernels through ``camera_ray``, with the cached values passed as
kernel arguments.

Example:
    >>> from pathtracer.camera.camera import Camera
    >>> camera = Camera.from_degrees(position=(0, 1, -2), pitch=-11.5, yaw=0, fov=75)
    >>> origin, direction = camera.trace_ray(0.0, 0.0)
"""

import math

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.linalg import Vec3Like, as_vec3, rotation
from pathtracer.core.ray import Ray, make_ray

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


class Camera:
    """A pinhole camera described by position, pitch, yaw and vertical fov.

    Args:
        position: Camera position in world space.
        pitch: Rotation about +X in radians; positive looks up.
        yaw: Rotation about +Y in radians; positive turns +Z toward +X.
        fov: Vertical field of view in radians, strictly between 0 and pi.

    Raises:
        ValueError: If fov is outside (0, pi) or position is not a finite
            3-vector.
    """

    def __init__(
        self,
        position: Vec3Like = (0.0, 0.0, 0.0),
        pitch: float = 0.0,
        yaw: float = 0.0,
        fov: float = math.pi / 2.0,
    ) -> None:
        self._position = as_vec3(position, "Camera position")
        self._pitch = float(pitch)
        self._yaw = float(yaw)
        self._fov = self._check_fov(fov)
        self._update()

    @classmethod
    def from_degrees(
        cls,
        position: Vec3Like = (0.0, 0.0, 0.0),
        pitch: float = 0.0,
        yaw: float = 0.0,
        fov: float = 90.0,
    ) -> "Camera":
        """Create a camera with pitch, yaw and fov given in degrees."""
        return cls(position, math.radians(pitch), math.radians(yaw), math.radians(fov))

    @staticmethod
    def _check_fov(fov: float) -> float:
        if not 0.0 < fov < math.pi:
            raise ValueError(f"Camera fov must be in (0, pi) radians, got {fov}")
        return float(fov)

    def _update(self) -> None:
        self._rotation = rotation(self._pitch, self._yaw)
        self._fov_factor = 1.0 / math.tan(self._fov / 2.0)

    @property
    def position(self) -> npt.NDArray[np.float64]:
        return self._position

    @position.setter
    def position(self, value: Vec3Like) -> None:
        self._position = as_vec3(value, "Camera position")

    @property
    def pitch(self) -> float:
        return self._pitch

    @pitch.setter
    def pitch(self, value: float) -> None:
        self._pitch = float(value)
        self._update()

    @property
    def yaw(self) -> float:
        return self._yaw

    @yaw.setter
    def yaw(self, value: float) -> None:
        self._yaw = float(value)
        self._update()

    @property
    def fov(self) -> float:
        return self._fov

    @fov.setter
    def fov(self, value: float) -> None:
        self._fov = self._check_fov(value)
        self._update()

    @property
    def rotation(self) -> npt.NDArray[np.float64]:
        """Cached view rotation, rotation_y(yaw) @ rotation_x(pitch)."""
        return self._rotation

    @property
    def fov_factor(self) -> float:
        """Cached 1 / tan(fov / 2)."""
        return self._fov_factor

    def trace_ray(
        self, u: float, v: float
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Build the primary ray through image coordinates (u, v).

        Args:
            u: Horizontal coordinate in [-1, 1], aspect-corrected by the caller.
            v: Vertical coordinate in [-1, 1], positive up.

        Returns:
            Tuple of (origin, unit direction) as float64 arrays.
        """
        direction = self._rotation @ np.array([u, v, self._fov_factor])
        return self._position.copy(), direction / np.linalg.norm(direction)

    def __repr__(self) -> str:
        return (
            f"Camera(position={self._position.tolist()}, pitch={self._pitch}, "
            f"yaw={self._yaw}, fov={self._fov})"
        )


@ti.func
def camera_ray(
    rotation: tm.mat3, position: vec3, fov_factor: ti.f32, u: ti.f32, v: ti.f32
) -> Ray:
    """Kernel-side version of Camera.trace_ray.

    Returns:
        The primary Ray from the camera position, with a unit direction.
    """
    return make_ray(position, rotation @ vec3(u, v, fov_factor))
