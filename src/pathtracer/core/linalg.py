"""Host-side (NumPy) linear algebra used while building scenes and cameras.

Everything here runs in Python scope before rendering starts. Kernels never
call into this module; they receive the baked results through fields or
kernel arguments.
"""

import numpy as np
import numpy.typing as npt

Vec3Like = tuple[float, float, float] | list[float] | npt.NDArray[np.floating]

# Squared length below which a vector is treated as zero
ZERO_LENGTH_SQUARED = 1e-20


def as_vec3(value: Vec3Like, name: str = "vector") -> npt.NDArray[np.float64]:
    """Convert a 3-sequence to a float64 array.

    Raises:
        ValueError: If value does not hold exactly three finite numbers.
    """
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have exactly 3 components, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite, got {arr.tolist()}")
    return arr


def normalize(value: Vec3Like, name: str = "vector") -> npt.NDArray[np.float64]:
    """Normalize a vector, failing fast on zero length.

    Args:
        value: The vector to normalize.
        name: Used in the error message to identify the offending input.

    Returns:
        The unit vector in the direction of value.

    Raises:
        ValueError: If value is (numerically) zero.
    """
    v = as_vec3(value, name)
    length_squared = float(np.dot(v, v))
    if length_squared < ZERO_LENGTH_SQUARED:
        raise ValueError(f"{name} has zero length and cannot be normalized: {v.tolist()}")
    return v / np.sqrt(length_squared)


def rotation_x(angle: float) -> npt.NDArray[np.float64]:
    """Rotation about +X. A positive angle tilts +Z toward +Y (looks up)."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, s], [0.0, -s, c]])


def rotation_y(angle: float) -> npt.NDArray[np.float64]:
    """Rotation about +Y. A positive angle turns +Z toward +X."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def rotation_z(angle: float) -> npt.NDArray[np.float64]:
    """Rotation about +Z. A positive angle turns +X toward +Y."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def rotation(pitch: float, yaw: float, roll: float = 0.0) -> npt.NDArray[np.float64]:
    """Compose a rotation from pitch, yaw and roll (radians).

    Roll is applied first (about the local forward axis), then pitch, then yaw,
    so yaw always turns about the world up axis.
    """
    return rotation_y(yaw) @ rotation_x(pitch) @ rotation_z(roll)
