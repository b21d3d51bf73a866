"""Triangle meshes: OBJ loading, normal generation and ray-triangle tests.

A TriangleMesh is an indexed face set. Each face gets a unit face normal
from the right-hand rule over its vertex order (v0, v1, v2):

    n_face = normalize(cross(v1 - v0, v2 - v0))

With ``smooth_normals`` enabled every vertex also gets a normal that is the
normalized average of the face normals of the faces that use it, and the
shading normal at a hit is interpolated from the three vertex normals with
the hit's barycentric coordinates (u, v):

    n = n1 * u + n2 * v + n0 * (1 - u - v)

Meshes are validated on the host: a zero-area triangle or a vertex whose
adjacent face normals cancel out raises ValueError, so every normal that
reaches a kernel is non-zero.

Example:
    >>> from pathtracer.geometry.mesh import load_obj
    >>> cube = load_obj("scenes/cube.obj", smooth_normals=True)
    >>> cube.triangle_count
    12
"""

import logging
from os import PathLike

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
import trimesh

from pathtracer.core.linalg import ZERO_LENGTH_SQUARED

logger = logging.getLogger(__name__)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Determinants smaller than this are treated as rays parallel to the triangle
_PARALLEL_EPSILON = 1e-9


class TriangleMesh:
    """An indexed triangle mesh with precomputed normals.

    Attributes:
        vertices: (N, 3) float64 vertex positions.
        faces: (M, 3) int32 vertex indices per triangle.
        smooth_normals: Whether shading interpolates vertex normals.
        face_normals: (M, 3) unit face normals.
        vertex_normals: (N, 3) unit vertex normals when smooth_normals is
            set, otherwise None.
    """

    def __init__(
        self,
        vertices: npt.ArrayLike,
        faces: npt.ArrayLike,
        smooth_normals: bool = False,
    ) -> None:
        """Validate the mesh and compute its normals.

        Args:
            vertices: Vertex positions, shape (N, 3).
            faces: Triangle vertex indices, shape (M, 3).
            smooth_normals: Compute per-vertex normals for smooth shading.

        Raises:
            ValueError: If the arrays are malformed, a face index is out of
                range, a triangle has zero area, or a vertex normal averages
                to zero.
        """
        self.vertices = np.asarray(vertices, dtype=np.float64)
        self.faces = np.asarray(faces, dtype=np.int64)
        self.smooth_normals = bool(smooth_normals)

        if self.vertices.ndim != 2 or self.vertices.shape[1] != 3:
            raise ValueError(f"Mesh vertices must have shape (N, 3), got {self.vertices.shape}")
        if self.faces.ndim != 2 or self.faces.shape[1] != 3:
            raise ValueError(f"Mesh faces must have shape (M, 3), got {self.faces.shape}")
        if len(self.faces) == 0:
            raise ValueError("Mesh has no faces")
        if not np.all(np.isfinite(self.vertices)):
            raise ValueError("Mesh vertices must be finite")
        if self.faces.min() < 0 or self.faces.max() >= len(self.vertices):
            raise ValueError(
                f"Mesh face indices must be in [0, {len(self.vertices)}), "
                f"got range [{self.faces.min()}, {self.faces.max()}]"
            )

        self.faces = self.faces.astype(np.int32)
        self.face_normals = self._compute_face_normals()
        self.vertex_normals = self._compute_vertex_normals() if self.smooth_normals else None

    @property
    def triangle_count(self) -> int:
        """Number of triangles in the mesh."""
        return len(self.faces)

    def _compute_face_normals(self) -> npt.NDArray[np.float64]:
        v0 = self.vertices[self.faces[:, 0]]
        v1 = self.vertices[self.faces[:, 1]]
        v2 = self.vertices[self.faces[:, 2]]
        normals = np.cross(v1 - v0, v2 - v0)

        length_squared = np.einsum("ij,ij->i", normals, normals)
        degenerate = np.flatnonzero(length_squared < ZERO_LENGTH_SQUARED)
        if len(degenerate) > 0:
            raise ValueError(
                f"Mesh has {len(degenerate)} zero-area triangle(s), first is face {degenerate[0]}"
            )
        return normals / np.sqrt(length_squared)[:, None]

    def _compute_vertex_normals(self) -> npt.NDArray[np.float64]:
        sums = np.zeros_like(self.vertices)
        for corner in range(3):
            np.add.at(sums, self.faces[:, corner], self.face_normals)

        used = np.zeros(len(self.vertices), dtype=bool)
        used[self.faces.ravel()] = True

        length_squared = np.einsum("ij,ij->i", sums, sums)
        cancelled = np.flatnonzero(used & (length_squared < ZERO_LENGTH_SQUARED))
        if len(cancelled) > 0:
            raise ValueError(
                f"Mesh has {len(cancelled)} vertex normal(s) that average to zero, "
                f"first is vertex {cancelled[0]}"
            )

        normals = np.zeros_like(sums)
        normals[used] = sums[used] / np.sqrt(length_squared[used])[:, None]
        return normals

    def transformed(
        self, rotation: npt.NDArray[np.float64], translation: npt.NDArray[np.float64], scale: float
    ) -> "TriangleMesh":
        """Return the mesh placed in world space by a similarity transform."""
        vertices = (self.vertices * scale) @ rotation.T + translation
        return TriangleMesh(vertices, self.faces, smooth_normals=self.smooth_normals)


def load_obj(path: str | PathLike, smooth_normals: bool = False) -> TriangleMesh:
    """Load a Wavefront OBJ file as a TriangleMesh.

    Polygons are triangulated and duplicate vertices merged by trimesh.
    Normals stored in the file are ignored; they are recomputed from the
    geometry.

    Args:
        path: Path to the .obj file.
        smooth_normals: Compute per-vertex normals for smooth shading.

    Returns:
        The loaded mesh.

    Raises:
        ValueError: If the file holds no triangles or the mesh fails
            validation.
    """
    loaded = trimesh.load(path, force="mesh")
    vertices = np.asarray(loaded.vertices, dtype=np.float64)
    faces = np.asarray(loaded.faces, dtype=np.int64)
    if len(faces) == 0:
        raise ValueError(f"OBJ file {path} contains no triangles")

    logger.debug("Loaded %s: %d vertices, %d triangles", path, len(vertices), len(faces))
    return TriangleMesh(vertices, faces, smooth_normals=smooth_normals)


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    v0: vec3,
    v1: vec3,
    v2: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
):
    """Moller-Trumbore ray-triangle intersection.

    Solves ray_origin + t * ray_direction = (1 - u - v) * v0 + u * v1 + v * v2.
    Triangles are hit from both sides.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        v0: First vertex.
        v1: Second vertex.
        v2: Third vertex.
        t_min: Smallest accepted distance (inclusive).
        t_max: Distance bound (exclusive).

    Returns:
        Tuple of (hit, t, u, v) with (u, v) the barycentric weights of v1
        and v2.
    """
    edge1 = v1 - v0
    edge2 = v2 - v0
    p = tm.cross(ray_direction, edge2)
    det = tm.dot(edge1, p)

    did_hit = 0
    hit_t = 0.0
    bary_u = 0.0
    bary_v = 0.0

    if ti.abs(det) > _PARALLEL_EPSILON:
        inv_det = 1.0 / det
        s = ray_origin - v0
        u = tm.dot(s, p) * inv_det
        if u >= 0.0 and u <= 1.0:
            q = tm.cross(s, edge1)
            v = tm.dot(ray_direction, q) * inv_det
            if v >= 0.0 and u + v <= 1.0:
                t = tm.dot(edge2, q) * inv_det
                if t >= t_min and t < t_max:
                    did_hit = 1
                    hit_t = t
                    bary_u = u
                    bary_v = v

    return did_hit, hit_t, bary_u, bary_v


@ti.func
def interpolate_normal(n0: vec3, n1: vec3, n2: vec3, u: ti.f32, v: ti.f32) -> vec3:
    """Barycentric blend of three vertex normals, n1*u + n2*v + n0*(1-u-v)."""
    return n1 * u + n2 * v + n0 * (1.0 - u - v)
