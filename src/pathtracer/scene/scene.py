"""Scene container and the ray queries the integrator runs against it.

A Scene collects surfaces (geometry + material + location) and point lights
on the host, then ``commit()`` bakes every visible surface into world space
and uploads it to Taichi fields in one go. After commit the scene is frozen:
its primitive counts become compile-time constants of every kernel that
queries it, and further ``add_*`` calls raise RuntimeError.

The query is a brute-force loop over all primitives, like the scene
intersection of the original Python raytracer. Hits use the half-open
window [t_min, t_max).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry.sphere import Sphere
    >>> from pathtracer.materials.lambertian import Lambertian
    >>> from pathtracer.scene.scene import PointLight, Scene
    >>> scene = Scene()
    >>> ball = scene.add_surface(Sphere((0, 0, 3), 1.0), Lambertian((0.8, 0.8, 0.8)))
    >>> scene.add_light(PointLight(position=(0, 3, 0), intensity=10.0))
    0
    >>> scene.commit()
    >>> # Use scene.intersect / scene.surface_at within a Taichi kernel
"""

import logging
from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.frame import Basis, make_basis
from pathtracer.core.linalg import Vec3Like, as_vec3
from pathtracer.core.ray import Ray, ray_at
from pathtracer.geometry.mesh import TriangleMesh, hit_triangle, interpolate_normal
from pathtracer.geometry.quad import Quad, hit_quad, quad_normal
from pathtracer.geometry.sphere import Sphere, hit_sphere, sphere_normal
from pathtracer.materials.base import Material
from pathtracer.materials.lambertian import Lambertian
from pathtracer.materials.mirror import Mirror
from pathtracer.scene.location import Location

logger = logging.getLogger(__name__)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


class ShapeType(IntEnum):
    """Which primitive storage a Hit refers to."""

    SPHERE = 0
    QUAD = 1
    TRIANGLE = 2


_SPHERE = int(ShapeType.SPHERE)
_QUAD = int(ShapeType.QUAD)
_TRIANGLE = int(ShapeType.TRIANGLE)


@ti.dataclass
class Hit:
    """Result of a nearest-hit query.

    Attributes:
        hit: 1 if the ray hit anything inside the window, 0 otherwise.
        shape: A ShapeType value.
        surface_id: Index of the surface in the order it was added.
        primitive_id: Index of the primitive in the scene's storage for its
            shape type.
        u: First barycentric / parametric coordinate of the hit.
        v: Second barycentric / parametric coordinate of the hit.
        distance: Distance along the (unit) ray direction.
    """

    hit: ti.i32
    shape: ti.i32
    surface_id: ti.i32
    primitive_id: ti.i32
    u: ti.f32
    v: ti.f32
    distance: ti.f32


@ti.dataclass
class SurfaceAttributes:
    """Shading inputs at a hit point.

    Attributes:
        basis: Shading frame whose normal is the (interpolated) surface normal.
        material: The surface's material record.
    """

    basis: Basis
    material: Material


@dataclass(frozen=True, eq=False)
class PointLight:
    """An isotropic point light.

    Attributes:
        position: World-space position.
        intensity: Radiant intensity, scaled by 1/d^2 at the receiver.

    Raises:
        ValueError: If intensity is negative.
    """

    position: Vec3Like
    intensity: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", as_vec3(self.position, "Light position"))
        if not self.intensity >= 0.0:
            raise ValueError(f"Light intensity must be non-negative, got {self.intensity}")


@dataclass(frozen=True, eq=False)
class Surface:
    """A geometry bound to a material and a placement.

    Attributes:
        geometry: Sphere, Quad or TriangleMesh in local space.
        material: Lambertian or Mirror.
        location: Placement in the world.
    """

    geometry: Sphere | Quad | TriangleMesh
    material: Lambertian | Mirror
    location: Location


def _padded(rows: list, width: int | None = 3, dtype=np.float32) -> np.ndarray:
    """Stack rows into an array with at least one row (fields need shape >= 1)."""
    shape = (max(1, len(rows)), width) if width else (max(1, len(rows)),)
    out = np.zeros(shape, dtype=dtype)
    if rows:
        out[: len(rows)] = np.asarray(rows, dtype=dtype)
    return out


@ti.data_oriented
class Scene:
    """A committed-once collection of surfaces and point lights."""

    def __init__(self) -> None:
        self.surfaces: list[Surface] = []
        self.lights: list[PointLight] = []
        self.committed = False

        self.surface_count = 0
        self.sphere_count = 0
        self.quad_count = 0
        self.triangle_count = 0
        self.light_count = 0

    def _check_open(self) -> None:
        if self.committed:
            raise RuntimeError("Scene is committed; surfaces and lights can no longer be added")

    def add_surface(
        self,
        geometry: Sphere | Quad | TriangleMesh,
        material: Lambertian | Mirror,
        location: Location | None = None,
    ) -> int:
        """Add a surface to the scene.

        Args:
            geometry: The shape in local space.
            material: The shape's material.
            location: Placement in the world. Defaults to the identity.

        Returns:
            The surface id reported by intersections.

        Raises:
            RuntimeError: If the scene is already committed.
            TypeError: If geometry or material is not a supported type.
        """
        self._check_open()
        if not isinstance(geometry, (Sphere, Quad, TriangleMesh)):
            raise TypeError(f"Unsupported geometry type: {type(geometry).__name__}")
        if not isinstance(material, (Lambertian, Mirror)):
            raise TypeError(f"Unsupported material type: {type(material).__name__}")

        self.surfaces.append(Surface(geometry, material, location or Location()))
        return len(self.surfaces) - 1

    def add_light(self, light: PointLight) -> int:
        """Add a point light and return its index.

        Raises:
            RuntimeError: If the scene is already committed.
        """
        self._check_open()
        self.lights.append(light)
        return len(self.lights) - 1

    def commit(self) -> None:
        """Bake all surfaces into world space and upload them to the device.

        Raises:
            RuntimeError: If the scene is already committed.
        """
        self._check_open()

        spheres: list[tuple[int, Sphere]] = []
        quads: list[tuple[int, Quad]] = []
        triangles: list[tuple[int, np.ndarray, np.ndarray]] = []
        for surface_id, surface in enumerate(self.surfaces):
            if not surface.location.visible:
                logger.debug("Skipping invisible surface %d", surface_id)
                continue
            placed = surface.location.place(surface.geometry)
            if isinstance(placed, Sphere):
                spheres.append((surface_id, placed))
            elif isinstance(placed, Quad):
                quads.append((surface_id, placed))
            else:
                normals = (
                    placed.vertex_normals[placed.faces]
                    if placed.smooth_normals
                    else np.repeat(placed.face_normals[:, None, :], 3, axis=1)
                )
                triangles.append((surface_id, placed.vertices[placed.faces], normals))

        self.surface_count = len(self.surfaces)
        self.sphere_count = len(spheres)
        self.quad_count = len(quads)
        self.triangle_count = sum(len(positions) for _, positions, _ in triangles)
        self.light_count = len(self.lights)

        self._upload_materials()
        self._upload_spheres(spheres)
        self._upload_quads(quads)
        self._upload_triangles(triangles)
        self._upload_lights()

        self.committed = True
        logger.info(
            "Committed scene: %d surfaces (%d spheres, %d quads, %d triangles), %d lights",
            self.surface_count,
            self.sphere_count,
            self.quad_count,
            self.triangle_count,
            self.light_count,
        )

    def _upload_materials(self) -> None:
        n = max(1, self.surface_count)
        self.material_kinds = ti.field(dtype=ti.i32, shape=n)
        self.material_reflectance = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.material_emittance = ti.Vector.field(3, dtype=ti.f32, shape=n)

        materials = [surface.material for surface in self.surfaces]
        self.material_kinds.from_numpy(
            _padded([int(m.kind) for m in materials], width=None, dtype=np.int32)
        )
        self.material_reflectance.from_numpy(_padded([m.reflectance for m in materials]))
        self.material_emittance.from_numpy(_padded([m.emittance for m in materials]))

    def _upload_spheres(self, spheres: list[tuple[int, Sphere]]) -> None:
        n = max(1, self.sphere_count)
        self.sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.sphere_radii = ti.field(dtype=ti.f32, shape=n)
        self.sphere_surface_ids = ti.field(dtype=ti.i32, shape=n)

        self.sphere_centers.from_numpy(_padded([s.center for _, s in spheres]))
        self.sphere_radii.from_numpy(_padded([s.radius for _, s in spheres], width=None))
        self.sphere_surface_ids.from_numpy(
            _padded([i for i, _ in spheres], width=None, dtype=np.int32)
        )

    def _upload_quads(self, quads: list[tuple[int, Quad]]) -> None:
        n = max(1, self.quad_count)
        self.quad_corners = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.quad_edge_u = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.quad_edge_v = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.quad_surface_ids = ti.field(dtype=ti.i32, shape=n)

        self.quad_corners.from_numpy(_padded([q.corner for _, q in quads]))
        self.quad_edge_u.from_numpy(_padded([q.edge_u for _, q in quads]))
        self.quad_edge_v.from_numpy(_padded([q.edge_v for _, q in quads]))
        self.quad_surface_ids.from_numpy(_padded([i for i, _ in quads], width=None, dtype=np.int32))

    def _upload_triangles(self, triangles: list[tuple[int, np.ndarray, np.ndarray]]) -> None:
        n = max(1, self.triangle_count)
        self.triangle_vertices = ti.Vector.field(3, dtype=ti.f32, shape=(n, 3))
        self.triangle_normals = ti.Vector.field(3, dtype=ti.f32, shape=(n, 3))
        self.triangle_surface_ids = ti.field(dtype=ti.i32, shape=n)

        vertices = np.zeros((n, 3, 3), dtype=np.float32)
        normals = np.zeros((n, 3, 3), dtype=np.float32)
        surface_ids = np.zeros(n, dtype=np.int32)
        offset = 0
        for surface_id, positions, corner_normals in triangles:
            count = len(positions)
            vertices[offset : offset + count] = positions
            normals[offset : offset + count] = corner_normals
            surface_ids[offset : offset + count] = surface_id
            offset += count

        self.triangle_vertices.from_numpy(vertices)
        self.triangle_normals.from_numpy(normals)
        self.triangle_surface_ids.from_numpy(surface_ids)

    def _upload_lights(self) -> None:
        n = max(1, self.light_count)
        self.light_positions = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.light_intensities = ti.field(dtype=ti.f32, shape=n)

        self.light_positions.from_numpy(_padded([light.position for light in self.lights]))
        self.light_intensities.from_numpy(
            _padded([light.intensity for light in self.lights], width=None)
        )

    # =========================================================================
    # Kernel-side queries
    # =========================================================================

    @ti.func
    def intersect(self, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> Hit:
        """Find the nearest primitive hit with distance in [t_min, t_max).

        Args:
            ray: The query ray, with a unit direction.
            t_min: Smallest accepted distance (inclusive).
            t_max: Distance bound (exclusive).

        Returns:
            The nearest Hit, or a Hit with hit == 0.
        """
        origin = ray.origin
        direction = ray.direction
        closest = t_max
        result = Hit(hit=0, shape=0, surface_id=-1, primitive_id=-1, u=0.0, v=0.0, distance=0.0)

        for i in range(self.sphere_count):
            did_hit, t = hit_sphere(
                origin, direction, self.sphere_centers[i], self.sphere_radii[i], t_min, closest
            )
            if did_hit == 1:
                closest = t
                result = Hit(
                    hit=1,
                    shape=_SPHERE,
                    surface_id=self.sphere_surface_ids[i],
                    primitive_id=i,
                    u=0.0,
                    v=0.0,
                    distance=t,
                )

        for i in range(self.quad_count):
            did_hit, t, alpha, beta = hit_quad(
                origin,
                direction,
                self.quad_corners[i],
                self.quad_edge_u[i],
                self.quad_edge_v[i],
                t_min,
                closest,
            )
            if did_hit == 1:
                closest = t
                result = Hit(
                    hit=1,
                    shape=_QUAD,
                    surface_id=self.quad_surface_ids[i],
                    primitive_id=i,
                    u=alpha,
                    v=beta,
                    distance=t,
                )

        for i in range(self.triangle_count):
            did_hit, t, bary_u, bary_v = hit_triangle(
                origin,
                direction,
                self.triangle_vertices[i, 0],
                self.triangle_vertices[i, 1],
                self.triangle_vertices[i, 2],
                t_min,
                closest,
            )
            if did_hit == 1:
                closest = t
                result = Hit(
                    hit=1,
                    shape=_TRIANGLE,
                    surface_id=self.triangle_surface_ids[i],
                    primitive_id=i,
                    u=bary_u,
                    v=bary_v,
                    distance=t,
                )

        return result

    @ti.func
    def occluded(self, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> ti.i32:
        """Return 1 if anything blocks the ray within [t_min, t_max)."""
        return self.intersect(ray, t_min, t_max).hit

    @ti.func
    def surface_at(self, ray: Ray, hit: Hit) -> SurfaceAttributes:
        """Resolve the shading frame and material of a hit.

        Spheres use the analytic outward normal, quads their face normal and
        triangles the barycentric blend of their corner normals (all three
        equal the face normal for flat-shaded meshes). Normals are never
        flipped toward the ray.

        Args:
            ray: The ray that produced the hit.
            hit: A Hit with hit == 1.

        Returns:
            SurfaceAttributes for the hit point.
        """
        normal = vec3(0.0, 1.0, 0.0)
        i = hit.primitive_id
        if hit.shape == _SPHERE:
            normal = sphere_normal(self.sphere_centers[i], ray_at(ray, hit.distance))
        elif hit.shape == _QUAD:
            normal = quad_normal(self.quad_edge_u[i], self.quad_edge_v[i])
        else:
            normal = interpolate_normal(
                self.triangle_normals[i, 0],
                self.triangle_normals[i, 1],
                self.triangle_normals[i, 2],
                hit.u,
                hit.v,
            )

        s = hit.surface_id
        material = Material(
            kind=self.material_kinds[s],
            reflectance=self.material_reflectance[s],
            emittance=self.material_emittance[s],
        )
        return SurfaceAttributes(basis=make_basis(normal), material=material)

    @ti.func
    def light(self, index: ti.i32):
        """Return (position, intensity) of a point light."""
        return self.light_positions[index], self.light_intensities[index]
