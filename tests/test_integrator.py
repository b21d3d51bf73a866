"""Tests for the path tracing integrator.

Tests cover:
- Construction checks (uncommitted scene, settings ranges)
- Escaped rays return the background
- Emission and absorption on black surfaces
- Direct lighting from point lights in closed form, and shadowing
- Mirror bounces
- Furnace test: a closed emissive box converges to E (1 - a^N) / (1 - a),
  with and without Russian roulette
"""

import math

import numpy as np
import pytest
import taichi as ti
import taichi.math as tm

from pathtracer.core.context import make_context
from pathtracer.core.integrator import PathIntegrator
from pathtracer.core.ray import make_ray
from pathtracer.geometry.quad import Quad
from pathtracer.geometry.sphere import Sphere
from pathtracer.materials.lambertian import Lambertian
from pathtracer.materials.mirror import Mirror
from pathtracer.scene.scene import PointLight, Scene

BLACK = (0.0, 0.0, 0.0)


def _estimates(integrator, origin, direction, count=1, seed=1):
    """Run count independent radiance estimates along one ray."""
    results = ti.Vector.field(3, dtype=ti.f32, shape=count)

    @ti.kernel
    def test_kernel(o: tm.vec3, d: tm.vec3, s: ti.u32):
        for i in range(count):
            ctx = make_context(s, i)
            results[i] = integrator.radiance(make_ray(o, d), ctx)

    test_kernel(tm.vec3(*origin), tm.vec3(*direction), seed)
    return results.to_numpy()


def _lit_sphere_scene(light_position, intensity, occluder=False):
    """Gray sphere of radius 1 at (0, 0, 3), optionally behind a black quad at z = 0."""
    scene = Scene()
    scene.add_surface(Sphere((0, 0, 3), 1.0), Lambertian(albedo=(0.5, 0.5, 0.5)))
    if occluder:
        scene.add_surface(Quad((-1, -1, 0), (2, 0, 0), (0, 2, 0)), Lambertian(albedo=BLACK))
    scene.add_light(PointLight(light_position, intensity))
    scene.commit()
    return scene


def _furnace_scene(albedo, emittance):
    """Closed box [-1, 1]^3 of emissive Lambertian walls facing inward."""
    material = Lambertian(albedo=albedo, emittance=emittance)
    m = 1.01
    size = 2 * m
    walls = [
        Quad((-1, -m, -m), (0, size, 0), (0, 0, size)),
        Quad((1, -m, -m), (0, 0, size), (0, size, 0)),
        Quad((-m, -1, -m), (0, 0, size), (size, 0, 0)),
        Quad((-m, 1, -m), (size, 0, 0), (0, 0, size)),
        Quad((-m, -m, -1), (size, 0, 0), (0, size, 0)),
        Quad((-m, -m, 1), (0, size, 0), (size, 0, 0)),
    ]
    scene = Scene()
    for wall in walls:
        # Every wall must face the box center
        assert np.dot(wall.normal, -wall.corner) > 0.0
        scene.add_surface(wall, material)
    scene.commit()
    return scene


class TestIntegratorSetup:
    """Tests for integrator construction."""

    def test_uncommitted_scene_raises(self):
        with pytest.raises(RuntimeError):
            PathIntegrator(Scene())

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_bounces": 0}, {"rr_min_bounces": -1}, {"background": (0.5, -0.1, 0.5)}],
    )
    def test_invalid_settings_raise(self, kwargs):
        scene = Scene()
        scene.commit()
        with pytest.raises(ValueError):
            PathIntegrator(scene, **kwargs)


class TestEscapedAndEmission:
    """Tests for paths that end on the first bounce."""

    def test_miss_returns_background(self):
        scene = Scene()
        scene.commit()
        integrator = PathIntegrator(scene, background=(0.1, 0.2, 0.3))
        result = _estimates(integrator, (0, 0, 0), (0, 0, 1))[0]
        np.testing.assert_allclose(result, [0.1, 0.2, 0.3], atol=1e-7)

    def test_black_emitter_returns_emittance(self):
        """Test that a zero-albedo surface absorbs the path after its emission."""
        scene = Scene()
        scene.add_surface(Sphere((0, 0, 3), 1.0), Lambertian(albedo=BLACK, emittance=(2, 3, 4)))
        scene.add_light(PointLight((0, 0, 0), 100.0))
        scene.commit()
        integrator = PathIntegrator(scene, background=(1.0, 1.0, 1.0))
        results = _estimates(integrator, (0, 0, 0), (0, 0, 1), count=8)
        np.testing.assert_allclose(results, np.tile([2.0, 3.0, 4.0], (8, 1)), atol=1e-6)


class TestDirectLighting:
    """Tests for point-light next event estimation."""

    ALBEDO = 0.5

    def test_head_on_light(self):
        """Test albedo / pi * cos * I / d^2 with the light straight behind the camera."""
        scene = _lit_sphere_scene((0, 0, -1), 9.0)
        integrator = PathIntegrator(scene, background=BLACK)
        results = _estimates(integrator, (0, 0, 0), (0, 0, 1), count=16)
        expected = self.ALBEDO / math.pi * 1.0 * 9.0 / 9.0
        np.testing.assert_allclose(results, expected, rtol=1e-4)

    def test_oblique_light(self):
        scene = _lit_sphere_scene((0, 3, -1), 18.0)
        integrator = PathIntegrator(scene, background=BLACK)
        results = _estimates(integrator, (0, 0, 0), (0, 0, 1), count=16)
        expected = self.ALBEDO / math.pi * math.sqrt(0.5) * 18.0 / 18.0
        np.testing.assert_allclose(results, expected, rtol=1e-4)

    def test_light_behind_surface_contributes_nothing(self):
        scene = _lit_sphere_scene((0, 0, 10), 50.0)
        integrator = PathIntegrator(scene, background=BLACK)
        results = _estimates(integrator, (0, 0, 0), (0, 0, 1), count=4)
        np.testing.assert_allclose(results, 0.0, atol=1e-7)

    def test_occluded_light_is_blocked(self):
        scene = _lit_sphere_scene((0, 0, -1), 9.0, occluder=True)
        integrator = PathIntegrator(scene, background=BLACK)
        results = _estimates(integrator, (0, 0, 1), (0, 0, 1), count=16)
        np.testing.assert_allclose(results, 0.0, atol=1e-7)

    def test_intensity_scales_linearly(self):
        dim = _estimates(
            PathIntegrator(_lit_sphere_scene((0, 2, -1), 4.0), background=BLACK),
            (0, 0, 0),
            (0, 0, 1),
        )[0]
        bright = _estimates(
            PathIntegrator(_lit_sphere_scene((0, 2, -1), 8.0), background=BLACK),
            (0, 0, 0),
            (0, 0, 1),
        )[0]
        np.testing.assert_allclose(bright, 2.0 * dim, rtol=1e-5)


class TestMirrorPaths:
    """Tests for specular bounces."""

    def test_mirror_reflects_background(self):
        """Test that a mirror facing the camera returns reflectance * background."""
        scene = Scene()
        scene.add_surface(
            Quad((-1, -1, 5), (0, 2, 0), (2, 0, 0)), Mirror(reflectance=(0.5, 0.25, 1.0))
        )
        scene.commit()
        integrator = PathIntegrator(scene, background=(0.8, 0.8, 0.8))
        results = _estimates(integrator, (0, 0, 0), (0, 0, 1), count=4)
        np.testing.assert_allclose(results, np.tile([0.4, 0.2, 0.8], (4, 1)), atol=1e-6)

    def test_mirror_ignores_point_lights(self):
        scene = Scene()
        scene.add_surface(Quad((-1, -1, 5), (0, 2, 0), (2, 0, 0)), Mirror(reflectance=(1, 1, 1)))
        scene.add_light(PointLight((0, 0, 1), 100.0))
        scene.commit()
        integrator = PathIntegrator(scene, background=BLACK)
        results = _estimates(integrator, (0, 0, 0), (0, 0, 1), count=4)
        np.testing.assert_allclose(results, 0.0, atol=1e-7)


class TestFurnace:
    """Closed-box convergence tests."""

    ALBEDO = 0.5
    EMITTANCE = 1.0

    def _expected(self, bounces):
        a = self.ALBEDO
        return self.EMITTANCE * (1.0 - a**bounces) / (1.0 - a)

    def test_without_roulette_every_path_is_exact(self):
        """Test that with roulette disabled each path sums the geometric series."""
        scene = _furnace_scene((self.ALBEDO,) * 3, (self.EMITTANCE,) * 3)
        integrator = PathIntegrator(scene, max_bounces=10, rr_min_bounces=10, background=BLACK)
        results = _estimates(integrator, (0.1, -0.2, 0.3), (0, 0, 1), count=256)
        np.testing.assert_allclose(results, self._expected(10), rtol=1e-5)

    def test_roulette_is_unbiased(self):
        """Test that the roulette estimate has the same mean as the exact sum."""
        scene = _furnace_scene((self.ALBEDO,) * 3, (self.EMITTANCE,) * 3)
        integrator = PathIntegrator(scene, max_bounces=10, rr_min_bounces=3, background=BLACK)
        results = _estimates(integrator, (0.1, -0.2, 0.3), (0, 0, 1), count=8192, seed=3)
        assert abs(results[:, 0].mean() - self._expected(10)) < 0.01 * self._expected(10)

    def test_roulette_paths_stay_finite(self):
        scene = _furnace_scene((0.9, 0.9, 0.9), (1.0, 1.0, 1.0))
        integrator = PathIntegrator(scene, max_bounces=50, rr_min_bounces=0, background=BLACK)
        results = _estimates(integrator, (0, 0, 0), (0, 1, 0), count=1024, seed=8)
        assert np.all(np.isfinite(results))
        assert np.all(results >= 1.0)

    def test_deterministic_for_fixed_seed(self):
        scene = _furnace_scene((0.7, 0.7, 0.7), (0.5, 0.5, 0.5))
        integrator = PathIntegrator(scene, background=BLACK)
        first = _estimates(integrator, (0, 0, 0), (1, 0, 0), count=64, seed=12)
        second = _estimates(integrator, (0, 0, 0), (1, 0, 0), count=64, seed=12)
        np.testing.assert_array_equal(first, second)
