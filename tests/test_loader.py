"""Tests for the YAML scene loader.

Tests cover:
- Camera, geometry, material, location and surface parsing
- !!lambertian / !!mirror tags and list or mapping vectors
- Mesh paths resolved relative to the scene file
- Default light when the file has no lights section
- Render settings and background
- Error reporting for malformed files
"""

import math
import textwrap
from pathlib import Path

import pytest
import yaml

from pathtracer.scene.loader import DEFAULT_LIGHT, load_scene, parse_scene

EXAMPLE_SCENE = Path(__file__).resolve().parent.parent / "scenes" / "example.yaml"


def _write(tmp_path, text, name="scene.yaml"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(text))
    return path


MINIMAL = """\
camera:
  pos: {x: 0, y: 1, z: -2}
  rot: {pitch: -0.2, yaw: 0.1}
  fov: 60
geometries:
  ball: {type: sphere, center: [0, 0, 0], radius: 1}
materials:
  gray: {type: lambertian, albedo: {r: 0.8, g: 0.8, b: 0.8}}
surfaces:
  ball: {geometry: ball, material: gray}
"""


class TestLoadScene:
    """Tests for successful loading."""

    def test_minimal_scene(self, tmp_path):
        loaded = load_scene(_write(tmp_path, MINIMAL))

        assert loaded.scene.committed
        assert loaded.scene.sphere_count == 1
        assert loaded.camera.pitch == pytest.approx(-0.2)
        assert loaded.camera.yaw == pytest.approx(0.1)
        assert loaded.camera.fov == pytest.approx(math.radians(60))
        assert tuple(loaded.camera.position) == (0.0, 1.0, -2.0)

    def test_missing_lights_uses_default_light(self, tmp_path):
        loaded = load_scene(_write(tmp_path, MINIMAL))
        assert loaded.scene.light_count == 1
        assert loaded.scene.lights[0] is DEFAULT_LIGHT

    def test_empty_lights_list_means_no_lights(self, tmp_path):
        loaded = load_scene(_write(tmp_path, MINIMAL + "lights: []\n"))
        assert loaded.scene.light_count == 0

    def test_render_settings_and_background(self, tmp_path):
        text = MINIMAL + textwrap.dedent(
            """\
            background: {r: 0.1, g: 0.2, b: 0.3}
            render: {width: 32, height: 24, samples: 8, seed: 5, batch_size: 2}
            """
        )
        settings = load_scene(_write(tmp_path, text)).settings
        assert (settings.width, settings.height, settings.samples) == (32, 24, 8)
        assert settings.seed == 5
        assert settings.batch_size == 2
        assert settings.background == (0.1, 0.2, 0.3)

    def test_tags_locations_and_mesh(self, tmp_path, cube_obj):
        text = """\
        camera: {pos: [0, 1, -3], fov: 75}
        geometries:
          floor: {type: quad, corner: [-5, 0, -5], edge_u: [0, 0, 10], edge_v: [10, 0, 0]}
          cube: {path: cube.obj, smoothNormals: true}
          ball: {type: sphere, center: {x: 0, y: 0, z: 0}, radius: 0.5}
        materials:
          gray: !!lambertian {albedo: [0.8, 0.8, 0.8]}
          chrome: !!mirror
            reflection: {r: 0.9, g: 0.9, b: 0.9}
          lamp: {type: lambertian, albedo: [0, 0, 0], emittance: [4, 4, 4]}
        locations:
          origin: {}
          lifted: {translation: [0, 0.5, 0], rotation: {yaw: 0.6}, scale: 0.7}
          hidden: {visible: false}
        surfaces:
          floor: {geometry: floor, material: gray, location: origin}
          cube: {geometry: cube, material: chrome, location: lifted}
          lamp: {geometry: ball, material: lamp}
          ghost: {geometry: ball, material: gray, location: hidden}
        lights:
          - {position: [0, 3, 0], intensity: 5}
          - {position: {x: 1, y: 1, z: 1}, intensity: 2.5}
        """
        loaded = load_scene(_write(tmp_path, text))
        scene = loaded.scene

        assert scene.surface_count == 4
        assert scene.quad_count == 1
        assert scene.sphere_count == 1
        assert scene.triangle_count == 12
        assert scene.light_count == 2

        surfaces = scene.surfaces
        assert surfaces[0].material.albedo == (0.8, 0.8, 0.8)
        assert surfaces[1].material.reflectance == (0.9, 0.9, 0.9)
        assert surfaces[1].geometry.smooth_normals
        assert surfaces[1].location.scale == pytest.approx(0.7)
        assert surfaces[2].material.emittance == (4.0, 4.0, 4.0)
        assert not surfaces[3].location.visible

    def test_example_scene_loads(self):
        loaded = load_scene(EXAMPLE_SCENE)
        assert loaded.scene.surface_count == 4
        assert loaded.scene.triangle_count == 12
        assert loaded.settings.width == 400
        assert loaded.camera.fov == pytest.approx(math.radians(75))

    def test_parse_scene_from_document(self):
        document = yaml.safe_load(MINIMAL)
        loaded = parse_scene(document)
        assert loaded.scene.sphere_count == 1


class TestLoaderErrors:
    """Tests for invalid scene files."""

    @pytest.mark.parametrize(
        "text, message",
        [
            ("- just\n- a list\n", "mapping at the top level"),
            ("geometries: {}\n", "no 'camera'"),
            (
                MINIMAL.replace("type: sphere", "type: torus"),
                "unknown geometry type",
            ),
            (
                MINIMAL.replace("type: lambertian", "type: glass"),
                "unknown material type",
            ),
            (
                MINIMAL.replace("material: gray", "material: chrome"),
                "undefined",
            ),
            (
                MINIMAL.replace("material: gray}", "material: gray, location: nowhere}"),
                "undefined location",
            ),
            (MINIMAL.replace("radius: 1", "radius: -1"), "radius"),
            (MINIMAL.replace("r: 0.8", "r: 1.8"), "outside"),
            (MINIMAL.replace("fov: 60", "fov: 180"), "fov"),
            (MINIMAL.replace("yaw: 0.1", "yaw: 0.1, roll: 0.3"), "roll"),
            (MINIMAL.replace("center: [0, 0, 0]", "center: [0, 0]"), "center"),
            (MINIMAL + "render: {resolution: 5}\n", "unknown keys"),
            (MINIMAL + "lights: {position: [0, 0, 0]}\n", "must be a list"),
            (MINIMAL.replace("radius: 1", "radius: null"), "radius: expected a number"),
            (MINIMAL.replace("pitch: -0.2", "pitch: null"), "camera.rot.pitch"),
            (MINIMAL.replace("fov: 60", "fov: wide"), "camera.fov"),
            (
                MINIMAL + "lights:\n  - {position: [0, 2, 0], intensity: null}\n",
                "light 0 intensity",
            ),
            (MINIMAL + "locations: {up: {scale: [2]}}\n", "scale: expected a number"),
            (MINIMAL + "render: {width: \"800\"}\n", "render.width: expected an integer"),
            (MINIMAL + "render: {samples: 2.5}\n", "render.samples"),
            (MINIMAL + "render: {seed: true}\n", "render.seed"),
        ],
    )
    def test_invalid_scene_raises(self, tmp_path, text, message):
        with pytest.raises(ValueError, match=message):
            load_scene(_write(tmp_path, text))

    def test_missing_mesh_file_raises(self, tmp_path):
        text = MINIMAL.replace(
            "ball: {type: sphere, center: [0, 0, 0], radius: 1}", "ball: {path: missing.obj}"
        )
        with pytest.raises(ValueError, match="not found"):
            load_scene(_write(tmp_path, text))

    def test_yaml_syntax_error_raises_value_error(self, tmp_path):
        with pytest.raises(ValueError, match="Could not parse"):
            load_scene(_write(tmp_path, "camera: {pos: [0, 1\n"))

    def test_missing_file_raises_os_error(self, tmp_path):
        with pytest.raises(OSError):
            load_scene(tmp_path / "nope.yaml")

    def test_null_values_in_parsed_document_raise_value_error(self):
        """Test that None from a parsed document is reported, not passed to float()."""
        document = yaml.safe_load(MINIMAL)
        document["geometries"]["ball"]["radius"] = None
        with pytest.raises(ValueError, match="geometry 'ball' radius"):
            parse_scene(document)
