"""YAML scene description loader.

A scene file names its building blocks and then combines them into
surfaces:

.. code-block:: yaml

    camera:
      pos: {x: 0, y: 1, z: -2}
      rot: {pitch: -0.2, yaw: 0}      # radians
      fov: 75                         # degrees
    geometries:
      floor:  {type: quad, corner: [-5, 0, -5], edge_u: [0, 0, 10], edge_v: [10, 0, 0]}
      ball:   {type: sphere, center: [0, 1, 1], radius: 1}
      bunny:  {path: meshes/bunny.obj, smoothNormals: true}   # type: mesh
    materials:
      gray:   {type: lambertian, albedo: {r: 0.8, g: 0.8, b: 0.8}}
      chrome: !!mirror {reflection: [0.9, 0.9, 0.9]}
    locations:
      origin: {}
      raised: {translation: [0, 0.5, 0], rotation: {yaw: 0.3}, scale: 2, visible: true}
    surfaces:
      ground: {geometry: floor, material: gray, location: origin}
    lights:
      - {position: [-2, 1, 0], intensity: 20}
    background: [0.5, 0.5, 0.5]
    render: {width: 800, height: 600, samples: 500, seed: 0}

Vectors may be written as ``[x, y, z]`` lists or ``{x, y, z}`` mappings and
colors as ``[r, g, b]`` or ``{r, g, b}``. Materials are selected with a
``type`` key or with the ``!!lambertian`` / ``!!mirror`` tags. Relative mesh
paths are resolved against the directory of the scene file. When the
``lights`` key is absent the scene gets a single default light.

Every problem with the file (syntax, unknown types, dangling references,
invalid values) raises ValueError before anything is rendered.
"""

import logging
import math
from dataclasses import dataclass, fields
from os import PathLike
from pathlib import Path
from typing import Any

import yaml

from pathtracer.camera.camera import Camera
from pathtracer.core.renderer import RenderSettings
from pathtracer.geometry.mesh import TriangleMesh, load_obj
from pathtracer.geometry.quad import Quad
from pathtracer.geometry.sphere import Sphere
from pathtracer.materials.lambertian import Lambertian
from pathtracer.materials.mirror import Mirror
from pathtracer.scene.location import Location
from pathtracer.scene.scene import PointLight, Scene

logger = logging.getLogger(__name__)

# Light used when a scene file has no "lights" section
DEFAULT_LIGHT = PointLight(position=(-2.0, 1.0, 0.0), intensity=20.0)

_RENDER_KEYS = {f.name for f in fields(RenderSettings)}


class _SceneYamlLoader(yaml.SafeLoader):
    """SafeLoader that also understands the !!lambertian and !!mirror tags."""


def _tagged_material(kind: str):
    def construct(loader: yaml.SafeLoader, node: yaml.Node) -> dict[str, Any]:
        mapping = {}
        if isinstance(node, yaml.MappingNode):
            mapping = loader.construct_mapping(node, deep=True)
        return {"type": kind, **mapping}

    return construct


_SceneYamlLoader.add_constructor("tag:yaml.org,2002:lambertian", _tagged_material("lambertian"))
_SceneYamlLoader.add_constructor("tag:yaml.org,2002:mirror", _tagged_material("mirror"))


@dataclass
class LoadedScene:
    """Everything a scene file describes.

    Attributes:
        scene: The committed scene.
        camera: The camera.
        settings: Render settings from the file's "render" and "background"
            keys, defaults elsewhere.
    """

    scene: Scene
    camera: Camera
    settings: RenderSettings


def _triple(value: Any, keys: tuple[str, str, str], what: str) -> tuple[float, float, float]:
    """Read a 3-vector written as a list or as a mapping with the given keys."""
    if isinstance(value, dict):
        unknown = set(value) - set(keys)
        if unknown:
            raise ValueError(f"{what}: unknown keys {sorted(unknown)}, expected {list(keys)}")
        items = [value.get(k, 0.0) for k in keys]
    elif isinstance(value, (list, tuple)) and len(value) == 3:
        items = list(value)
    else:
        raise ValueError(f"{what}: expected a list of 3 numbers or a {{{', '.join(keys)}}} mapping")
    try:
        return (float(items[0]), float(items[1]), float(items[2]))
    except (TypeError, ValueError) as e:
        raise ValueError(f"{what}: components must be numbers, got {items}") from e


def _number(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{what}: expected a number, got {value!r}") from e


def _position(value: Any, what: str) -> tuple[float, float, float]:
    return _triple(value, ("x", "y", "z"), what)


def _color(value: Any, what: str) -> tuple[float, float, float]:
    return _triple(value, ("r", "g", "b"), what)


def _section(document: dict[str, Any], key: str) -> dict[str, Any]:
    section = document.get(key) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{key}' must be a mapping of names to entries")
    return section


def _entry(section: str, name: str, value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{section} '{name}' must be a mapping")
    return value


def _parse_camera(value: Any) -> Camera:
    entry = _entry("camera", "camera", value)
    rot = entry.get("rot", {}) or {}
    if not isinstance(rot, dict):
        raise ValueError("camera.rot must be a {pitch, yaw} mapping")
    if rot.get("roll", 0.0):
        raise ValueError("camera.rot.roll is not supported")
    return Camera(
        position=_position(entry.get("pos", (0.0, 0.0, 0.0)), "camera.pos"),
        pitch=_number(rot.get("pitch", 0.0), "camera.rot.pitch"),
        yaw=_number(rot.get("yaw", 0.0), "camera.rot.yaw"),
        fov=math.radians(_number(entry.get("fov", 90.0), "camera.fov")),
    )


def _parse_geometry(name: str, value: Any, base_dir: Path) -> Sphere | Quad | TriangleMesh:
    entry = _entry("geometry", name, value)
    kind = entry.get("type", "mesh" if "path" in entry else None)
    what = f"geometry '{name}'"

    if kind == "sphere":
        return Sphere(
            center=_position(entry.get("center"), f"{what} center"),
            radius=_number(entry.get("radius", 0.0), f"{what} radius"),
        )
    if kind == "quad":
        return Quad(
            corner=_position(entry.get("corner"), f"{what} corner"),
            edge_u=_position(entry.get("edge_u"), f"{what} edge_u"),
            edge_v=_position(entry.get("edge_v"), f"{what} edge_v"),
        )
    if kind == "mesh":
        if "path" not in entry:
            raise ValueError(f"{what}: mesh geometry needs a 'path'")
        path = Path(entry["path"])
        if not path.is_absolute():
            path = base_dir / path
        if not path.is_file():
            raise ValueError(f"{what}: mesh file not found: {path}")
        smooth = bool(entry.get("smoothNormals", entry.get("smooth_normals", False)))
        return load_obj(path, smooth_normals=smooth)
    raise ValueError(f"{what}: unknown geometry type {kind!r} (expected sphere, quad or mesh)")


def _parse_material(name: str, value: Any) -> Lambertian | Mirror:
    entry = _entry("material", name, value)
    kind = entry.get("type")
    what = f"material '{name}'"
    emittance = _color(entry.get("emittance", (0.0, 0.0, 0.0)), f"{what} emittance")

    if kind == "lambertian":
        albedo = _color(entry.get("albedo", (0.0, 0.0, 0.0)), f"{what} albedo")
        return Lambertian(albedo=albedo, emittance=emittance)
    if kind == "mirror":
        reflection = entry.get("reflection", entry.get("reflectance", (0.0, 0.0, 0.0)))
        return Mirror(reflectance=_color(reflection, f"{what} reflection"), emittance=emittance)
    raise ValueError(f"{what}: unknown material type {kind!r} (expected lambertian or mirror)")


def _parse_location(name: str, value: Any) -> Location:
    entry = _entry("location", name, value)
    what = f"location '{name}'"
    rotation = entry.get("rotation", {}) or {}
    if not isinstance(rotation, dict):
        raise ValueError(f"{what}: rotation must be a {{pitch, yaw, roll}} mapping")
    return Location(
        translation=_position(
            entry.get("translation", (0.0, 0.0, 0.0)), f"{what} translation"
        ),
        pitch=_number(rotation.get("pitch", 0.0), f"{what} pitch"),
        yaw=_number(rotation.get("yaw", 0.0), f"{what} yaw"),
        roll=_number(rotation.get("roll", 0.0), f"{what} roll"),
        scale=_number(entry.get("scale", 1.0), f"{what} scale"),
        visible=bool(entry.get("visible", True)),
    )


def _parse_lights(value: Any) -> list[PointLight]:
    if not isinstance(value, list):
        raise ValueError("'lights' must be a list")
    lights = []
    for i, entry in enumerate(value):
        entry = _entry("light", str(i), entry)
        lights.append(
            PointLight(
                position=_position(entry.get("position"), f"light {i} position"),
                intensity=_number(entry.get("intensity", 0.0), f"light {i} intensity"),
            )
        )
    return lights


def _setting(key: str, value: Any) -> Any:
    """Check the type of one "render" entry; ranges are checked by RenderSettings."""
    if key == "background":
        return _color(value, "render.background")
    if key == "batch_size" and value is None:
        return None
    # bool is an int subclass, but "width: true" is still a mistake
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"render.{key}: expected an integer, got {value!r}")
    return value


def _parse_settings(document: dict[str, Any]) -> RenderSettings:
    overrides = _section(document, "render")
    unknown = set(overrides) - _RENDER_KEYS
    if unknown:
        raise ValueError(f"render: unknown keys {sorted(unknown)}")
    overrides = {key: _setting(key, value) for key, value in overrides.items()}
    if "background" in document:
        overrides = {**overrides, "background": _color(document["background"], "background")}
    return RenderSettings(**overrides)


def parse_scene(document: Any, base_dir: str | PathLike = ".") -> LoadedScene:
    """Build a committed scene from an already parsed YAML document.

    Args:
        document: The parsed YAML mapping.
        base_dir: Directory that relative mesh paths are resolved against.

    Returns:
        The committed scene, camera and render settings.

    Raises:
        ValueError: If the document is invalid.
    """
    if not isinstance(document, dict):
        raise ValueError("Scene file must contain a mapping at the top level")
    if "camera" not in document:
        raise ValueError("Scene file has no 'camera' section")

    base_dir = Path(base_dir)
    camera = _parse_camera(document["camera"])
    geometries = {
        name: _parse_geometry(name, value, base_dir)
        for name, value in _section(document, "geometries").items()
    }
    materials = {
        name: _parse_material(name, value)
        for name, value in _section(document, "materials").items()
    }
    locations = {
        name: _parse_location(name, value)
        for name, value in _section(document, "locations").items()
    }

    scene = Scene()
    for name, value in _section(document, "surfaces").items():
        entry = _entry("surface", name, value)
        try:
            geometry = geometries[entry["geometry"]]
            material = materials[entry["material"]]
        except KeyError as e:
            raise ValueError(f"surface '{name}' refers to an undefined or missing name: {e}") from e
        location_name = entry.get("location")
        if location_name is not None and location_name not in locations:
            raise ValueError(f"surface '{name}' refers to undefined location '{location_name}'")
        scene.add_surface(geometry, material, locations.get(location_name))

    if "lights" in document:
        lights = _parse_lights(document["lights"] or [])
    else:
        logger.debug("No lights section, using the default light")
        lights = [DEFAULT_LIGHT]
    for light in lights:
        scene.add_light(light)

    settings = _parse_settings(document)
    scene.commit()
    return LoadedScene(scene=scene, camera=camera, settings=settings)


def load_scene(path: str | PathLike) -> LoadedScene:
    """Load and commit a scene file.

    Args:
        path: Path to the YAML scene description.

    Returns:
        The committed scene, camera and render settings.

    Raises:
        ValueError: If the file cannot be parsed or describes an invalid
            scene.
        OSError: If the file cannot be read.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        try:
            document = yaml.load(f, Loader=_SceneYamlLoader)
        except yaml.YAMLError as e:
            raise ValueError(f"Could not parse scene file {path}: {e}") from e

    logger.info("Loading scene %s", path)
    return parse_scene(document, base_dir=path.parent)
