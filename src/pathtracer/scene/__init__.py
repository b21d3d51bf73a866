"""Scene management.

Components:
    scene: Scene container, point lights and the nearest-hit / occlusion
        queries used by the integrator
    location: Placement of surfaces in the world
    loader: YAML scene description loader
"""

from .location import Location
from .scene import Hit, PointLight, Scene, ShapeType, Surface, SurfaceAttributes

# Note: loader is NOT imported here; it depends on the renderer settings.
# Import it from pathtracer.scene.loader.

__all__ = [
    "Scene",
    "Surface",
    "PointLight",
    "Location",
    "Hit",
    "ShapeType",
    "SurfaceAttributes",
]
