"""Camera models for primary ray generation."""

from .camera import Camera, camera_ray

__all__ = ["Camera", "camera_ray"]
