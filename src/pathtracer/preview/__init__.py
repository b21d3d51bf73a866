"""Image output utilities."""

from .export import compute_rmse, image_to_uint8, save_png

__all__ = ["image_to_uint8", "save_png", "compute_rmse"]
