"""Image export utilities for rendered images.

Rendered images are linear float32 radiance. Export quantizes each channel
as

    byte = truncate(clamp(x, 0, 1) * 255)

with no tone mapping or gamma, and writes 8-bit RGB PNG files via Pillow.
Non-finite values (NaN, +/-inf) are written as 0.

Example:
    >>> from pathtracer.preview.export import save_png
    >>> image = renderer.render()
    >>> save_png(image, "output.png")
"""

from os import PathLike

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage


def image_to_uint8(image: npt.NDArray[np.floating]) -> npt.NDArray[np.uint8]:
    """Quantize a linear float image to 8 bits per channel.

    Args:
        image: Float image array of shape (H, W, 3).

    Returns:
        8-bit image array of shape (H, W, 3) with dtype uint8.

    Raises:
        ValueError: If the array is not (H, W, 3).
    """
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (H, W, 3), got {image.shape}")

    # NaN and inf map to 0
    finite = np.where(np.isfinite(image), image, 0.0)
    return (np.clip(finite, 0.0, 1.0) * 255.0).astype(np.uint8)


def save_png(image: npt.NDArray, filepath: str | PathLike) -> None:
    """Save an image as an 8-bit RGB PNG file.

    Args:
        image: Either a linear float image of shape (H, W, 3), quantized with
            image_to_uint8, or an already quantized uint8 image.
        filepath: Output file path (should end in .png).

    Raises:
        ValueError: If the array is not (H, W, 3).
    """
    image = np.asarray(image)
    image_uint8 = image if image.dtype == np.uint8 else image_to_uint8(image)
    if image_uint8.ndim != 3 or image_uint8.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (H, W, 3), got {image_uint8.shape}")

    pil_image = PILImage.fromarray(np.ascontiguousarray(image_uint8))
    pil_image.save(filepath)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Compute root mean squared error between two images.

    Args:
        image_a: First image array.
        image_b: Second image array (must have same shape as image_a).

    Returns:
        RMSE value (lower is more similar).

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
