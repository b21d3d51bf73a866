"""Parallel render loop with progressive sample accumulation.

The render kernel runs one task per image row. Each row task creates its own
RenderContext from (seed, batch, row) and reuses it for every pixel of the
row, so tasks share nothing but the read-only scene and the result does not
depend on scheduling.

For pixel (x, y) of a W x H image the normalized coordinates are

    u = (2x / (W - 1) - 1) * u_scale
    v = (1 - 2y / (H - 1)) * v_scale

where the longer image axis is stretched by the aspect ratio. Samples can be
taken in batches: every batch is one kernel launch with its own random
streams, and batches are merged into a running average, like the original
ProgressiveRenderer.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.renderer import Renderer, RenderSettings
    >>> renderer = Renderer(scene, camera, RenderSettings(width=320, height=240, samples=64))
    >>> image = renderer.render(batch_size=8)  # float32 (240, 320, 3)
"""

import logging
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.camera.camera import Camera, camera_ray
from pathtracer.core.context import make_context
from pathtracer.core.integrator import (
    BACKGROUND_COLOR,
    MAX_BOUNCES,
    MIN_BOUNCES_BEFORE_RR,
    PathIntegrator,
)
from pathtracer.scene.scene import Scene

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# Callback receives (samples_done, samples_total)
ProgressCallback = Callable[[int, int], None]


@dataclass
class RenderSettings:
    """Image and integrator settings for one render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples: Radiance estimates per pixel.
        batch_size: Samples per kernel launch. None renders all samples in
            a single launch.
        seed: Seed of the per-task random streams.
        max_bounces: Maximum path length.
        rr_min_bounces: Bounces taken before Russian roulette applies.
        background: Radiance of escaped rays.

    Raises:
        ValueError: If a size or count is out of range.
    """

    width: int = 800
    height: int = 600
    samples: int = 500
    batch_size: int | None = None
    seed: int = 0
    max_bounces: int = MAX_BOUNCES
    rr_min_bounces: int = MIN_BOUNCES_BEFORE_RR
    background: tuple[float, float, float] = BACKGROUND_COLOR

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Image size must be positive, got {self.width}x{self.height}")
        if self.samples < 1:
            raise ValueError(f"samples must be at least 1, got {self.samples}")
        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if not 0 <= self.seed < 2**32:
            raise ValueError(f"seed must fit in 32 bits, got {self.seed}")


def _axis_mapping(pixels: int) -> tuple[float, float]:
    """Return (step, start) so that coordinate = start + index * step spans [-1, 1].

    A single-pixel axis maps to the center, 0.
    """
    if pixels == 1:
        return 0.0, 0.0
    return 2.0 / (pixels - 1), -1.0


@ti.data_oriented
class Renderer:
    """Renders a committed scene through a camera into a float RGB image.

    Args:
        scene: A committed Scene.
        camera: The viewpoint.
        settings: Image and integrator settings. Defaults to RenderSettings().
    """

    def __init__(
        self, scene: Scene, camera: Camera, settings: RenderSettings | None = None
    ) -> None:
        self.settings = settings or RenderSettings()
        self.scene = scene
        self.camera = camera
        self.integrator = PathIntegrator(
            scene,
            max_bounces=self.settings.max_bounces,
            rr_min_bounces=self.settings.rr_min_bounces,
            background=self.settings.background,
        )
        self._image = np.zeros((self.settings.height, self.settings.width, 3), dtype=np.float32)
        self._sample_count = 0

    @property
    def width(self) -> int:
        return self.settings.width

    @property
    def height(self) -> int:
        return self.settings.height

    @property
    def sample_count(self) -> int:
        """Samples per pixel accumulated by the last render."""
        return self._sample_count

    @property
    def image(self) -> npt.NDArray[np.float32]:
        """Averaged radiance of the last render, shape (height, width, 3)."""
        return self._image

    @ti.kernel
    def _render_rows(
        self,
        image: ti.types.ndarray(dtype=ti.f32, ndim=3),
        rotation: tm.mat3,
        position: vec3,
        fov_factor: ti.f32,
        u_step: ti.f32,
        u_start: ti.f32,
        v_step: ti.f32,
        v_start: ti.f32,
        u_scale: ti.f32,
        v_scale: ti.f32,
        samples: ti.i32,
        seed: ti.u32,
        task_offset: ti.i32,
    ):
        """Average ``samples`` radiance estimates per pixel into image."""
        height = image.shape[0]
        width = image.shape[1]
        for y in range(height):
            ctx = make_context(seed, task_offset + y)
            v = (v_start + y * v_step) * v_scale
            for x in range(width):
                u = (u_start + x * u_step) * u_scale
                ray = camera_ray(rotation, position, fov_factor, u, v)

                total = vec3(0.0)
                for _ in range(samples):
                    total += self.integrator.radiance(ray, ctx)

                color = total / ti.cast(samples, ti.f32)
                for c in ti.static(range(3)):
                    image[y, x, c] = color[c]

    def render_progressive(
        self, samples: int | None = None, batch_size: int | None = None
    ) -> Generator[tuple[int, int], None, None]:
        """Render in batches, yielding progress after each batch.

        Args:
            samples: Samples per pixel. Defaults to settings.samples.
            batch_size: Samples per batch. Defaults to settings.batch_size,
                or all samples at once.

        Yields:
            Tuple of (samples_done, samples_total).
        """
        total = self.settings.samples if samples is None else samples
        batch_size = batch_size or self.settings.batch_size or total
        if total < 1:
            raise ValueError(f"samples must be at least 1, got {total}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")

        width, height = self.settings.width, self.settings.height
        u_scale = width / height if width > height else 1.0
        v_scale = height / width if height > width else 1.0
        u_step, u_start = _axis_mapping(width)
        v_step, v_start = _axis_mapping(height)
        # Image rows go top to bottom while v goes up
        v_step, v_start = -v_step, -v_start

        rotation = ti.Matrix(self.camera.rotation.tolist())
        position = vec3(*self.camera.position.tolist())
        fov_factor = self.camera.fov_factor

        accumulated = np.zeros((height, width, 3), dtype=np.float32)
        batch_image = np.zeros((height, width, 3), dtype=np.float32)
        done = 0
        batch_index = 0
        start = time.perf_counter()

        while done < total:
            batch = min(batch_size, total - done)
            self._render_rows(
                batch_image,
                rotation,
                position,
                fov_factor,
                u_step,
                u_start,
                v_step,
                v_start,
                u_scale,
                v_scale,
                batch,
                self.settings.seed,
                batch_index * height,
            )
            # Running average over batches weighted by their sample counts
            accumulated += (batch_image - accumulated) * (batch / (done + batch))
            done += batch
            batch_index += 1

            self._image = accumulated
            self._sample_count = done
            logger.debug("Batch %d: %d/%d samples", batch_index, done, total)
            yield done, total

        elapsed = time.perf_counter() - start
        logger.info("Rendered %dx%d at %d spp in %.2fs", width, height, total, elapsed)
        self._warn_non_finite()

    def render(
        self,
        samples: int | None = None,
        batch_size: int | None = None,
        callback: ProgressCallback | None = None,
    ) -> npt.NDArray[np.float32]:
        """Render the image.

        Args:
            samples: Samples per pixel. Defaults to settings.samples.
            batch_size: Samples per kernel launch. Defaults to
                settings.batch_size, or all samples at once.
            callback: Called after each batch with (samples_done,
                samples_total). Raising from it aborts the render.

        Returns:
            The averaged radiance, float32 array of shape (height, width, 3).
            Non-finite values are kept.
        """
        for done, total in self.render_progressive(samples, batch_size):
            if callback is not None:
                callback(done, total)
        return self._image

    def _warn_non_finite(self) -> int:
        bad = int(np.count_nonzero(~np.all(np.isfinite(self._image), axis=2)))
        if bad:
            logger.warning("%d pixel(s) have non-finite radiance and will be written as 0", bad)
        return bad

    def __repr__(self) -> str:
        return (
            f"Renderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
