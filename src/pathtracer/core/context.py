"""Per-task render context holding a private random stream.

Every parallel task of the render kernel (one image row per task) builds its
own RenderContext at task start and threads it through the integrator. The
context is never shared between tasks, so random draws need no
synchronization, and because each stream is derived from (seed, task) alone
the rendered image does not depend on thread scheduling.

The generator is a 32-bit xorshift seeded through a Wang hash. Draws mutate
the context in place: functions that consume randomness take the context as
``ti.template()``, which Taichi passes by reference.

Example:
    >>> @ti.kernel
    ... def draw(seed: ti.u32) -> ti.f32:
    ...     ctx = make_context(seed, 0)
    ...     return next_uniform(ctx)
"""

import taichi as ti

# 1 / 2^24: maps the top 24 bits of a draw onto [0, 1)
_INV_2_POW_24 = 1.0 / 16777216.0


@ti.dataclass
class RenderContext:
    """Private state of one render task.

    Attributes:
        state: Current xorshift32 state. Never zero.
    """

    state: ti.u32


@ti.func
def wang_hash(key: ti.u32) -> ti.u32:
    """Scramble a 32-bit key (Thomas Wang's integer hash)."""
    h = (key ^ ti.u32(61)) ^ (key >> ti.u32(16))
    h = h * ti.u32(9)
    h = h ^ (h >> ti.u32(4))
    h = h * ti.u32(0x27D4EB2D)
    h = h ^ (h >> ti.u32(15))
    return h


@ti.func
def _xorshift32(x: ti.u32) -> ti.u32:
    y = x
    y = y ^ (y << ti.u32(13))
    y = y ^ (y >> ti.u32(17))
    y = y ^ (y << ti.u32(5))
    return y


@ti.func
def make_context(seed: ti.u32, task: ti.i32) -> RenderContext:
    """Create the context for one task of a render.

    Args:
        seed: The render seed shared by all tasks of one launch.
        task: The task index (image row, or row offset by batch).

    Returns:
        A RenderContext whose stream is independent of other task indices.
    """
    state = wang_hash(seed ^ wang_hash(ti.cast(task, ti.u32) + ti.u32(1)))
    if state == ti.u32(0):
        state = ti.u32(0x4F1BBCDC)
    return RenderContext(state=state)


@ti.func
def next_uniform(ctx: ti.template()) -> ti.f32:
    """Draw a uniform float in [0, 1) and advance the context's stream."""
    ctx.state = _xorshift32(ctx.state)
    return ti.cast(ctx.state >> ti.u32(8), ti.f32) * _INV_2_POW_24
