"""Taichi-based Monte Carlo path tracer.

This package renders scenes of spheres, quads and triangle meshes lit by
point lights, with support for:
- Iterative path tracing with Russian roulette termination
- Lambertian and mirror materials behind a single dispatched interface
- Deterministic, per-row random streams for reproducible renders
- YAML scene files and PNG output

Subpackages:
    core: Rays, shading frames, random streams, the integrator and render loop
    geometry: Shape descriptions and intersection functions
    materials: Material records and reflectance models
    scene: Scene container, placement and the YAML loader
    camera: Pitch/yaw pinhole camera
    preview: Image quantization and export
"""

__version__ = "0.1.0"
