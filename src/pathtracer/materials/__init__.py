"""Material models.

Components:
    base: The device-side Material record and MaterialKind tags
    lambertian: Ideal diffuse reflection with cosine-weighted sampling
    mirror: Perfect specular reflection
    dispatch: weight_pdf, sample_pdf, brdf and emittance selected by kind
"""

from .base import Material, MaterialKind
from .dispatch import brdf, emittance, sample_pdf, weight_pdf
from .lambertian import Lambertian, eval_lambertian, pdf_lambertian, sample_lambertian
from .mirror import Mirror, sample_mirror

__all__ = [
    "Material",
    "MaterialKind",
    "Lambertian",
    "Mirror",
    "weight_pdf",
    "sample_pdf",
    "brdf",
    "emittance",
    "eval_lambertian",
    "pdf_lambertian",
    "sample_lambertian",
    "sample_mirror",
]
