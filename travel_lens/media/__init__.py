"""Media store collaborator and derived display variants."""

from .store import LocalMediaStore, MediaStore, MediaStoreConfig
from .variants import GRAVITIES, gravity_for, render_variant, standard_variants, variant_key

__all__ = [
    "GRAVITIES",
    "LocalMediaStore",
    "MediaStore",
    "MediaStoreConfig",
    "gravity_for",
    "render_variant",
    "standard_variants",
    "variant_key",
]
