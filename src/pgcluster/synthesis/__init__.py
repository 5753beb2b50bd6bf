"""Manifest synthesis: from a cluster resource to the objects that run it."""

from .context import ClusterContext
from .engine import GeneratedManifestSet, ManifestSynthesizer

__all__ = [
    "ClusterContext",
    "GeneratedManifestSet",
    "ManifestSynthesizer",
]
