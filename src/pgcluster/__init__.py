"""pgcluster - manifest synthesis for PostgreSQL clusters on Kubernetes."""

from ._version import __version__

# Make key components available at package level
from .synthesis.engine import GeneratedManifestSet, ManifestSynthesizer

__all__ = ["GeneratedManifestSet", "ManifestSynthesizer", "__version__"]
