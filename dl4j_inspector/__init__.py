# dl4j_inspector/__init__.py
"""
dl4j_inspector
==============

Pure-Python decoder for exported Deeplearning4j model archives: configuration
normalization, graph and shape inference, ND4J weight blob extraction, weight
statistics, rich console reporting, and a best-effort forward pass engine.
"""
from __future__ import annotations

from importlib.metadata import version as _pkg_version

__all__ = ["__version__"]

try:
    # Read version dynamically from installed package metadata
    __version__: str = _pkg_version("dl4j-inspector")
except Exception:  # pragma: no cover - fallback for development environments
    __version__ = "0.0.0-dev"
