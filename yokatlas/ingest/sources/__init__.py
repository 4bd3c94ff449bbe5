from __future__ import annotations

from .atlas_api import AtlasApiSource
from .atlas_browser import AtlasBrowserSource

__all__ = ["AtlasApiSource", "AtlasBrowserSource"]
