"""
Raster Conversion Service package.

This module provides a FastAPI application that rasterizes (multi-page)
documents and returns the pages as a Zip archive at `/convert`.
"""

import os

__all__ = ["__version__"]

__version__ = os.getenv("RASTER_SERVICE_VERSION", "0.1.0")
