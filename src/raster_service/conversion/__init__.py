"""
Domain layer for document rasterization.
Provides the engine interfaces (gateways), parameter resolution and a
service running the page-by-page conversion pipeline, abstracting the
rasterization engine so front-ends (HTTP or others) can use the same core.
"""

from .errors import (
    ArchiveError,
    BodyReadError,
    ConversionError,
    EngineError,
    InvalidParameter,
    PayloadTooLarge,
)
from .interfaces import DocumentHandle, PageHandle, RasterEngine
from .params import PARAMETER_NAMES, ConversionConfig, Layout, OutputFormat, resolve_config
from .service import ConversionService
