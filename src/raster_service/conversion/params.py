import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from .errors import InvalidParameter

PARAMETER_NAMES = ("density", "quality", "format", "layout")


class OutputFormat(str, Enum):
    JPEG = "JPEG"  # JPEG File Interchange Format
    PNG = "PNG"  # Portable Network Graphics
    TIFF = "TIFF"  # Tagged Image File Format

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        try:
            return cls(value.upper())
        except ValueError:
            raise ValueError(f"unsupported output format: {value!r}") from None


_EXTENSIONS = {
    OutputFormat.JPEG: "jpg",
    OutputFormat.PNG: "png",
    OutputFormat.TIFF: "tiff",
}


class Layout(str, Enum):
    LANDSCAPE = "LANDSCAPE"  # force width > height
    PORTRAIT = "PORTRAIT"  # force height > width
    KEEP = "KEEP"  # keep the original orientation

    @classmethod
    def parse(cls, value: str) -> "Layout":
        try:
            return cls(value.upper())
        except ValueError:
            raise ValueError(f"unsupported layout: {value!r}") from None


@dataclass(frozen=True)
class ConversionConfig:
    density: float = 300.0
    quality: int = 85
    format: OutputFormat = OutputFormat.JPEG
    layout: Layout = Layout.KEEP

    def entry_name(self, index: int) -> str:
        """Archive entry name of the page at zero-based `index`."""
        return f"{index:04d}.{self.format.extension}"


def resolve_config(params: Mapping[str, str | None]) -> ConversionConfig:
    """Validate untyped request parameters into a ConversionConfig.

    Absent keys, `None` and empty strings all fall back to the defaults.
    Raises InvalidParameter naming the first offending field.
    """
    defaults = ConversionConfig()

    density = defaults.density
    if v := params.get("density"):
        try:
            density = float(v)
        except ValueError:
            raise InvalidParameter("density", v) from None
        if not math.isfinite(density):
            raise InvalidParameter("density", v)

    quality = defaults.quality
    if v := params.get("quality"):
        # Unsigned base-10 only: no sign, whitespace or digit separators
        if not (v.isascii() and v.isdigit()):
            raise InvalidParameter("quality", v)
        quality = int(v)

    fmt = defaults.format
    if v := params.get("format"):
        try:
            fmt = OutputFormat.parse(v)
        except ValueError:
            raise InvalidParameter("format", v) from None

    layout = defaults.layout
    if v := params.get("layout"):
        try:
            layout = Layout.parse(v)
        except ValueError:
            raise InvalidParameter("layout", v) from None

    return ConversionConfig(density=density, quality=quality, format=fmt, layout=layout)
