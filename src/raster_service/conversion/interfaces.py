from typing import Protocol

from .params import OutputFormat


class PageHandle(Protocol):
    """One page pulled out of a document into its own isolated handle.

    Transforms applied here never affect the document or other pages.
    """

    @property
    def width(self) -> int:
        ...

    @property
    def height(self) -> int:
        ...

    def flatten(self) -> None:
        """Merge all layers (including transparency) into one flat raster."""

    def set_quality(self, quality: int) -> None:
        ...

    def set_format(self, fmt: OutputFormat) -> None:
        ...

    def rotate(self, degrees: float) -> None:
        """Rotate by `degrees`; positive is clockwise, negative counter-clockwise."""

    def to_bytes(self) -> bytes:
        """Encode the page with the configured format and quality."""

    def close(self) -> None:
        ...

    def __enter__(self) -> "PageHandle":
        ...

    def __exit__(self, *exc: object) -> None:
        ...


class DocumentHandle(Protocol):
    def set_resolution(self, x: float, y: float) -> None:
        """Set the rendering resolution in DPI; must precede `read`."""

    def read(self, data: bytes) -> None:
        ...

    @property
    def page_count(self) -> int:
        ...

    def extract_page(self, index: int) -> PageHandle:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "DocumentHandle":
        ...

    def __exit__(self, *exc: object) -> None:
        ...


class RasterEngine(Protocol):
    """Process-wide rasterization runtime.

    `initialize` and `terminate` are called once by the process owner;
    `open_document` is safe to call concurrently from request workers.
    """

    def initialize(self) -> None:
        ...

    def terminate(self) -> None:
        ...

    def open_document(self) -> DocumentHandle:
        ...
