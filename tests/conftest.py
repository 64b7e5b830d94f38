from __future__ import annotations

import io
import logging
from typing import Callable

import pytest

from raster_service.conversion import OutputFormat


class FakePage:
    """Page handle that records every call made on it."""

    def __init__(self, index: int, width: int, height: int, fail_stage: str | None = None) -> None:
        self.index = index
        self._width = width
        self._height = height
        self.fail_stage = fail_stage
        self.ops: list[str] = []
        self.rotations: list[float] = []
        self.quality: int | None = None
        self.format: OutputFormat | None = None
        self.closed = False

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def _step(self, stage: str) -> None:
        self.ops.append(stage)
        if stage == self.fail_stage:
            raise RuntimeError(f"{stage} exploded")

    def flatten(self) -> None:
        self._step("flatten")

    def set_quality(self, quality: int) -> None:
        self._step("quality")
        self.quality = quality

    def set_format(self, fmt: OutputFormat) -> None:
        self._step("format")
        self.format = fmt

    def rotate(self, degrees: float) -> None:
        self._step("rotate")
        self.rotations.append(degrees)
        if degrees % 180:
            self._width, self._height = self._height, self._width

    def to_bytes(self) -> bytes:
        self._step("serialize")
        return f"page-{self.index}-{self._width}x{self._height}".encode("ascii")

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakePage":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class FakeDocument:
    def __init__(self, sizes: list[tuple[int, int]], fail_stage: str | None, fail_page: int) -> None:
        self.sizes = sizes
        self.fail_stage = fail_stage
        self.fail_page = fail_page
        self.resolution: tuple[float, float] | None = None
        self.data: bytes | None = None
        self.pages: list[FakePage] = []
        self.closed = False

    def set_resolution(self, x: float, y: float) -> None:
        if self.fail_stage == "density":
            raise ValueError("bad resolution")
        self.resolution = (x, y)

    def read(self, data: bytes) -> None:
        if self.fail_stage == "read":
            raise ValueError("no decode delegate")
        self.data = data

    @property
    def page_count(self) -> int:
        return len(self.sizes)

    def extract_page(self, index: int) -> FakePage:
        failing = index == self.fail_page
        if failing and self.fail_stage == "extract":
            raise RuntimeError("extract exploded")
        width, height = self.sizes[index]
        page = FakePage(index, width, height, self.fail_stage if failing else None)
        self.pages.append(page)
        return page

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeDocument":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class FakeEngine:
    """In-memory stand-in for the rasterization runtime."""

    def __init__(
        self,
        sizes: list[tuple[int, int]] | None = None,
        *,
        fail_stage: str | None = None,
        fail_page: int = 0,
    ) -> None:
        self.sizes = sizes if sizes is not None else [(600, 800)] * 3
        self.fail_stage = fail_stage
        self.fail_page = fail_page
        self.initialized = 0
        self.terminated = 0
        self.documents: list[FakeDocument] = []

    def initialize(self) -> None:
        self.initialized += 1

    def terminate(self) -> None:
        self.terminated += 1

    def open_document(self) -> FakeDocument:
        doc = FakeDocument(self.sizes, self.fail_stage, self.fail_page)
        self.documents.append(doc)
        return doc


@pytest.fixture()
def make_engine() -> Callable[..., FakeEngine]:
    return FakeEngine


@pytest.fixture()
def pdf_factory() -> Callable[[list[tuple[float, float]]], bytes]:
    """Build an in-memory PDF with one page per (width, height) in points."""
    import fitz

    def _create(sizes: list[tuple[float, float]]) -> bytes:
        doc = fitz.open()
        try:
            for number, (width, height) in enumerate(sizes, start=1):
                page = doc.new_page(width=width, height=height)
                page.insert_text((10, 20), f"Page {number}", fontsize=10)
            return doc.tobytes()
        finally:
            doc.close()

    return _create


@pytest.fixture()
def sample_pdf(pdf_factory: Callable[[list[tuple[float, float]]], bytes]) -> bytes:
    return pdf_factory([(72, 144), (144, 72), (72, 72)])


@pytest.fixture()
def multipage_tiff() -> bytes:
    from PIL import Image

    frames = [
        Image.new("RGB", (40, 20), "red"),
        Image.new("RGB", (20, 40), "green"),
        Image.new("RGB", (30, 30), "blue"),
        Image.new("RGB", (50, 10), "white"),
    ]
    buf = io.BytesIO()
    frames[0].save(buf, format="TIFF", save_all=True, append_images=frames[1:])
    return buf.getvalue()


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
