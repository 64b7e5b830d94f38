import io
import logging
import math
import threading

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from .interfaces import DocumentHandle, PageHandle, RasterEngine
from .params import OutputFormat

logger = logging.getLogger(__name__)

# Highest quality Pillow's codecs accept
MAX_QUALITY = 100

# Modes the PNG encoder writes without conversion
PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


class PillowPage(PageHandle):
    """A single page held as its own Pillow image."""

    def __init__(self, image: Image.Image, density: float) -> None:
        self._image = image
        self._density = density
        self._quality: int | None = None
        self._format: OutputFormat | None = None

    @property
    def width(self) -> int:
        return self._image.width

    @property
    def height(self) -> int:
        return self._image.height

    @property
    def image(self) -> Image.Image:
        return self._image

    def flatten(self) -> None:
        im = self._image
        if im.mode == "P":
            im = im.convert("RGBA") if "transparency" in im.info else im.convert("RGB")
        elif im.mode in ("LA", "La", "PA", "RGBa"):
            im = im.convert("RGBA")
        if im.mode == "RGBA":
            background = Image.new("RGB", im.size, (255, 255, 255))
            background.paste(im, mask=im.getchannel("A"))
            im = background
        self._replace(im)

    def set_quality(self, quality: int) -> None:
        if not 0 <= quality <= MAX_QUALITY:
            raise ValueError(f"compression quality {quality} outside 0..{MAX_QUALITY}")
        self._quality = quality

    def set_format(self, fmt: OutputFormat) -> None:
        if fmt.value not in Image.SAVE:
            raise ValueError(f"no encoder available for {fmt.value}")
        self._format = fmt

    def rotate(self, degrees: float) -> None:
        # Pillow turns counter-clockwise for positive angles
        self._replace(self._image.rotate(-degrees, expand=True))

    def to_bytes(self) -> bytes:
        if self._format is None:
            raise ValueError("output format not set")
        im = self._image
        params: dict[str, object] = {"dpi": (self._density, self._density)}
        if self._format is OutputFormat.JPEG:
            if im.mode not in ("L", "RGB", "CMYK"):
                im = im.convert("RGB")
            if self._quality is not None:
                params["quality"] = self._quality
        elif self._format is OutputFormat.PNG:
            if im.mode == "F":
                im = im.convert("L")
            elif im.mode not in PNG_MODES:
                im = im.convert("RGB")
            if self._quality is not None:
                params["compress_level"] = min(self._quality // 10, 9)
        buf = io.BytesIO()
        im.save(buf, format=self._format.value, **params)
        return buf.getvalue()

    def close(self) -> None:
        self._image.close()

    def _replace(self, image: Image.Image) -> None:
        if image is not self._image:
            self._image.close()
            self._image = image

    def __enter__(self) -> "PillowPage":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class PyMuPDFDocument(DocumentHandle):
    """Decoded source document.

    Raster inputs Pillow recognises (multi-page TIFF, GIF, PNG, JPEG, ...)
    yield one page per frame at their native size. Everything else is
    opened as a PDF and rendered at the configured resolution.
    """

    def __init__(self, mupdf_lock: threading.Lock) -> None:
        self._mupdf_lock = mupdf_lock
        self._density: float | None = None
        self._pdf: fitz.Document | None = None
        self._raster: Image.Image | None = None
        self._count = 0

    def set_resolution(self, x: float, y: float) -> None:
        for v in (x, y):
            if not math.isfinite(v) or v <= 0:
                raise ValueError(f"resolution must be a positive number, got {v}")
        # MuPDF renders with one zoom factor for both axes
        self._density = min(x, y)

    def read(self, data: bytes) -> None:
        if self._density is None:
            raise ValueError("resolution must be set before reading")
        if not data:
            raise ValueError("empty input")
        try:
            self._raster = Image.open(io.BytesIO(data))
        except UnidentifiedImageError:
            self._raster = None
        if self._raster is not None:
            self._count = getattr(self._raster, "n_frames", 1)
        else:
            with self._mupdf_lock:
                self._pdf = fitz.open(stream=data, filetype="pdf")
                self._count = self._pdf.page_count

    @property
    def page_count(self) -> int:
        return self._count

    def extract_page(self, index: int) -> PillowPage:
        if not 0 <= index < self._count:
            raise IndexError(f"page {index} out of range")
        assert self._density is not None
        if self._raster is not None:
            self._raster.seek(index)
            return PillowPage(self._raster.copy(), self._density)
        assert self._pdf is not None
        zoom = self._density / 72.0  # PDF user space is 72 DPI
        with self._mupdf_lock:
            page = self._pdf.load_page(index)
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=True)
            mode = "RGBA" if pix.alpha else "RGB"
            image = Image.frombytes(mode, (pix.width, pix.height), pix.samples)
            # samples are copied; drop the MuPDF objects while still serialized
            del pix, page
        return PillowPage(image, self._density)

    def close(self) -> None:
        if self._pdf is not None:
            with self._mupdf_lock:
                self._pdf.close()
            self._pdf = None
        if self._raster is not None:
            self._raster.close()
            self._raster = None

    def __enter__(self) -> "PyMuPDFDocument":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class PyMuPDFEngine(RasterEngine):
    """Process-wide PyMuPDF/Pillow runtime.

    MuPDF keeps a global resource store; `terminate` releases it. MuPDF itself
    is not thread-safe, so every MuPDF call made by any document handle is
    serialized on one runtime-wide lock; Pillow work runs in parallel.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._mupdf_lock = threading.Lock()
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def initialize(self) -> None:
        with self._lock:
            if self._active:
                return
            Image.init()
            fitz.TOOLS.mupdf_display_errors(False)
            self._active = True
            logger.info("Rasterization engine initialized (PyMuPDF %s)", fitz.VersionBind)

    def terminate(self) -> None:
        with self._lock:
            if not self._active:
                return
            with self._mupdf_lock:
                fitz.TOOLS.store_shrink(100)
            self._active = False
            logger.info("Rasterization engine terminated")

    def open_document(self) -> PyMuPDFDocument:
        if not self._active:
            raise RuntimeError("rasterization engine is not initialized")
        return PyMuPDFDocument(self._mupdf_lock)
