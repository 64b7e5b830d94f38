import logging
from collections.abc import Iterator
from contextlib import contextmanager

from .archive import PageArchive
from .errors import EngineError
from .interfaces import DocumentHandle, PageHandle, RasterEngine
from .params import ConversionConfig, Layout

logger = logging.getLogger(__name__)

# Negative turns counter-clockwise in the engine's rotation convention
ROTATION_DEGREES = -90.0


@contextmanager
def _stage(name: str, **context: object) -> Iterator[None]:
    """Re-raise any engine failure inside the block as EngineError(name)."""
    try:
        yield
    except EngineError:
        raise
    except Exception as e:
        # the HTTP layer logs the resulting EngineError once at ERROR
        logger.debug(
            "Rasterization failed at stage %s: %s",
            name,
            e,
            extra={"stage": name, **context},
        )
        raise EngineError(name, str(e)) from e


class ConversionService:
    """Core domain service converting one document into a Zip of pages.

    This service is framework-agnostic and stateless: each call owns its
    document handle, page handles and archive buffer, so a single instance
    can be shared by concurrent request workers. The engine runtime is
    injected and its lifecycle belongs to the caller.
    """

    def __init__(self, engine: RasterEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> RasterEngine:
        return self._engine

    def convert(self, data: bytes, config: ConversionConfig) -> bytes:
        """Rasterize every page of `data` and return the Zip archive bytes.

        This is a blocking call; callers should offload to threads if needed.
        Raises EngineError or ArchiveError, never returning a partial archive.
        """
        with self._engine.open_document() as doc, PageArchive() as archive:
            with _stage("density", density=config.density):
                doc.set_resolution(config.density, config.density)
            with _stage("read", size_bytes=len(data)):
                doc.read(data)

            page_count = doc.page_count
            logger.info("Converting %d page(s)", page_count, extra={"pages": page_count})

            for index in range(page_count):
                name = config.entry_name(index)
                archive.add(name, self._render_page(doc, index, config))
                logger.debug("Added archive entry %s", name, extra={"entry": name})

            out = archive.close()

        logger.info("Built archive of %d bytes", len(out), extra={"size_bytes": len(out)})
        return out

    def _render_page(self, doc: DocumentHandle, index: int, config: ConversionConfig) -> bytes:
        with _stage("extract", page=index):
            page = doc.extract_page(index)
        with page:
            with _stage("flatten", page=index):
                page.flatten()
            with _stage("quality", page=index, quality=config.quality):
                page.set_quality(config.quality)
            with _stage("format", page=index, format=config.format.value):
                page.set_format(config.format)
            with _stage("rotate", page=index, layout=config.layout.value):
                self.apply_layout(page, config.layout)
            with _stage("serialize", page=index):
                return page.to_bytes()

    @staticmethod
    def apply_layout(page: PageHandle, layout: Layout) -> bool:
        """Rotate `page` to match `layout`; returns whether it was rotated.

        Square pages are left alone under every policy.
        """
        if layout is Layout.LANDSCAPE:
            rotate = page.width < page.height
        elif layout is Layout.PORTRAIT:
            rotate = page.height < page.width
        else:
            rotate = False
        if rotate:
            page.rotate(ROTATION_DEGREES)
        return rotate
