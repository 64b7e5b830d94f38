import argparse
import asyncio
import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from starlette.requests import ClientDisconnect

from raster_service import __version__
from raster_service.conversion import (
    PARAMETER_NAMES,
    BodyReadError,
    ConversionError,
    ConversionService,
    PayloadTooLarge,
    RasterEngine,
    resolve_config,
)
from raster_service.logging_setup import configure_logging
from raster_service.settings import Settings

logger = logging.getLogger(__name__)

# Global configuration defaults
SETTINGS = Settings.from_env()

# Matches the headers of a classic no-cache middleware
NO_CACHE_HEADERS = {
    "Expires": "Thu, 01 Jan 1970 00:00:00 UTC",
    "Cache-Control": "no-cache, no-store, no-transform, must-revalidate, private, max-age=0",
    "Pragma": "no-cache",
    "X-Accel-Expires": "0",
}


async def _read_body(request: Request, max_bytes: int) -> bytes:
    """Read the raw request body, enforcing the upload size limit."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLarge(max_bytes // (1024 * 1024))

    chunks: list[bytes] = []
    size_bytes = 0
    try:
        async for chunk in request.stream():
            size_bytes += len(chunk)
            if size_bytes > max_bytes:
                raise PayloadTooLarge(max_bytes // (1024 * 1024))
            chunks.append(chunk)
    except (ClientDisconnect, OSError) as e:
        raise BodyReadError(str(e) or type(e).__name__) from e
    return b"".join(chunks)


def create_app(engine: RasterEngine | None = None, *, max_upload_mb: int | None = None) -> FastAPI:
    """Build the FastAPI application around a rasterization engine.

    The engine is initialized once at startup and terminated at shutdown;
    pass a fake engine to test the HTTP layer without PyMuPDF.
    """
    if engine is None:
        from raster_service.conversion.adapters import PyMuPDFEngine

        engine = PyMuPDFEngine()
    service = ConversionService(engine)
    limit_mb = SETTINGS.max_upload_mb if max_upload_mb is None else max_upload_mb
    max_bytes = limit_mb * 1024 * 1024

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        engine.initialize()
        try:
            yield
        finally:
            engine.terminate()

    app = FastAPI(
        title="Raster Conversion Service",
        version=__version__,
        description=(
            "Converts (multi-page) documents and images into a Zip archive of "
            "rasterized pages."
        ),
        lifespan=lifespan,
    )
    app.state.service = service

    @app.middleware("http")
    async def _no_cache(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(NO_CACHE_HEADERS)
        return response

    @app.exception_handler(ConversionError)
    async def _conversion_error(request: Request, exc: ConversionError) -> JSONResponse:
        fields = {k: v for k, v in vars(exc).items() if k != "message"}
        level = logging.WARNING if exc.status_code < 500 else logging.ERROR
        logger.log(level, "Conversion request failed: %s", exc, extra=fields)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while serving %s", request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal server error"},
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        """Basic health check endpoint."""
        return {"status": "OK"}

    @app.get("/version")
    def version() -> str:
        return __version__

    @app.post("/convert", response_class=Response)
    async def convert(request: Request) -> Response:
        """Convert the raw request body into a Zip archive of pages.

        Query parameters: density (DPI, default 300), quality (default 85),
        format (JPEG|PNG|TIFF, default JPEG) and layout
        (LANDSCAPE|PORTRAIT|KEEP, default KEEP), all case-insensitive.
        Parameters are validated before the body is read.
        """
        config = resolve_config({name: request.query_params.get(name) for name in PARAMETER_NAMES})
        data = await _read_body(request, max_bytes)
        logger.info(
            "Converting %d byte(s) at %s dpi to %s",
            len(data),
            config.density,
            config.format.value,
            extra={"layout": config.layout.value, "quality": config.quality},
        )
        archive = await asyncio.to_thread(service.convert, data, config)
        return Response(content=archive, media_type="application/zip")

    return app


app = create_app()


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="raster-service",
        description="A simple API server to convert (multi-page) documents into rasterized pages.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--host", default=settings.host, help="address the server should listen to")
    parser.add_argument("--port", type=int, default=settings.port, help="port the server should listen to")
    parser.add_argument("--log-level", default=settings.log_level, help="verbosity of logging output")
    parser.add_argument(
        "--log-json",
        action=argparse.BooleanOptionalAction,
        default=settings.log_json,
        help="change logging format to JSON",
    )
    parser.add_argument(
        "--shutdown-timeout",
        type=int,
        default=settings.shutdown_timeout,
        help="seconds to wait for in-flight requests on shutdown",
    )
    return parser


def run(argv: list[str] | None = None) -> None:
    """Run the ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:8081). Flags override the
    RASTER_SERVICE_* environment variables.
    """
    import uvicorn

    args = _build_parser(SETTINGS).parse_args(argv)
    try:
        configure_logging(args.log_level, json_output=args.log_json)
    except ValueError as e:
        print(f"raster-service: {e}", file=sys.stderr)
        sys.exit(2)

    logger.info("Starting server on %s:%d", args.host, args.port, extra={"pid": os.getpid()})
    # uvicorn handles SIGINT/SIGTERM and exits non-zero when it cannot bind
    uvicorn.run(
        "raster_service.webapi:app",
        host=args.host,
        port=args.port,
        reload=SETTINGS.reload,
        log_config=None,
        timeout_graceful_shutdown=args.shutdown_timeout,
    )
    logger.info("Server stopped")


if __name__ == "__main__":
    run()
