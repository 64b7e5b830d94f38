class ConversionError(Exception):
    """Base failure of a single conversion request.

    `message` is safe to return to the client; `status_code` is the HTTP
    status the web layer responds with.
    """

    status_code = 500
    message = "conversion failed"


class InvalidParameter(ConversionError):
    status_code = 400

    _MESSAGES = {
        "density": "invalid density",
        "quality": "invalid compression quality",
        "format": "invalid output format",
        "layout": "invalid output layout",
    }

    def __init__(self, field: str, value: str | None = None) -> None:
        super().__init__(f"invalid value for {field}: {value!r}")
        self.field = field
        self.value = value
        self.message = self._MESSAGES.get(field, f"invalid {field}")


class PayloadTooLarge(ConversionError):
    status_code = 413

    def __init__(self, limit_mb: int) -> None:
        super().__init__(f"request body exceeds {limit_mb} MB")
        self.limit_mb = limit_mb
        self.message = f"request body exceeds {limit_mb} MB"


class BodyReadError(ConversionError):
    message = "failed to read request body"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class EngineError(ConversionError):
    """Raised when the rasterization engine fails at a pipeline stage."""

    _MESSAGES = {
        "density": "failed to set density",
        "read": "failed to read image",
        "extract": "failed to extract page",
        "flatten": "failed to flatten image",
        "quality": "failed to set compression quality",
        "format": "failed to set output format",
        "rotate": "failed to rotate image",
        "serialize": "failed to get output blob",
    }

    def __init__(self, stage: str, reason: str) -> None:
        super().__init__(f"{stage}: {reason}")
        self.stage = stage
        self.reason = reason
        self.message = self._MESSAGES.get(stage, "rasterization failed")


class ArchiveError(ConversionError):
    _MESSAGES = {
        "create": "failed to create new Zip archive entry",
        "write": "failed to write image into Zip archive",
        "close": "failed to close Zip archive",
    }

    def __init__(self, stage: str, reason: str) -> None:
        super().__init__(f"{stage}: {reason}")
        self.stage = stage
        self.reason = reason
        self.message = self._MESSAGES.get(stage, "failed to build Zip archive")
