import io
import zipfile

from .errors import ArchiveError


class PageArchive:
    """In-memory Zip archive with one deflated entry per page.

    Entries use the fastest deflate setting; rasterized pages are already
    compressed by their codec so a higher level buys almost nothing.
    """

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._zip: zipfile.ZipFile | None = zipfile.ZipFile(
            self._buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=1
        )
        self._names: list[str] = []

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def add(self, name: str, data: bytes) -> None:
        if self._zip is None:
            raise ArchiveError("create", "archive already closed")
        try:
            entry = self._zip.open(name, "w")
        except (OSError, ValueError) as e:
            raise ArchiveError("create", str(e)) from e
        try:
            with entry:
                entry.write(data)
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise ArchiveError("write", str(e)) from e
        self._names.append(name)

    def close(self) -> bytes:
        """Finalize the archive and return its bytes; valid exactly once."""
        if self._zip is None:
            raise ArchiveError("close", "archive already closed")
        zf, self._zip = self._zip, None
        try:
            zf.close()
        except (OSError, ValueError) as e:
            raise ArchiveError("close", str(e)) from e
        return self._buffer.getvalue()

    def discard(self) -> None:
        if self._zip is not None:
            zf, self._zip = self._zip, None
            try:
                zf.close()
            finally:
                self._buffer.close()

    def __enter__(self) -> "PageArchive":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.discard()
