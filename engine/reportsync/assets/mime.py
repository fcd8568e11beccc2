"""
reportsync — MIME type detection by magic bytes.

Uses libmagic through python-magic. The file extension is never consulted:
a PNG saved as `plot.txt` is still `image/png`. In-memory buffers are written
to a scratch file first so detection always runs against a seekable file.
"""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path

from reportsync.errors import AssetNotFoundError, SniffFailedError
from reportsync.utils.logging import logger


class MimeSniffer:
    """Detects `type/subtype` from content, against the system or a bundled signature db."""

    def __init__(self, magic_file: str | None = None):
        self.magic_file = magic_file
        self._magic = None
        self._lock = threading.Lock()

    def _detector(self):
        if self._magic is None:
            import magic

            self._magic = magic.Magic(mime=True, magic_file=self.magic_file)
        return self._magic

    def detect(self, path: str | Path | None = None, buffer: bytes | None = None) -> str:
        """Return the primary MIME type of a file or buffer, without parameters."""
        if buffer is not None:
            fd, scratch = tempfile.mkstemp(prefix="reportsync-sniff-")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(buffer)
                return self._detect_file(Path(scratch), label="<buffer>")
            finally:
                os.unlink(scratch)

        if path is None:
            raise SniffFailedError("<none>", "either a path or a buffer is required")
        return self._detect_file(Path(path), label=str(path))

    def _detect_file(self, path: Path, label: str) -> str:
        if not path.exists():
            raise AssetNotFoundError(label)
        try:
            with self._lock:
                raw = self._detector().from_file(str(path))
        except Exception as exc:
            # OSError for unreadable files, magic.MagicException for detector failures
            raise SniffFailedError(label, str(exc)) from exc

        mime = (raw or "").split(";")[0].strip()
        if "/" not in mime:
            raise SniffFailedError(label, f"unexpected detector answer {raw!r}")
        logger.debug("  Sniffed %s as %s", label, mime)
        return mime
