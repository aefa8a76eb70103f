"""Local rotating storage for WARC output.

RotatingWarcWriter appends serialised records to the current file, gzips
each record as its own member, and starts a new file once the compressed size
of the current one reaches max_bytes. Every new file begins with the
bootstrap records of its FileBoundaryPolicy.

See:
    WARC 1.0 Annex D, record-at-time compression:
    https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#annex-d-informative-compression-recommendations
"""

import gzip
import logging
import os
import threading
import time

from crawlwarc.warcformat.boundary import FileBoundaryPolicy
from crawlwarc.warcformat.errors import ConfigurationError
from crawlwarc.warcformat.warc import WarcRecordFormat

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 1024**3  # 1 GiB of compressed output
DEFAULT_SYNC_EVERY = 1000  # records between fsyncs


class RotatingWarcWriter:
    """Writes crawl results to size-rotated WARC files in a directory.

    Files are named {prefix}-{UTC timestamp}-{serial}.warc.gz (or .warc when
    compression is off) and opened lazily, so no empty file is left behind
    after the last rotation. The writer is thread-safe.

    Args:
        directory: output directory, created if missing
        prefix: file name prefix
        max_bytes: rotate once this many (compressed) bytes are in the file
        compress: gzip each record as a separate member
        boundary: FileBoundaryPolicy providing the bootstrap records
        record_format: WarcRecordFormat turning crawl results into bytes
        sync_every: flush and fsync after this many records

    Raises:
        ConfigurationError: for a non-positive max_bytes or sync_every
    """

    def __init__(
        self,
        directory,
        prefix="crawl",
        max_bytes=DEFAULT_MAX_BYTES,
        compress=True,
        boundary=None,
        record_format=None,
        sync_every=DEFAULT_SYNC_EVERY,
    ):
        if max_bytes <= 0:
            raise ConfigurationError(f"rotation size must be positive, got {max_bytes}")
        if sync_every <= 0:
            raise ConfigurationError(f"sync interval must be positive, got {sync_every}")

        self.directory = directory
        self.prefix = prefix
        self.max_bytes = max_bytes
        self.compress = compress
        self.boundary = boundary if boundary is not None else FileBoundaryPolicy()
        self.record_format = record_format if record_format is not None else WarcRecordFormat()
        self.sync_every = sync_every

        self.file = None
        self.path = None
        self.bytes_written = 0
        self.records_since_sync = 0
        self.serial = 0
        self.files = []
        self.lock = threading.Lock()

        os.makedirs(directory, exist_ok=True)

    def _next_path(self):
        stamp = time.strftime("%Y%m%d%H%M%S", time.gmtime())
        extension = ".warc.gz" if self.compress else ".warc"
        name = f"{self.prefix}-{stamp}-{self.serial:05d}{extension}"
        self.serial += 1
        return os.path.join(self.directory, name)

    def _open_file(self):
        # bootstrap records are built before the file is created
        while True:
            path = self._next_path()
            chunks = self.boundary.bootstrap_records(path)
            try:
                self.file = open(path, "xb")
                break
            except FileExistsError:
                logger.warning("WARC file %s already exists, trying the next serial", path)

        self.path = path
        self.bytes_written = 0
        self.records_since_sync = 0
        self.files.append(path)

        # bootstrap records go first, one gzip member each
        for chunk in chunks:
            self._write_chunk(chunk)

    def _write_chunk(self, data):
        if self.compress:
            data = gzip.compress(data)
        self.file.write(data)
        self.bytes_written += len(data)

    def _sync(self):
        self.file.flush()
        os.fsync(self.file.fileno())
        self.records_since_sync = 0

    def _close_file(self):
        if self.file is None:
            return
        try:
            self.file.flush()
        finally:
            self.file.close()
            self.file = None

    def write(self, result):
        """Serialise a crawl result and append it to the current file.

        The record is built before anything is written, so a result that
        fails to serialise leaves the file untouched.
        """
        self.write_record(self.record_format.format(result))

    def write_record(self, data):
        """Append already serialised record bytes, rotating when full."""
        with self.lock:
            if self.file is None:
                self._open_file()

            self._write_chunk(data)
            self.records_since_sync += 1
            if self.records_since_sync >= self.sync_every:
                self._sync()

            if self.bytes_written >= self.max_bytes:
                logger.info(
                    "Rotating WARC file %s after %d bytes", self.path, self.bytes_written
                )
                self._close_file()

    def close(self):
        with self.lock:
            self._close_file()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
