"""WARC record serialization and file rotation for crawl output.

WARC Format Specification References:
- WARC 1.0: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/
"""

from . import boundary, clock, record, storage, stream, warc
from .boundary import BoundaryConfig, FileBoundaryPolicy
from .clock import FixedProvider, SystemProvider
from .errors import ConfigurationError, EncodingError, InvalidInputError, WarcFormatError
from .metadata import CrawlResult, Metadata
from .record import RecordKind, WarcRecord
from .storage import RotatingWarcWriter
from .stream import open_record_stream
from .warc import WarcRecordFormat, format_crawl_result, generate_warcinfo

__all__ = [
    "BoundaryConfig",
    "FileBoundaryPolicy",
    "FixedProvider",
    "SystemProvider",
    "WarcFormatError",
    "InvalidInputError",
    "EncodingError",
    "ConfigurationError",
    "CrawlResult",
    "Metadata",
    "RecordKind",
    "WarcRecord",
    "RotatingWarcWriter",
    "WarcRecordFormat",
    "format_crawl_result",
    "generate_warcinfo",
    "open_record_stream",
    "boundary",
    "clock",
    "record",
    "storage",
    "stream",
    "warc",
]
