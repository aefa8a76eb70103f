"""What goes at the top of every new WARC file.

When the storage writer starts a file it asks the FileBoundaryPolicy for the
bootstrap records: an optional raw header (deprecated) followed by an
optional warcinfo record naming the file. These must be written before any
crawl-derived record of that file.

See:
    WARC 1.0 warcinfo: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#warcinfo
    WARC 1.0 WARC-Filename: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#warc-filename
"""

import logging
import os
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional

from crawlwarc.warcformat.clock import default_provider
from crawlwarc.warcformat.errors import ConfigurationError, EncodingError
from crawlwarc.warcformat.record import WarcRecord
from crawlwarc.warcformat.warc import encode_text, generate_warcinfo

logger = logging.getLogger(__name__)

FILENAME_FIELD = WarcRecord.FILENAME.decode("ascii")  # pylint: disable-msg=E1101


def _check_text(text, what):
    """Reject text that could not be written into a warcinfo record."""
    if "\r" in text or "\n" in text:
        raise ConfigurationError(f"line break in {what} {text!r}")
    try:
        encode_text(text, what)
    except EncodingError as e:
        raise ConfigurationError(str(e)) from e


class BoundaryConfig(NamedTuple):
    """Immutable per-stream configuration of the bootstrap records.

    Build it with BoundaryConfig.create(), which validates the input and
    freezes the mappings.
    """

    header: bytes = b""
    warc_fields: Optional[Mapping[str, str]] = None
    optional_header_fields: Mapping[str, Optional[str]] = MappingProxyType({})

    @classmethod
    def create(cls, header=None, warc_fields=None, optional_header_fields=None):
        """Validate and freeze a boundary configuration.

        Args:
            header: raw bytes written verbatim at the start of each file
                    (deprecated, prefer warc_fields)
            warc_fields: warc-fields of the warcinfo record, e.g. operator,
                         software; None disables the warcinfo record
            optional_header_fields: extra warcinfo header fields; a
                         WARC-Filename field set to None receives the name of
                         the new file

        Raises:
            ConfigurationError: for malformed input
        """
        if header is None:
            header = b""
        if not isinstance(header, (bytes, bytearray)):
            raise ConfigurationError("raw WARC header must be bytes")

        if optional_header_fields and warc_fields is None:
            raise ConfigurationError("optional warcinfo header fields given without warc fields")

        if warc_fields is not None:
            for key, value in warc_fields.items():
                if not isinstance(key, str) or not isinstance(value, str):
                    raise ConfigurationError(f"warc field {key!r} must map a string to a string")
                _check_text(key, "warc field name")
                _check_text(value, f"warc field {key}")
            warc_fields = MappingProxyType(dict(warc_fields))

        optional = {}
        for key, value in (optional_header_fields or {}).items():
            if not isinstance(key, str):
                raise ConfigurationError(f"header field name {key!r} must be a string")
            _check_text(key, "header field name")
            if value is None and key != FILENAME_FIELD:
                raise ConfigurationError(f"header field {key} has no value")
            if value is not None:
                if not isinstance(value, str):
                    raise ConfigurationError(f"header field {key} must have a string value")
                _check_text(value, f"header field {key}")
            optional[key] = value

        return cls(bytes(header), warc_fields, MappingProxyType(optional))

    @property
    def has_warcinfo(self):
        return self.warc_fields is not None


class FileBoundaryPolicy:
    """Produces the bootstrap bytes for each new output file."""

    def __init__(self, config=None, provider=None):
        self.config = config if config is not None else BoundaryConfig()
        self.provider = provider if provider is not None else default_provider

    def resolve_header_fields(self, filename):
        """Optional warcinfo header fields with WARC-Filename filled in."""
        name = os.path.basename(filename)
        fields = {}
        for key, value in self.config.optional_header_fields.items():
            if key == FILENAME_FIELD and value is None:
                value = name
            fields[key] = value
        return fields

    def bootstrap_records(self, filename):
        """The chunks to write, in order, at the start of filename."""
        logger.info("Starting new WARC file: %s", filename)
        chunks = []
        if self.config.header:
            chunks.append(self.config.header)
        if self.config.has_warcinfo:
            chunks.append(
                generate_warcinfo(
                    self.config.warc_fields,
                    self.resolve_header_fields(filename),
                    self.provider,
                )
            )
        return chunks

    def on_new_file(self, filename):
        """Bytes to write before any crawl-derived record of filename."""
        return b"".join(self.bootstrap_records(filename))
