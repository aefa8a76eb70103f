"""Read WARC records back from plain or gzip compressed files.

Used to check what the writer produced: every record keeps the framing
problems found while reading it in record.errors.

WARC Format Specification References:
- WARC 1.0: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/
- Compression: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#annex-d-informative-compression-recommendations
"""

import re
from gzip import GzipFile

from crawlwarc.warcformat.record import WarcRecord

bad_lines = 5  # when to give up looking for the version stamp


def rx(pat):
    """Helper to compile regexps with IGNORECASE option set."""
    return re.compile(pat, flags=re.IGNORECASE)


version_rx = rx(rb"^(?P<prefix>.*?)(?P<version>\s*WARC/(?P<number>.*?))" b"(?P<nl>\r\n|\r|\n)\\Z")
header_rx = rx(rb"^(?P<name>.*?):\s?(?P<value>.*?)" b"(?P<nl>\r\n|\r|\n)\\Z")
nl_rx = rx(b"^(?P<nl>\r\n|\r|\n)\\Z")


def is_gzip_file(file_handle):
    """Check for the gzip magic number, restoring the file position."""
    signature = file_handle.read(2)
    file_handle.seek(-len(signature), 1)
    return signature == b"\x1f\x8b"


def open_record_stream(filename=None, file_handle=None, gzip="auto"):
    """Open a WARC file and return a RecordStream over its records.

    Args:
        filename: path of the file, ignored when file_handle is given
        file_handle: binary file-like object
        gzip: "auto" to detect compression, True or False to force it

    Example:
        >>> with open_record_stream("crawl-20240301120000-00000.warc.gz") as stream:
        ...     for record in stream:
        ...         print(record.type)
    """
    if file_handle is None:
        file_handle = open(filename, "rb")

    if gzip == "auto":
        gzip = bool(filename and filename.endswith(".gz")) or is_gzip_file(file_handle)

    if gzip:
        # GzipFile reads concatenated members as one stream
        return RecordStream(GzipFile(fileobj=file_handle), offsets=False, raw=file_handle)
    return RecordStream(file_handle)


class RecordStream:
    """Iterates over the records of an open WARC stream.

    read_records() yields (offset, record, errors) tuples; offsets are None
    for compressed input. Iterating directly yields records and raises on
    unparseable data.
    """

    def __init__(self, file_handle, offsets=True, raw=None):
        self.fh = file_handle
        self.raw = raw
        self.offsets = offsets
        self.position = 0
        self.parser = WarcParser()

    def readline(self):
        line = self.fh.readline()
        self.position += len(line)
        return line

    def read(self, size):
        data = self.fh.read(size)
        self.position += len(data)
        return data

    def read_records(self, limit=None):
        nrecords = 0
        while limit is None or nrecords < limit:
            record, errors, offset = self.parser.parse(self)
            nrecords += 1
            yield (offset if self.offsets else None, record, errors)
            if not record:
                break

    def __iter__(self):
        for _offset, record, errors in self.read_records():
            if record:
                yield record
            elif errors:
                error_str = ",".join(str(error) for error in errors)
                raise Exception(f"Errors while decoding {error_str}")

    def close(self):
        self.fh.close()
        if self.raw is not None:
            self.raw.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class WarcParser:
    """Parser for WARC records: version CRLF *named-field CRLF block CRLF CRLF."""

    KNOWN_VERSIONS = {b"1.0", b"1.1"}

    def parse(self, stream):
        """Parse one record from stream.

        Returns:
            tuple: (record, errors, offset); record is None at the end of the
            stream or when nothing could be parsed, in which case errors says
            why (empty at a clean end of stream)
        """
        errors = []

        line = stream.readline()
        while line and nl_rx.match(line):
            line = stream.readline()
        offset = stream.position - len(line)

        match = version_rx.match(line) if line else None
        while line and not match:
            errors.append(("ignored line", line))
            if len(errors) > bad_lines:
                errors.append(("too many errors, giving up hope",))
                return (None, errors, offset)
            line = stream.readline()
            match = version_rx.match(line) if line else None
        if not line:
            return (None, errors, offset)

        record = WarcRecord(version=match.group("version").strip(), errors=errors)
        if match.group("nl") != b"\r\n":
            record.error("incorrect newline in version", match.group("nl"))
        if match.group("number") not in self.KNOWN_VERSIONS:
            record.error("version field is not known", match.group("number"))
        if match.group("prefix"):
            record.error("bad prefix on WARC version header", match.group("prefix"))

        line = stream.readline()
        while line and not nl_rx.match(line):
            header = header_rx.match(line)
            if header:
                if header.group("nl") != b"\r\n":
                    record.error("incorrect newline in header", header.group("nl"))
                record.headers.append(
                    (header.group("name").strip(), header.group("value").strip())
                )
            else:
                record.error("invalid header line", line)
            line = stream.readline()
        if not line:
            record.error("end of stream inside record header")
            return (record, (), offset)
        if line != b"\r\n":
            record.error("incorrect newline after header", line)

        try:
            content_length = int(record.get_header(WarcRecord.CONTENT_LENGTH) or 0)
        except ValueError:
            record.error("invalid header", WarcRecord.CONTENT_LENGTH)
            content_length = 0

        record.content = stream.read(content_length)
        if len(record.content) < content_length:
            record.error("payload shorter than Content-Length", content_length, len(record.content))

        trailer = stream.read(len(WarcRecord.TRAILER))
        if trailer != WarcRecord.TRAILER:
            record.error("missing record trailer", trailer)

        return (record, (), offset)
