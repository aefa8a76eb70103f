"""The WARC record model shared by the writer and the reader.

WARC Format Specification References:
- WARC 1.0: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/
- File and record model: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#file-and-record-model
"""

import enum
from io import BytesIO


def add_headers(**kwargs):
    """Decorator helper for defining header name constants on a record class.

    Sets one class attribute per keyword and keeps the list of names in
    _HEADERS.

    Example:
        @add_headers(
            TYPE=b"WARC-Type",
            DATE=b"WARC-Date",
        )
        class WarcRecord:
            pass
    """

    def _add_headers(cls):
        for k, v in kwargs.items():
            setattr(cls, k, v)
        cls._HEADERS = list(kwargs.keys())
        return cls

    return _add_headers


class RecordKind(enum.Enum):
    """Record types this package writes.

    See WARC 1.0 Section 6: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#warc-record-types
    """

    WARCINFO = b"warcinfo"
    RESPONSE = b"response"
    RESOURCE = b"resource"


# WARC Named Fields - See WARC 1.0 Section 5 "Named fields"
@add_headers(
    ID=b"WARC-Record-ID",
    CONTENT_LENGTH=b"Content-Length",
    DATE=b"WARC-Date",
    TYPE=b"WARC-Type",
    CONTENT_TYPE=b"Content-Type",
    IP_ADDRESS=b"WARC-IP-Address",
    URL=b"WARC-Target-URI",
    FILENAME=b"WARC-Filename",
)
class WarcRecord:
    """A WARC record: version, ordered headers and a payload.

    headers is a list of (name, value) byte tuples written in list order;
    Content-Length is one of them and must match len(content). errors holds
    problems found while reading the record back.
    """

    # pylint: disable-msg=E1101

    VERSION = b"WARC/1.0"

    WARCINFO = RecordKind.WARCINFO.value
    RESPONSE = RecordKind.RESPONSE.value
    RESOURCE = RecordKind.RESOURCE.value

    WARC_FIELDS_TYPE = b"application/warc-fields"
    HTTP_RESPONSE_TYPE = b"application/http; msgtype=response"
    DEFAULT_CONTENT_TYPE = b"application/octet-stream"

    TRAILER = b"\r\n\r\n"

    def __init__(self, version=VERSION, headers=None, content=b"", errors=None):
        self.version = version
        self.headers = headers if headers else []
        self.content = content if content is not None else b""
        self.errors = errors if errors else []

    def error(self, *args):
        self.errors.append(args)

    @property
    def id(self):
        return self.get_header(self.ID)

    @property
    def type(self):
        return self.get_header(self.TYPE)

    @property
    def date(self):
        return self.get_header(self.DATE)

    @property
    def url(self):
        return self.get_header(self.URL)

    @property
    def content_type(self):
        return self.get_header(self.CONTENT_TYPE)

    @property
    def content_length(self):
        """Declared Content-Length, or len(content) if the header is missing."""
        content_length = self.get_header(self.CONTENT_LENGTH)
        if content_length is not None:
            return int(content_length)
        return len(self.content)

    def get_header(self, name):
        """Returns value of first header found matching name, case insensitively."""
        for k, v in self.headers:
            if name.lower() == k.lower():
                return v

    def header_names(self):
        return [k for k, _ in self.headers]

    def write_to(self, out, nl=b"\r\n"):
        """Write the record in WARC 1.0 Section 4 layout:

        version CRLF *named-field CRLF block CRLF CRLF

        Headers go out in list order, values unchanged.
        """
        out.write(self.version)
        out.write(nl)
        for k, v in self.headers:
            out.write(k)
            out.write(b": ")
            out.write(v)
            out.write(nl)

        out.write(nl)  # end of header blank nl
        if self.content:
            out.write(self.content)

        # end of record nl nl
        out.write(nl)
        out.write(nl)

    def to_bytes(self):
        buf = BytesIO()
        self.write_to(buf)
        return buf.getvalue()

    def validate(self):
        """Check mandatory fields and the Content-Length framing.

        Returns:
            list: error tuples, empty if the record is valid
        """
        validation_errors = list(self.errors)

        record_id = self.get_header(self.ID)
        if not record_id:
            validation_errors.append(("missing mandatory field", self.ID))
        elif not (record_id.startswith(b"<") and record_id.endswith(b">")):
            validation_errors.append(("invalid WARC-Record-ID format", record_id, "must be <uri>"))

        warc_date = self.get_header(self.DATE)
        if not warc_date:
            validation_errors.append(("missing mandatory field", self.DATE))
        elif not warc_date.endswith(b"Z"):
            validation_errors.append(("WARC-Date is not UTC", warc_date))

        warc_type = self.get_header(self.TYPE)
        if not warc_type:
            validation_errors.append(("missing mandatory field", self.TYPE))
        elif warc_type in (self.RESPONSE, self.RESOURCE) and not self.get_header(self.URL):
            validation_errors.append(("missing WARC-Target-URI", warc_type))

        content_length = self.get_header(self.CONTENT_LENGTH)
        if not content_length:
            validation_errors.append(("missing mandatory field", self.CONTENT_LENGTH))
        else:
            try:
                length_value = int(content_length)
            except ValueError:
                validation_errors.append(("Content-Length must be numeric", content_length))
            else:
                if length_value != len(self.content):
                    validation_errors.append(
                        ("Content-Length mismatch", content_length, len(self.content))
                    )

        return validation_errors
