"""Build WARC records from crawl results and warcinfo descriptions.

Header order is fixed per record type; archival readers and existing
fixtures depend on it:

- warcinfo: WARC-Type, WARC-Date, WARC-Record-ID, optional fields,
  Content-Type, Content-Length
- response/resource: WARC-Record-ID, Content-Length, WARC-Date, WARC-Type,
  [WARC-IP-Address], WARC-Target-URI, Content-Type

WARC Format Specification References:
- WARC 1.0: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/
- warcinfo: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#warcinfo
- response: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#response
- resource: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#resource
"""

import logging
import re
from urllib.parse import quote, urlsplit

from crawlwarc.warcformat.clock import default_provider, warc_datetime_str
from crawlwarc.warcformat.errors import EncodingError, InvalidInputError
from crawlwarc.warcformat.metadata import (
    CONTENT_TYPE_KEY,
    IP_ADDRESS_KEY,
    RESPONSE_HEADERS_KEY,
    Metadata,
    is_blank,
)
from crawlwarc.warcformat.record import RecordKind, WarcRecord

logger = logging.getLogger(__name__)

CRLF = "\r\n"

# printable ASCII is kept as is, everything else is escaped as UTF-8
_ascii_safe = "".join(chr(c) for c in range(0x21, 0x7F))
_illegal_uri_rx = re.compile(r'[\x00-\x20\x7f<>"{}|\\^`]')
_bad_escape_rx = re.compile(r"%(?![0-9A-Fa-f]{2})")
_scheme_rx = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_line_break_rx = re.compile(r"[\r\n]")
# brackets are only legal around an IPv6 host literal
_bracket_host_rx = re.compile(r"^(?:[^\[\]@]*@)?\[[0-9A-Fa-f:.]+\](?::[0-9]*)?$")


def encode_text(text, what="text"):
    """UTF-8 encode text, raising EncodingError instead of UnicodeEncodeError."""
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"cannot encode {what} as UTF-8: {e}") from e


def header_value(value, name):
    """Encode a header value, refusing values that would break the header block."""
    if value is None:
        raise InvalidInputError(f"no value for header {name}", value)
    if not isinstance(value, str):
        value = str(value)
    if _line_break_rx.search(value):
        raise InvalidInputError(f"line break in value of {name}", value)
    return encode_text(value, name)


def normalise_target_uri(url):
    """Turn a crawled URL into a WARC-Target-URI value.

    Spaces become %20, non-ASCII characters are percent-encoded as UTF-8.
    Anything that still is not a valid URI raises InvalidInputError.

    Returns:
        bytes: ASCII-only URI
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidInputError(f"Invalid URI {url!r}", url)

    normalised = url.replace(" ", "%20")
    if _illegal_uri_rx.search(normalised) or _bad_escape_rx.search(normalised):
        raise InvalidInputError(f"Invalid URI {url}", url)
    if normalised.count("#") > 1:
        raise InvalidInputError(f"Invalid URI {url}", url)

    # a colon before any of /?# ends a scheme, which must then be well formed
    colon = normalised.find(":")
    if colon >= 0 and not any(c in normalised[:colon] for c in "/?#"):
        if not _scheme_rx.match(normalised[:colon]):
            raise InvalidInputError(f"Invalid URI {url}", url)

    try:
        parts = urlsplit(normalised)
        parts.port
    except ValueError as e:
        raise InvalidInputError(f"Invalid URI {url}: {e}", url) from e
    if ("[" in parts.netloc or "]" in parts.netloc) and not _bracket_host_rx.match(parts.netloc):
        raise InvalidInputError(f"Invalid URI {url}", url)
    hierarchical = parts.netloc or not parts.scheme or parts.path.startswith("/")
    if hierarchical and ("[" in parts.path or "]" in parts.path):
        raise InvalidInputError(f"Invalid URI {url}", url)

    try:
        ascii_uri = quote(normalised, safe=_ascii_safe)
    except UnicodeEncodeError as e:
        raise EncodingError(f"cannot encode URI {url!r}: {e}") from e
    return ascii_uri.encode("ascii")


def serialize_warc_fields(fields):
    """Serialise an ordered str->str mapping as an application/warc-fields block."""
    lines = []
    for key, value in fields.items():
        lines.append(f"{key}: {value}{CRLF}")
    return encode_text("".join(lines), "warc-fields")


def normalise_http_headers(headers_verbatim):
    """Make sure the verbatim HTTP header block ends with a blank line."""
    if headers_verbatim.endswith(CRLF + CRLF):
        return headers_verbatim
    if headers_verbatim.endswith(CRLF):
        return headers_verbatim + CRLF
    return headers_verbatim + CRLF + CRLF


def make_warcinfo(record_id, date, warc_fields_block, optional_headers=()):
    """Create a 'warcinfo' record.

    Args:
        record_id: WARC-Record-ID (bytes)
        date: WARC-Date (bytes)
        warc_fields_block: serialised application/warc-fields payload (bytes)
        optional_headers: (name, value) byte tuples placed before Content-Type

    Returns:
        WarcRecord: A 'warcinfo' record
    """
    # pylint: disable-msg=E1101
    headers = [
        (WarcRecord.TYPE, WarcRecord.WARCINFO),
        (WarcRecord.DATE, date),
        (WarcRecord.ID, record_id),
    ]
    headers.extend(optional_headers)
    headers.append((WarcRecord.CONTENT_TYPE, WarcRecord.WARC_FIELDS_TYPE))
    headers.append((WarcRecord.CONTENT_LENGTH, str(len(warc_fields_block)).encode("ascii")))
    return WarcRecord(headers=headers, content=warc_fields_block)


def _make_capture(kind, record_id, date, url, content, content_type, ip_address):
    # pylint: disable-msg=E1101
    headers = [
        (WarcRecord.ID, record_id),
        (WarcRecord.CONTENT_LENGTH, str(len(content)).encode("ascii")),
        (WarcRecord.DATE, date),
        (WarcRecord.TYPE, kind.value),
    ]
    if ip_address:
        headers.append((WarcRecord.IP_ADDRESS, ip_address))
    headers.append((WarcRecord.URL, url))
    headers.append((WarcRecord.CONTENT_TYPE, content_type))
    return WarcRecord(headers=headers, content=content)


def make_response(record_id, date, url, content, ip_address=None):
    """Create a 'response' record whose block is a full HTTP response
    (verbatim headers followed by the body)."""
    return _make_capture(
        RecordKind.RESPONSE,
        record_id,
        date,
        url,
        content,
        WarcRecord.HTTP_RESPONSE_TYPE,
        ip_address,
    )


def make_resource(record_id, date, url, content, content_type, ip_address=None):
    """Create a 'resource' record holding the fetched bytes only."""
    return _make_capture(
        RecordKind.RESOURCE, record_id, date, url, content, content_type, ip_address
    )


def build_warcinfo_record(warc_fields, optional_header_fields=None, provider=None):
    """Build the warcinfo WarcRecord describing the following records.

    Only the warc_fields block counts towards Content-Length; the optional
    header fields land in the record header.
    """
    if provider is None:
        provider = default_provider
    if optional_header_fields is None:
        optional_header_fields = {}

    optional_headers = [
        (encode_text(name, "header name"), header_value(value, name))
        for name, value in optional_header_fields.items()
    ]
    block = serialize_warc_fields(warc_fields)
    date = warc_datetime_str(provider.now())
    return make_warcinfo(provider.record_id(), date, block, optional_headers)


def generate_warcinfo(warc_fields, optional_header_fields=None, provider=None):
    """Serialised warcinfo record, ready to be written at the start of a file."""
    return build_warcinfo_record(warc_fields, optional_header_fields, provider).to_bytes()


def build_capture_record(url, content, metadata, provider=None):
    """Build the response or resource WarcRecord for one crawl result.

    The record is a 'response' when the fetcher kept the HTTP headers
    verbatim, a 'resource' otherwise.
    """
    if provider is None:
        provider = default_provider
    if not isinstance(metadata, Metadata):
        metadata = Metadata(metadata)

    target_uri = normalise_target_uri(url)

    headers_verbatim = metadata.get_first_value(RESPONSE_HEADERS_KEY)
    if is_blank(headers_verbatim):
        kind = RecordKind.RESOURCE
        http_headers = b""
    else:
        kind = RecordKind.RESPONSE
        http_headers = encode_text(normalise_http_headers(headers_verbatim), "HTTP headers")

    payload = http_headers + (content or b"")

    ip_address = metadata.get_first_value(IP_ADDRESS_KEY)
    if is_blank(ip_address):
        ip_address = None
    else:
        ip_address = header_value(ip_address.strip(), "WARC-IP-Address")

    record_id = provider.record_id()
    date = warc_datetime_str(provider.now())

    if kind is RecordKind.RESPONSE:
        return make_response(record_id, date, target_uri, payload, ip_address)
    elif kind is RecordKind.RESOURCE:
        content_type = metadata.get_first_value(CONTENT_TYPE_KEY)
        if is_blank(content_type):
            content_type = WarcRecord.DEFAULT_CONTENT_TYPE
        else:
            content_type = header_value(content_type.strip(), "Content-Type")
        return make_resource(record_id, date, target_uri, payload, content_type, ip_address)
    raise AssertionError(f"unhandled record kind {kind}")


def format_crawl_result(url, content, metadata, provider=None):
    """Serialised response/resource record for one crawl result."""
    record = build_capture_record(url, content, metadata, provider)
    logger.debug("formatted %s record for %s (%d bytes)", record.type, url, record.content_length)
    return record.to_bytes()


class WarcRecordFormat:
    """Turns crawl results into WARC bytes for a storage writer.

    Holds no state besides the timestamp/ID provider, so one instance can be
    shared between threads.
    """

    def __init__(self, provider=None):
        self.provider = provider if provider is not None else default_provider

    def format(self, result):
        return format_crawl_result(result.url, result.content, result.metadata, self.provider)
