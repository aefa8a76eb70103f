"""Timestamps and record identifiers for new WARC records.

Record construction asks a provider for the capture instant and for a fresh
WARC-Record-ID. The default provider reads the wall clock and draws random
UUIDs; tests and reproducible builds can inject a FixedProvider instead.

See:
    WARC 1.0 WARC-Record-ID: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#warc-record-id-mandatory
    WARC 1.0 WARC-Date: https://iipc.github.io/warc-specifications/specifications/warc-format/warc-1.0/#warc-date-mandatory
"""

import itertools
import uuid
from datetime import datetime, timezone


def warc_datetime_str(d):
    """Format a datetime as a WARC-Date string, e.g. b"2024-03-01T12:00:05Z".

    Second precision, always UTC. Naive datetimes are taken to be UTC already.
    """
    if d.tzinfo is not None:
        d = d.astimezone(timezone.utc)
    return d.strftime("%Y-%m-%dT%H:%M:%SZ").encode("ascii")


def random_warc_uuid():
    """Generate a random WARC-Record-ID in the form <urn:uuid:...>."""
    return f"<urn:uuid:{uuid.uuid4()}>".encode("ascii")


class SystemProvider:
    """Wall clock and uuid4 record IDs."""

    def now(self):
        return datetime.now(timezone.utc)

    def record_id(self):
        return random_warc_uuid()


class FixedProvider:
    """Deterministic provider: a frozen instant and predictable record IDs.

    Args:
        instant: datetime returned by every now() call
        ids: optional iterable of record IDs (str or bytes); when omitted,
             IDs are derived from a counter so each one is still distinct
    """

    def __init__(self, instant, ids=None):
        self.instant = instant
        if ids is None:
            ids = (f"<urn:uuid:{uuid.UUID(int=n)}>" for n in itertools.count(1))
        self._ids = iter(ids)

    def now(self):
        return self.instant

    def record_id(self):
        record_id = next(self._ids)
        if isinstance(record_id, str):
            record_id = record_id.encode("ascii")
        return record_id


default_provider = SystemProvider()
