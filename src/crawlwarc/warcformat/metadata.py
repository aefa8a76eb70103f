"""Crawl results as delivered by the fetching pipeline.

A crawl result is a URL, the fetched bytes (possibly absent) and a
multi-valued metadata mapping filled in by the fetcher.
"""

from collections import OrderedDict

# keys written by the fetcher
RESPONSE_HEADERS_KEY = "_response.headers_"
IP_ADDRESS_KEY = "_ip_"
CONTENT_TYPE_KEY = "Content-Type"


def is_blank(value):
    return value is None or not value.strip()


class Metadata:
    """Ordered mapping from a key to one or more string values."""

    def __init__(self, values=None):
        self._values = OrderedDict()
        if values:
            items = values.items() if hasattr(values, "items") else values
            for key, value in items:
                if isinstance(value, (list, tuple)):
                    for v in value:
                        self.add_value(key, v)
                else:
                    self.add_value(key, value)

    def add_value(self, key, value):
        self._values.setdefault(key, []).append(value)

    def set_value(self, key, value):
        self._values[key] = [value]

    def get_values(self, key):
        return list(self._values.get(key, ()))

    def get_first_value(self, key):
        """Returns the first value stored under key, or None."""
        values = self._values.get(key)
        if values:
            return values[0]
        return None

    def keys(self):
        return list(self._values.keys())

    def __contains__(self, key):
        return key in self._values

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        return f"Metadata({dict(self._values)!r})"


class CrawlResult:
    """One unit of work from the crawl pipeline: url, content and metadata."""

    def __init__(self, url, content=None, metadata=None):
        self.url = url
        self.content = content
        if not isinstance(metadata, Metadata):
            metadata = Metadata(metadata)
        self.metadata = metadata

    @property
    def response_headers(self):
        """Verbatim HTTP response headers if the fetcher kept them."""
        return self.metadata.get_first_value(RESPONSE_HEADERS_KEY)

    @property
    def ip_address(self):
        return self.metadata.get_first_value(IP_ADDRESS_KEY)

    @property
    def content_type(self):
        return self.metadata.get_first_value(CONTENT_TYPE_KEY)

    def __repr__(self):
        return f"CrawlResult({self.url!r})"
