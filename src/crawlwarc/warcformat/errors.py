"""Exceptions raised while turning crawl results into WARC records."""


class WarcFormatError(Exception):
    """Base class for every error raised by the warcformat package."""


class InvalidInputError(WarcFormatError):
    """A crawl result cannot be turned into a record, usually because its
    URL does not normalise to a valid URI. No bytes are produced."""

    def __init__(self, message, url=None):
        WarcFormatError.__init__(self, message)
        self.url = url


class EncodingError(WarcFormatError):
    """Header or payload text cannot be encoded as UTF-8."""


class ConfigurationError(WarcFormatError):
    """Raised at setup time for malformed writer or warcinfo configuration."""
