"""Error categories raised inside the discovery engine.

None of these cross ``SmartLinkDiscoverer.discover``; they are caught at the
component that owns the failing step and turned into trace entries.
"""


class DiscoveryError(Exception):
    """Base class for discovery failures."""


class NetworkError(DiscoveryError):
    """Timeout, DNS failure or non-2xx response from a plain HTTP fetch."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ParseError(DiscoveryError):
    """A feed, sitemap or JSON document could not be parsed."""


class BrowserError(DiscoveryError):
    """Browser launch or navigation failed; fatal to the current attempt."""


class AuthError(DiscoveryError):
    """A login form was submitted but the site rejected the credentials."""
