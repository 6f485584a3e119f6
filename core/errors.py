"""Exception hierarchy for the stock watcher.

Only :class:`CheckError` and its subclasses are retried by the poll
scheduler; anything else escaping a check is treated as a recovered fault.
"""

from __future__ import annotations


class WatcherError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(WatcherError):
    """The configuration file or environment is missing or invalid."""


class CheckError(WatcherError):
    """A single stock check failed and may be retried."""


class FetchError(CheckError):
    """A vendor endpoint could not be reached."""


class ParseError(CheckError):
    """The listing payload could not be decoded in any supported format."""


class SideEffectError(CheckError):
    """Opening the product page after an enqueue edge failed."""
