"""Error taxonomy shared by the feed clients, caches and the transit service."""


class TransitError(Exception):
    """Base class for every recoverable engine error."""


class UpstreamError(TransitError):
    """A remote source was unreachable or answered with a non-success status."""


class FeedParseError(TransitError):
    """A remote source answered, but its payload could not be parsed."""


class NotFoundError(TransitError):
    """The requested stop, route or path does not exist."""


class LiveDataUnavailable(TransitError):
    """No live vehicle snapshot is available, not even a stale one."""


class ScheduleUnavailable(TransitError):
    """No schedule index is available, not even a stale one."""
