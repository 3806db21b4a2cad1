class MonitorError(Exception):
    """Base class for proxy monitor failures."""


class BackendError(MonitorError):
    """A call to the proxy engine or config store failed."""


class MalformedPayloadError(BackendError):
    """The proxy engine answered with a payload of the wrong shape."""


class CommandError(MonitorError):
    """A user command (toggle, clear) failed; local state was left untouched."""


class StatsInvariantError(MonitorError):
    """``total != success + error``: a double count or a lost update."""
