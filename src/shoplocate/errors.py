"""Exception taxonomy for location resolution.

Apart from `ConfigError`, these are never raised across the public API of the
coordinator classes. They are recorded as the cause of a `None` snapshot or an
empty search result (`last_error`, `on_error` callbacks) and logged.
"""


class LocationError(Exception):
    """Base exception for this project."""


class ConfigError(LocationError):
    """Raised when runtime configuration is invalid."""


class PermissionUnavailable(LocationError):
    """The platform refused, or could not determine, location permission."""


class FetchFailed(LocationError):
    """The one-shot position or reverse-geocode lookup failed."""


class SearchFailed(LocationError):
    """An address search call failed."""


class SubscriberFault(LocationError):
    """A subscriber callback raised while a snapshot was being delivered."""

    def __init__(self, subscriber_id: object, cause: BaseException):
        super().__init__(f"subscriber {subscriber_id!r} raised {type(cause).__name__}: {cause}")
        self.subscriber_id = subscriber_id
        self.cause = cause
