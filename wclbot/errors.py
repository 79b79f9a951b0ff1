from __future__ import annotations


class WCLogsError(Exception):
    """Base class for failures talking to Warcraft Logs."""


class NotFoundError(WCLogsError, LookupError):
    """The character, report or ranking does not exist upstream."""


class AuthenticationError(WCLogsError, PermissionError):
    """Credentials were rejected by the token endpoint or the API."""


class ServiceError(WCLogsError, RuntimeError):
    """Unexpected HTTP status or GraphQL error payload."""


class StoreError(RuntimeError):
    """The snapshot store could not be read or written."""


class TrackingError(Exception):
    """A command action failed; ``str(error)`` is the reply shown to the user."""


class CredentialsMissingError(TrackingError):
    def __init__(self) -> None:
        super().__init__("Missing WarcraftLogs credentials setup, use /register first")


class CharacterNotFoundError(TrackingError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"{slug} : character not found !")
        self.slug = slug


class AlreadyTrackedError(TrackingError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"{slug} is already tracked")
        self.slug = slug


class NotTrackedError(TrackingError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"{slug} is not tracked")
        self.slug = slug
