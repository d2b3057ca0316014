"""Exception classes for github-release-get.

Every failure is terminal: ``main`` prints ``str(error)`` on one line and
exits non-zero.
"""


class ReleaseGetError(Exception):
    """Base class for all errors raised by a run."""


class ConfigError(ReleaseGetError):
    """Raised for a bad flag or environment value."""


class MissingFlagsError(ConfigError):
    """Raised when owner, repo or pattern is empty."""

    def __init__(self) -> None:
        super().__init__("one or more mandatory flags missing")


class PatternError(ConfigError):
    """Raised when the glob pattern is malformed."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"syntax error in pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class RemoteError(ReleaseGetError):
    """Raised when the hosting API refuses or fails a request."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NoMatchingAssetError(ReleaseGetError):
    """Raised when no asset name matches the pattern."""

    def __init__(self, pattern: str, names: list[str]) -> None:
        super().__init__(
            f"no assets matching pattern {pattern!r} found, assets are: {names}"
        )
        self.pattern = pattern
        self.names = names


class InvalidAssetNameError(ReleaseGetError):
    """Raised when a matched asset name gives no usable file name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"cannot derive local file name from asset name {name!r}")
        self.name = name


class DestinationExistsError(ReleaseGetError):
    """Raised when the destination file is already there."""

    def __init__(self, path: str) -> None:
        super().__init__(f"file {path!r} already exists")
        self.path = path


class TransferError(ReleaseGetError):
    """Raised when the asset body cannot be fetched."""


class NoDownloadLinkError(TransferError):
    """Raised when the API gives neither a body nor a redirect."""

    def __init__(self) -> None:
        super().__init__(
            "cannot download asset release, don't have sensible link for that"
        )


class DeadlineExceeded(ReleaseGetError):
    """Raised when the run timeout expires."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"timed out after {timeout:g}s")
        self.timeout = timeout
