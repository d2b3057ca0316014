import time
from collections.abc import Callable

from releaseget.errors import DeadlineExceeded


class Deadline:
    """Monotonic cut-off shared by every network call of one run.

    A timeout of zero means the run has no deadline: ``remaining()`` then
    returns ``None`` and ``check()`` never raises.
    """

    def __init__(self, timeout: float, clock: Callable[[], float] | None = None):
        self.timeout = timeout
        self._clock = clock or time.monotonic
        self._expires = self._clock() + timeout if timeout > 0 else None

    @property
    def enabled(self) -> bool:
        return self._expires is not None

    def remaining(self) -> float | None:
        if self._expires is None:
            return None
        return self._expires - self._clock()

    def expired(self) -> bool:
        left = self.remaining()
        return left is not None and left <= 0

    def check(self) -> None:
        if self.expired():
            raise DeadlineExceeded(self.timeout)

    def request_timeout(self) -> float | None:
        """Seconds to hand to ``requests`` for the next socket operation."""
        self.check()
        return self.remaining()
