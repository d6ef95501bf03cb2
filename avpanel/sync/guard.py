import itertools


class SessionGuard:
    """Teardown flag and sequence source shared by a session's components.

    Every asynchronous observation of the daemon takes a number from
    ``next_sequence()`` when it is issued. Results are compared by that
    number, so a slow reply can never overwrite a newer one.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._closed = False

    def next_sequence(self) -> int:
        return next(self._counter)

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed
