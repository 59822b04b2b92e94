from __future__ import annotations


class ConflictError(Exception):
    """The current state of a record does not permit the transition.

    Raised by validation and by compare-and-set writes; callers turn it into
    a ``success=False`` result after rolling the transaction back.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
