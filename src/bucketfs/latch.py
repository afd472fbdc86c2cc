"""One-shot latch used for the upload ``aborted`` and download ``locked`` flags."""


class OnceLatch:
    """A flag that moves from unset to set exactly once.

    ``trip()`` returns True only for the call that performed the transition,
    so "first event wins" checks read as ``if latch.trip(): ...``.
    """

    __slots__ = ("_set",)

    def __init__(self) -> None:
        self._set = False

    def trip(self) -> bool:
        """Set the latch. Returns True if this call set it."""
        if self._set:
            return False
        self._set = True
        return True

    @property
    def is_set(self) -> bool:
        return self._set

    def __bool__(self) -> bool:
        return self._set

    def __repr__(self) -> str:
        return f"OnceLatch(set={self._set})"
