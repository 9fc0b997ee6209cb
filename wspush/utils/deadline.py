"""
Per-invocation deadline shared by every blocking remote call
"""
import time
from typing import Optional

from ..errors import SyncTimeout


class Deadline:
    """
    A monotonic time budget. ``Deadline(None)`` (or 0) never expires.

    Every remote step asks for ``remaining()`` right before blocking and
    passes it on as its own timeout, so one stalled command cannot hang the
    whole pipeline.
    """

    def __init__(self, seconds: Optional[float] = None):
        self.seconds = seconds if seconds and seconds > 0 else None
        self._end = time.monotonic() + self.seconds if self.seconds else None

    def remaining(self, what: str = "remote operation") -> Optional[float]:
        """Seconds left, None if unlimited. Raises SyncTimeout once expired."""
        if self._end is None:
            return None
        left = self._end - time.monotonic()
        if left <= 0:
            raise SyncTimeout(f"{what} exceeded the {self.seconds:.0f}s deadline")
        return left
