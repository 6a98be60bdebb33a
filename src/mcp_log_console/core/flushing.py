"""Registry of views that an external timer flushes periodically."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Flushable(Protocol):
    def flush(self) -> bool: ...


class FlushRegistry:
    """Set of views flushed together by :meth:`flush_all`.

    The registry owns no timer. Whoever drives the update loop calls
    ``flush_all()`` at its own pace.
    """

    def __init__(self) -> None:
        self._members: list[Flushable] = []

    def register(self, view: Flushable) -> None:
        if not any(m is view for m in self._members):
            self._members.append(view)

    def unregister(self, view: Flushable) -> None:
        self._members = [m for m in self._members if m is not view]

    def __contains__(self, view: object) -> bool:
        return any(m is view for m in self._members)

    def __len__(self) -> int:
        return len(self._members)

    def flush_all(self) -> bool:
        """Flush every registered view. Returns True if any view changed."""
        changed = False
        # Copy: a flush may unregister its view.
        for view in list(self._members):
            changed = view.flush() or changed
        return changed
