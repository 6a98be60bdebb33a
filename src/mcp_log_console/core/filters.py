"""Silence rules that keep noisy sources out of the in-memory views."""

from __future__ import annotations

from collections.abc import Iterable

from .models import RawEvent


class SilenceFilter:
    """Match event sources against exact names and name prefixes."""

    def __init__(self, sources: Iterable[str] = (), prefixes: Iterable[str] = ()) -> None:
        self._sources: set[str] = set(sources)
        self._prefixes: set[str] = {p for p in prefixes if p}

    @property
    def sources(self) -> frozenset[str]:
        return frozenset(self._sources)

    @property
    def prefixes(self) -> frozenset[str]:
        return frozenset(self._prefixes)

    def add_source(self, source: str) -> bool:
        """Silence one exact source. Returns False if it was already silenced."""
        if source in self._sources:
            return False
        self._sources.add(source)
        return True

    def add_prefix(self, prefix: str) -> bool:
        """Silence every source starting with ``prefix``."""
        if not prefix:
            raise ValueError("prefix must not be empty")
        if prefix in self._prefixes:
            return False
        self._prefixes.add(prefix)
        return True

    def is_silenced(self, source: str) -> bool:
        if source in self._sources:
            return True
        return any(source.startswith(p) for p in self._prefixes)

    def is_filtered(self, event: RawEvent) -> bool:
        return self.is_silenced(event.source)


def source_prefixes(source: str) -> list[str]:
    """Return candidate prefix rules for a dotted source, longest first.

    ``"a.b.c"`` gives ``["a.b.", "a."]``.
    """
    parts = source.split(".")
    return [".".join(parts[:i]) + "." for i in range(len(parts) - 1, 0, -1)]
