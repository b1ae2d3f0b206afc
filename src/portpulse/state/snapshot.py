"""Immutable published snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ViewSnapshot(Generic[T]):
    """A complete, consistent published collection.

    Readers always get a whole snapshot; the scheduler replaces it instead
    of editing it.

    Parameters
    ----------
    items
        Ordered items for display.
    generation
        Increases by one on every publication.
    published_at
        When this snapshot was swapped in (``None`` for the initial empty one).
    offline
        Items come from the bundled offline dataset, not the live store.
    speculative
        Items carry an unconfirmed optimistic patch.
    """

    items: tuple[T, ...] = ()
    generation: int = 0
    published_at: datetime | None = None
    offline: bool = False
    speculative: bool = False

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_live(self) -> bool:
        """Authoritative data from the store (published, not offline, not speculative)."""
        return self.generation > 0 and not self.offline and not self.speculative
