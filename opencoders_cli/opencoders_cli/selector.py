"""Generic selectable list used by overlay pickers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Generic, Protocol, TypeVar, runtime_checkable


@runtime_checkable
class Selectable(Protocol):
    def render_row(self) -> str:
        """Full-width row shown in the picker."""
        ...

    def render_line(self) -> str:
        """Short label shown elsewhere, e.g. in the status line."""
        ...


ItemT = TypeVar("ItemT", bound=Selectable)


class SelectableList(Generic[ItemT]):
    """An ordered list of items with a wrapping highlight."""

    def __init__(self, title: str, items: Sequence[ItemT], selected: int = 0) -> None:
        self.title = title
        self._items = list(items)
        self._index = min(max(selected, 0), max(len(self._items) - 1, 0))

    @property
    def items(self) -> list[ItemT]:
        return list(self._items)

    @property
    def index(self) -> int:
        return self._index

    @property
    def selected(self) -> ItemT | None:
        return self._items[self._index] if self._items else None

    def __len__(self) -> int:
        return len(self._items)

    def move(self, delta: int) -> None:
        if self._items:
            self._index = (self._index + delta) % len(self._items)

    def rows(self) -> list[tuple[str, bool]]:
        """Rendered rows paired with whether each is highlighted."""
        return [(item.render_row(), i == self._index) for i, item in enumerate(self._items)]
