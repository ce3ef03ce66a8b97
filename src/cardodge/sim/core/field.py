from __future__ import annotations

from typing import Iterable, Protocol, Set, Tuple, runtime_checkable


@runtime_checkable
class ObstacleField(Protocol):
    """Occupancy query consumed by vision and collision.

    Queries outside the field must answer False rather than raise.
    """

    def is_obstacle(self, x: int, y: int) -> bool: ...


class EmptyField:
    def is_obstacle(self, x: int, y: int) -> bool:
        return False


class GridObstacleField:
    """Sparse set of blocked integer cells."""

    def __init__(self, cells: Iterable[Tuple[int, int]] = ()) -> None:
        self._cells: Set[Tuple[int, int]] = {(int(x), int(y)) for x, y in cells}

    def __len__(self) -> int:
        return len(self._cells)

    def add(self, x: int, y: int) -> None:
        self._cells.add((int(x), int(y)))

    def add_rect(self, left: int, top: int, width: int, height: int) -> None:
        for x in range(left, left + width):
            for y in range(top, top + height):
                self._cells.add((x, y))

    def discard(self, x: int, y: int) -> None:
        self._cells.discard((int(x), int(y)))

    def clear(self) -> None:
        self._cells.clear()

    def is_obstacle(self, x: int, y: int) -> bool:
        return (x, y) in self._cells
