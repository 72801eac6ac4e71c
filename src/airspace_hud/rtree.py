"""Bounding box R-tree for fast "what's under this point/box" lookups.

Insertion descends toward the child needing the least area increase.  Only
the root is ever split (into two leaves), which bounds query fan-out for the
catalog sizes we deal with without the bookkeeping of a balanced tree.
"""

import math
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

DEFAULT_MAX_ENTRIES = 8


@dataclass(frozen=True)
class Rect:
    """Axis aligned box; x is longitude and y latitude for airspace use."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def empty(cls) -> "Rect":
        """Identity for union(): contains nothing, intersects nothing."""
        return cls(math.inf, math.inf, -math.inf, -math.inf)

    @classmethod
    def from_point(cls, x: float, y: float) -> "Rect":
        return cls(x, y, x, y)

    @classmethod
    def from_bbox(cls, bbox) -> "Rect":
        """From a [min_lon, min_lat, max_lon, max_lat] sequence."""
        if len(bbox) != 4:
            raise ValueError(f"bbox needs 4 values, got {len(bbox)}")
        return cls(*bbox)

    def intersects(self, other: "Rect") -> bool:
        """Closed interval test: boxes sharing only an edge intersect."""
        return not (other.min_x > self.max_x or other.max_x < self.min_x or
                    other.min_y > self.max_y or other.max_y < self.min_y)

    def union(self, other: "Rect") -> "Rect":
        return Rect(min(self.min_x, other.min_x), min(self.min_y, other.min_y),
                    max(self.max_x, other.max_x), max(self.max_y, other.max_y))

    def width(self) -> float:
        return self.max_x - self.min_x

    def height(self) -> float:
        return self.max_y - self.min_y

    def area(self) -> float:
        if self.max_x < self.min_x:
            return 0.
        return self.width() * self.height()

    def center(self, axis: int) -> float:
        """Twice the midpoint along axis 0 (x) or 1 (y); only used for ordering."""
        if axis == 0:
            return self.min_x + self.max_x
        return self.min_y + self.max_y


class _Node:
    __slots__ = ("rect", "children", "items", "leaf")

    def __init__(self, rect: Rect, leaf: bool):
        self.rect = rect
        self.children: list["_Node"] = []
        self.items: list[tuple[Rect, Any]] = []
        self.leaf = leaf


class RTree(Generic[T]):
    """Index of (Rect, payload) pairs."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 2:
            raise ValueError("max_entries must be at least 2")
        self.max_entries = max_entries
        self.root = _Node(Rect.empty(), leaf=True)
        self.count = 0

    def __len__(self) -> int:
        return self.count

    def insert(self, rect: Rect, value: T) -> None:
        self._insert(rect, value, self.root)
        self.count += 1
        if self.root.leaf and len(self.root.items) > self.max_entries:
            self._split(self.root)

    def _insert(self, rect: Rect, value: T, node: _Node) -> None:
        while not node.leaf:
            node.rect = node.rect.union(rect)
            best: Optional[_Node] = None
            min_increase = math.inf
            for child in node.children:
                increase = child.rect.union(rect).area() - child.rect.area()
                if increase < min_increase:
                    min_increase = increase
                    best = child
            node = best
        node.items.append((rect, value))
        node.rect = node.rect.union(rect)

    def _split(self, node: _Node) -> None:
        """Turn an overfull leaf into an internal node with two leaf children,
        divided at the median along its longer axis."""
        axis = 0 if node.rect.width() > node.rect.height() else 1
        entries = sorted(node.items, key=lambda e: e[0].center(axis))
        mid = len(entries) // 2

        halves = []
        for part in (entries[:mid], entries[mid:]):
            child = _Node(Rect.empty(), leaf=True)
            for entry in part:
                child.items.append(entry)
                child.rect = child.rect.union(entry[0])
            halves.append(child)

        node.leaf = False
        node.items = []
        node.children = halves

    def search(self, rect: Rect) -> list[T]:
        """Payloads whose box intersects rect."""
        results: list[T] = []
        self._search(rect, self.root, results)
        return results

    def search_point(self, x: float, y: float) -> list[T]:
        return self.search(Rect.from_point(x, y))

    def _search(self, rect: Rect, node: _Node, results: list) -> None:
        if not node.rect.intersects(rect):
            return
        if node.leaf:
            results.extend(value for r, value in node.items if r.intersects(rect))
        else:
            for child in node.children:
                self._search(rect, child, results)
