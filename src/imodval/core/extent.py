"""Rectangular extents in world coordinates."""

from dataclasses import dataclass

__all__ = ["Extent"]


@dataclass(frozen=True)
class Extent:
    """Bounding rectangle (xmin, ymin, xmax, ymax).

    Containment is half-open so that every point maps to exactly one cell:
    ``xmin <= x < xmax`` and ``ymin < y <= ymax`` (rows count from the
    north edge).
    """
    xmin: float
    ymin: float
    xmax: float
    ymax: float

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    def is_empty(self) -> bool:
        return self.xmin >= self.xmax or self.ymin >= self.ymax

    def intersect(self, other: "Extent") -> "Extent":
        """Geometric intersection; may be empty."""
        return Extent(
            max(self.xmin, other.xmin),
            max(self.ymin, other.ymin),
            min(self.xmax, other.xmax),
            min(self.ymax, other.ymax),
        )

    def union(self, other: "Extent") -> "Extent":
        return Extent(
            min(self.xmin, other.xmin),
            min(self.ymin, other.ymin),
            max(self.xmax, other.xmax),
            max(self.ymax, other.ymax),
        )

    def contains(self, x: float, y: float) -> bool:
        return self.xmin <= x < self.xmax and self.ymin < y <= self.ymax

    def equals(self, other: "Extent", tolerance: float = 0.0) -> bool:
        return all(
            abs(a - b) <= tolerance
            for a, b in zip(self.as_tuple(), other.as_tuple())
        )

    def as_tuple(self) -> tuple:
        return (self.xmin, self.ymin, self.xmax, self.ymax)

    def __str__(self):
        return f"({self.xmin}, {self.ymin}, {self.xmax}, {self.ymax})"
