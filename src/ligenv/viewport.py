"""Fits the scene into the display area and keeps the interactive zoom state in sync."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> BoundingBox:
        coords = np.asarray(list(points), dtype=float)
        if coords.size == 0:
            raise ValueError("cannot compute the bounding box of an empty set of points")
        min_x, min_y = coords.min(axis=0)
        max_x, max_y = coords.max(axis=0)
        return cls(float(min_x), float(min_y), float(max_x), float(max_y))

    @classmethod
    def union(cls, boxes: Iterable[BoundingBox]) -> BoundingBox:
        boxes = list(boxes)
        if not boxes:
            raise ValueError("cannot compute the union of no bounding box")
        return cls(
            min(b.min_x for b in boxes),
            min(b.min_y for b in boxes),
            max(b.max_x for b in boxes),
            max(b.max_y for b in boxes),
        )

    def padded(self, padding: float) -> BoundingBox:
        return BoundingBox(
            self.min_x - padding, self.min_y - padding, self.max_x + padding, self.max_y + padding
        )

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> tuple[float, float]:
        return (self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2


@dataclass(frozen=True)
class Transform:
    """Affine transform `p -> p * k + (x, y)`."""

    x: float = 0.0
    y: float = 0.0
    k: float = 1.0

    def apply(self, point: tuple[float, float]) -> tuple[float, float]:
        return point[0] * self.k + self.x, point[1] * self.k + self.y

    def invert(self, point: tuple[float, float]) -> tuple[float, float]:
        return (point[0] - self.x) / self.k, (point[1] - self.y) / self.k

    def compose(self, other: Transform) -> Transform:
        """Returns the transform applying `other` first, then `self`."""
        return Transform(self.x + other.x * self.k, self.y + other.y * self.k, self.k * other.k)

    def svg(self) -> str:
        return f"translate({self.x}, {self.y}) scale({self.k})"


IDENTITY = Transform()


def fit_transform(box: BoundingBox, width: float, height: float, margin: float = 0.85) -> Transform:
    """Returns the transform fitting `box` into a `width` x `height` area.

    The box is scaled according to the direction in which it needs to shrink the most, then
    shrunk by `margin` and centered. An axis along which the box has no extent does not
    constrain the scale.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid display area: {width}x{height}")

    ratios = []
    if box.width > 0:
        ratios.append(width / box.width)
    if box.height > 0:
        ratios.append(height / box.height)
    scale = (min(ratios) if ratios else 1.0) * margin

    x = -box.min_x * scale + (width - box.width * scale) / 2
    y = -box.min_y * scale + (height - box.height * scale) / 2
    return Transform(x, y, scale)


class ZoomState:
    """Current pan/zoom of the scene.

    The fitted transform is fed in with `set` so that manual zoom composes with it.
    """

    def __init__(self, scale_extent: tuple[float, float] = (0.1, 10.0)):
        self.scale_extent = scale_extent
        self.transform = IDENTITY

    def set(self, transform: Transform):
        self.transform = transform

    def reset(self):
        self.transform = IDENTITY

    def zoom(self, factor: float, about: tuple[float, float]) -> Transform:
        """Zooms by `factor` keeping the display point `about` fixed."""
        low, high = self.scale_extent
        k = min(max(self.transform.k * factor, low), high)
        scene_point = self.transform.invert(about)
        self.transform = Transform(about[0] - scene_point[0] * k, about[1] - scene_point[1] * k, k)
        return self.transform

    def pan(self, dx: float, dy: float) -> Transform:
        self.transform = Transform(self.transform.x + dx, self.transform.y + dy, self.transform.k)
        return self.transform
