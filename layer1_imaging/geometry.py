"""
Layer 1 — Imaging
Component: Geometry types
Responsibility: Pixel-space rectangles shared by the locators and the liveness checks
"""
import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned rectangle in pixel space."""
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Rectangle size must be non-negative, got {self.width}x{self.height}")

    @classmethod
    def from_tuple(cls, values) -> "Rectangle":
        """Build from an OpenCV style (x, y, w, h) sequence."""
        x, y, w, h = (int(v) for v in values)
        return cls(x, y, w, h)

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.area == 0

    def clip(self, image_width: int, image_height: int) -> "Rectangle":
        """Intersect with the (0, 0, image_width, image_height) frame."""
        x1 = min(max(self.x, 0), image_width)
        y1 = min(max(self.y, 0), image_height)
        x2 = min(max(self.x + self.width, 0), image_width)
        y2 = min(max(self.y + self.height, 0), image_height)
        return Rectangle(x1, y1, x2 - x1, y2 - y1)

    def to_dict(self) -> Dict:
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}


@dataclass(frozen=True)
class RotatedRectangle:
    """
    Rectangle defined by center, size and rotation.

    Canonical form: ``angle`` lies in (-45, 45] and ``width`` is the extent
    measured along that direction, so a wide strip has width > height and a
    tall strip has height > width regardless of which way it leans.
    Angles follow image coordinates (y grows downwards), so rotating the
    image by ``angle`` about the center brings the width axis to horizontal.
    """
    center_x: float
    center_y: float
    width: float
    height: float
    angle: float

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"RotatedRectangle size must be non-negative, got {self.width}x{self.height}")

    @property
    def center(self) -> Tuple[float, float]:
        return self.center_x, self.center_y

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def aspect_ratio(self) -> float:
        """max(w/h, h/w); 0 for a degenerate rectangle."""
        if self.width == 0 or self.height == 0:
            return 0.0
        return max(self.width / self.height, self.height / self.width)

    @property
    def long_side(self) -> float:
        return max(self.width, self.height)

    @property
    def short_side(self) -> float:
        return min(self.width, self.height)

    def scaled(self, factor: float) -> "RotatedRectangle":
        """Scale position and size by ``factor`` (e.g. back to full resolution)."""
        return RotatedRectangle(
            self.center_x * factor,
            self.center_y * factor,
            self.width * factor,
            self.height * factor,
            self.angle,
        )

    def padded(self, long_factor: float, short_factor: float) -> "RotatedRectangle":
        """Grow the long and short sides independently."""
        if self.width >= self.height:
            width, height = self.width * long_factor, self.height * short_factor
        else:
            width, height = self.width * short_factor, self.height * long_factor
        return RotatedRectangle(self.center_x, self.center_y, width, height, self.angle)

    @classmethod
    def from_box_points(cls, points: np.ndarray) -> "RotatedRectangle":
        """
        Build the canonical rectangle from four ordered corner points.

        Args:
            points: 4x2 array as returned by cv2.boxPoints

        Returns:
            RotatedRectangle in canonical form
        """
        points = np.asarray(points, dtype=np.float64).reshape(4, 2)
        center_x, center_y = points.mean(axis=0)
        first = points[1] - points[0]
        second = points[2] - points[1]

        first_angle = _edge_angle(first)
        second_angle = _edge_angle(second)
        if abs(first_angle) <= abs(second_angle):
            along, across, angle = first, second, first_angle
        else:
            along, across, angle = second, first, second_angle

        # (-45, 45]: -45 is folded onto 45 by swapping the axes
        if angle <= -45.0:
            along, across, angle = across, along, angle + 90.0

        return cls(
            float(center_x),
            float(center_y),
            float(np.hypot(*along)),
            float(np.hypot(*across)),
            float(angle),
        )

    def to_dict(self) -> Dict:
        return {
            'center_x': round(self.center_x, 2),
            'center_y': round(self.center_y, 2),
            'width': round(self.width, 2),
            'height': round(self.height, 2),
            'angle': round(self.angle, 2),
        }


def _edge_angle(vector: np.ndarray) -> float:
    """Direction of an edge folded into (-90, 90]."""
    angle = math.degrees(math.atan2(vector[1], vector[0]))
    while angle > 90.0:
        angle -= 180.0
    while angle <= -90.0:
        angle += 180.0
    return angle


@dataclass
class RegionCandidate:
    """A rectified sub-image together with the geometry that produced it."""
    image: np.ndarray
    rect: RotatedRectangle
    rotation: float = 0.0
    bounding_box: Optional[Rectangle] = None

    def to_dict(self) -> Dict:
        """Describe the candidate without the pixel data."""
        return {
            'rect': self.rect.to_dict(),
            'rotation': round(self.rotation, 2),
            'size': [int(self.image.shape[1]), int(self.image.shape[0])],
        }
