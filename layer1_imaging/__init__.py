"""
Layer 1 — Imaging
Geometry types and pure image primitives used by every other layer
"""
from .geometry import Rectangle, RotatedRectangle, RegionCandidate
from . import primitives

__all__ = ['Rectangle', 'RotatedRectangle', 'RegionCandidate', 'primitives']
