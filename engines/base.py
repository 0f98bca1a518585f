"""
External collaborators
Interfaces for the black-box engines the core consumes
"""
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from layer1_imaging import Rectangle


class OCREngine(ABC):
    """
    Image -> free-form text.

    Engines return literal text; no MRZ correction happens here.
    """

    @abstractmethod
    def read_text(self, image: np.ndarray) -> str:
        raise NotImplementedError


class BarcodeReader(ABC):
    """Image -> decoded PDF417 payload, or None."""

    @abstractmethod
    def read(self, image: np.ndarray) -> Optional[str]:
        raise NotImplementedError


class FaceDetector(ABC):
    """Image -> best-guess face rectangle, or None."""

    @abstractmethod
    def detect(self, image: np.ndarray) -> Optional[Rectangle]:
        raise NotImplementedError
