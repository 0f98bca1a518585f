"""
External collaborators
Component: Haar cascade face detector
"""
import cv2
import numpy as np
import logging
from typing import Optional

from layer1_imaging import Rectangle, primitives
from .base import FaceDetector

logger = logging.getLogger(__name__)

DEFAULT_CASCADE = 'haarcascade_frontalface_default.xml'


class CascadeFaceDetector(FaceDetector):
    """Largest frontal face found by an OpenCV Haar cascade"""

    def __init__(self, cascade_path: Optional[str] = None, scale_factor: float = 1.1,
                 min_neighbors: int = 4, min_size: int = 30):
        """
        Initialize face detector

        Args:
            cascade_path: Cascade XML (OpenCV's frontal face model if None)
            scale_factor: detectMultiScale pyramid step
            min_neighbors: detectMultiScale neighbour threshold
            min_size: Smallest face side in pixels
        """
        cascade_path = cascade_path or cv2.data.haarcascades + DEFAULT_CASCADE
        self.classifier = cv2.CascadeClassifier(cascade_path)
        if self.classifier.empty():
            raise ValueError(f"Could not load face cascade from {cascade_path}")
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_size = min_size
        logger.info(f"CascadeFaceDetector initialized ({cascade_path})")

    def detect(self, image: np.ndarray) -> Optional[Rectangle]:
        gray = cv2.equalizeHist(primitives.to_grayscale(image))
        faces = self.classifier.detectMultiScale(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=(self.min_size, self.min_size),
        )
        if len(faces) == 0:
            return None
        biggest = max(faces, key=lambda face: face[2] * face[3])
        return Rectangle.from_tuple(biggest)
