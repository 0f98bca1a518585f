"""
Layer 4 — Liveness
Component: Image statistics
Responsibility: Per-image quality, exposure and sharpness measures, and colour histogram comparison
"""
import cv2
import numpy as np
import logging
from typing import Dict, Tuple
from dataclasses import dataclass

from layer1_imaging import primitives

logger = logging.getLogger(__name__)


@dataclass
class ImageStatistics:
    """Container for the single-image liveness statistics."""
    quality: float     # populated value bins x unsaturated saturation bins (0-1)
    brightness: float  # Mean luminance (0-255)
    sharpness: float   # Laplacian variance (higher = sharper)

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return {
            'quality': round(self.quality, 4),
            'brightness': round(self.brightness, 2),
            'sharpness': round(self.sharpness, 2),
        }


class QualityAssessor:
    """
    Image statistics used by the liveness battery.
    Every measure is computed independently on one image.
    """

    def __init__(self, saturation_peak_ratio: float = 0.4,
                 histogram_bins: Tuple[int, int] = (50, 60)):
        """
        Initialize quality assessor.

        Args:
            saturation_peak_ratio: Saturation bins below this share of the
                peak bin count as well balanced
            histogram_bins: Hue / saturation bins for histogram comparison
        """
        self.saturation_peak_ratio = saturation_peak_ratio
        self.histogram_bins = histogram_bins
        logger.debug("QualityAssessor initialized")

    def assess(self, image: np.ndarray) -> ImageStatistics:
        """
        Assess a BGR image.

        Args:
            image: BGR image (numpy array)

        Returns:
            ImageStatistics: quality, brightness and sharpness
        """
        gray = primitives.to_grayscale(image)
        return ImageStatistics(
            quality=self._calculate_quality(image),
            brightness=self._calculate_brightness(gray),
            sharpness=self._calculate_sharpness(gray),
        )

    def _calculate_quality(self, image: np.ndarray) -> float:
        """
        Tonal richness score in [0, 1].

        Product of the share of populated value bins (dynamic range) and
        the share of saturation bins below ``saturation_peak_ratio`` of the
        saturation peak (no dominant saturation level).
        """
        hsv = cv2.cvtColor(primitives.to_bgr(image), cv2.COLOR_BGR2HSV)
        saturation = primitives.channel_histogram(hsv, 1)
        value = primitives.channel_histogram(hsv, 2)

        value_quality = np.count_nonzero(value) / 256.0
        saturation_limit = saturation.max() * self.saturation_peak_ratio
        saturation_quality = np.count_nonzero(saturation < saturation_limit) / 256.0
        return float(value_quality * saturation_quality)

    def _calculate_brightness(self, gray: np.ndarray) -> float:
        """
        Calculate mean brightness (0-255).
        Optimal is around 128 (mid-gray).
        """
        return float(np.mean(gray))

    def _calculate_sharpness(self, gray: np.ndarray) -> float:
        """
        Calculate image sharpness using Laplacian variance.
        Higher values indicate sharper images.
        """
        return primitives.blurriness(gray)

    def hue_saturation_histogram(self, image: np.ndarray) -> np.ndarray:
        """Min-max normalized 2D hue / saturation histogram."""
        hsv = cv2.cvtColor(primitives.to_bgr(image), cv2.COLOR_BGR2HSV)
        hist = cv2.calcHist([hsv], [0, 1], None, list(self.histogram_bins), [0, 180, 0, 256])
        return cv2.normalize(hist, hist, 0, 1, cv2.NORM_MINMAX)

    def histogram_correlation(self, image: np.ndarray, other: np.ndarray) -> float:
        """Correlation (-1..1) between the hue / saturation histograms of two images."""
        return float(cv2.compareHist(
            self.hue_saturation_histogram(image),
            self.hue_saturation_histogram(other),
            cv2.HISTCMP_CORREL,
        ))
