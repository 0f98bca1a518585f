"""
Layer 4 — Liveness
Component: Moiré pattern analysis
Responsibility: Measure abnormal spatial-frequency energy left by screens and printed media
"""
import cv2
import numpy as np
import logging

from layer1_imaging import primitives

logger = logging.getLogger(__name__)


class MoirePatternAnalyzer:
    """
    Radial-frequency outlier detector.

    The centred magnitude spectrum is split into integer-radius rings.
    A pixel is an outlier when it exceeds its ring's mean by more than
    ``deviation_factor`` standard deviations. The disturbance is the
    percentage of outlier pixels that survive one erosion.
    """

    def __init__(self, size: int = 400, deviation_factor: float = 1.0,
                 band_k: float = 2.0, band_kernel_size: int = 9,
                 band_sigma_low: float = 0.1, band_sigma_high: float = 2.1,
                 band_sigma_step: float = 0.2):
        """
        Args:
            size: Side of the square the face is resized to
            deviation_factor: Standard deviations above the ring mean
            band_k: Sigma ratio between the two Gaussians of a band
            band_kernel_size: Gaussian kernel side for the band sweep
            band_sigma_low / band_sigma_high / band_sigma_step: Sigma sweep (inclusive)
        """
        self.size = size
        self.deviation_factor = deviation_factor
        self.band_k = band_k
        self.band_kernel_size = band_kernel_size
        self.band_sigma_low = band_sigma_low
        self.band_sigma_high = band_sigma_high
        self.band_sigma_step = band_sigma_step

    def _prepare(self, image: np.ndarray) -> np.ndarray:
        gray = primitives.to_grayscale(image)
        return cv2.resize(gray, (self.size, self.size))

    def analyse(self, image: np.ndarray) -> float:
        """
        Disturbance percentage (0-100) of a single image.

        Args:
            image: Face crop, BGR or gray
        """
        spectrum = primitives.magnitude_spectrum(self._prepare(image))
        percentage = self._outlier_percentage(spectrum)
        logger.debug(f"Moiré disturbance: {percentage:.3f}%")
        return percentage

    def analyse_bands(self, image: np.ndarray) -> float:
        """
        Maximum disturbance over a sweep of difference-of-Gaussians bands.

        Args:
            image: Face crop, BGR or gray
        """
        gray = self._prepare(image).astype(np.float32)
        kernel = (self.band_kernel_size, self.band_kernel_size)
        steps = int(round((self.band_sigma_high - self.band_sigma_low) / self.band_sigma_step)) + 1

        worst = 0.0
        for step in range(steps):
            sigma = self.band_sigma_low + step * self.band_sigma_step
            narrow = cv2.GaussianBlur(gray, kernel, sigma, sigmaY=sigma)
            wide = cv2.GaussianBlur(gray, kernel, self.band_k * sigma, sigmaY=self.band_k * sigma)
            spectrum = primitives.magnitude_spectrum(wide - narrow)
            worst = max(worst, self._outlier_percentage(spectrum))

        logger.debug(f"Moiré banded disturbance: {worst:.3f}%")
        return worst

    def _outlier_percentage(self, spectrum: np.ndarray) -> float:
        rows, cols = spectrum.shape
        mid_rows, mid_cols = rows // 2, cols // 2

        # Conjugate symmetry: the left half carries all the information
        half = spectrum[:, :mid_cols].astype(np.float64)
        row_index, col_index = np.mgrid[0:rows, 0:mid_cols]
        distance = np.sqrt((mid_cols - col_index) ** 2 + (mid_rows - row_index) ** 2).astype(np.int64)

        flat_distance = distance.ravel()
        flat_values = half.ravel()
        counts = np.bincount(flat_distance)
        populated = np.maximum(counts, 1)
        means = np.bincount(flat_distance, weights=flat_values) / populated
        deviations = flat_values - means[flat_distance]
        stds = np.sqrt(np.bincount(flat_distance, weights=deviations ** 2) / populated)

        limit = means[distance] + stds[distance] * self.deviation_factor
        outlier_rows, outlier_cols = np.nonzero(half > limit)

        mask = np.zeros((rows, cols), dtype=np.uint8)
        mask[outlier_rows, outlier_cols] = 255
        mask[rows - outlier_rows - 1, cols - outlier_cols - 1] = 255
        mask = primitives.erode(mask, iterations=1)

        return cv2.countNonZero(mask) * 100.0 / (rows * cols)
