"""
Layer 4 — Liveness
Component: Liveness evaluator
Responsibility: Ordered battery of checks deciding whether a selfie pair shows a live person
"""
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Optional, Tuple

import numpy as np

from layer1_imaging import Rectangle, primitives
from .moire import MoirePatternAnalyzer
from .quality import QualityAssessor

logger = logging.getLogger(__name__)


class LivenessStatus(IntEnum):
    """Evaluation outcome; lower codes take priority."""
    SUCCESS = 0
    FACE_NOT_FOUND = 1
    FACE_NOT_ZOOMED = 2
    BLURRINESS_CHECK_FAILED = 3
    QUALITY_CHECK_FAILED = 4
    BRIGHTNESS_CHECK_FAILED = 5
    HISTOGRAM_CHECK_FAILED = 6
    MOIRE_PATTERN_CHECK_FAILED = 7


@dataclass
class LivenessConfig:
    """Empirically tuned liveness thresholds."""
    zoom_ratio: float = 0.9                  # base face area must stay below ratio x zoomed area
    normalized_face_size: int = 400
    min_blur_coefficient: float = 1.0        # zoomed / base sharpness
    max_blur_coefficient: float = 3.0
    min_quality: float = 0.5
    optimal_brightness: float = 128.0
    brightness_tolerance: float = 75.0
    histogram_bins: Tuple[int, int] = (50, 60)
    min_histogram_correlation: float = 0.4
    max_moire_percentage: float = 8.0
    banded_moire: bool = False
    saturation_peak_ratio: float = 0.4


@dataclass
class LivenessResult:
    """Status plus every statistic measured before the battery stopped."""
    status: LivenessStatus
    metrics: Dict = field(default_factory=dict)

    @property
    def alive(self) -> bool:
        return self.status == LivenessStatus.SUCCESS

    def to_dict(self) -> Dict:
        response = {'liveness': self.alive}
        if not self.alive:
            response['status'] = int(self.status)
        return response


class LivenessEvaluator:
    """
    Runs the liveness battery on a base photo and a zoomed photo.

    Checks run in status order and stop at the first failure:
    presence, zoom, blurriness parity, quality, brightness, histogram
    correlation and moiré disturbance. Each check runs once per call.
    """

    def __init__(self, config: Optional[LivenessConfig] = None,
                 assessor: Optional[QualityAssessor] = None,
                 moire_analyzer: Optional[MoirePatternAnalyzer] = None):
        """
        Initialize liveness evaluator

        Args:
            config: Thresholds (defaults if None)
            assessor: Image statistics (built from config if None)
            moire_analyzer: Moiré detector (defaults if None)
        """
        self.config = config or LivenessConfig()
        self.assessor = assessor or QualityAssessor(
            saturation_peak_ratio=self.config.saturation_peak_ratio,
            histogram_bins=self.config.histogram_bins,
        )
        self.moire_analyzer = moire_analyzer or MoirePatternAnalyzer()
        logger.info("LivenessEvaluator initialized")
        logger.debug(f"  Config: {self.config}")

    def evaluate(self, base_image: np.ndarray, zoomed_image: np.ndarray,
                 base_face: Optional[Rectangle], zoomed_face: Optional[Rectangle]) -> LivenessStatus:
        """Status of the pair (see ``assess`` for the measured statistics)."""
        return self.assess(base_image, zoomed_image, base_face, zoomed_face).status

    def assess(self, base_image: np.ndarray, zoomed_image: np.ndarray,
               base_face: Optional[Rectangle], zoomed_face: Optional[Rectangle]) -> LivenessResult:
        """
        Run the battery

        Args:
            base_image: Photo taken at arm's length
            zoomed_image: Photo taken closer to the face
            base_face: Face rectangle in base_image (None if not detected)
            zoomed_face: Face rectangle in zoomed_image (None if not detected)

        Returns:
            LivenessResult: First failing status or SUCCESS, with metrics
        """
        cfg = self.config
        metrics: Dict = {}

        def finish(status: LivenessStatus) -> LivenessResult:
            if status == LivenessStatus.SUCCESS:
                logger.info("✓ Liveness verified")
            else:
                logger.warning(f"Liveness failed: {status.name}")
            logger.debug(f"  Metrics: {metrics}")
            return LivenessResult(status=status, metrics=metrics)

        # 1. Presence
        base_crop = self._face_crop(base_image, base_face)
        zoomed_crop = self._face_crop(zoomed_image, zoomed_face)
        if base_crop is None or zoomed_crop is None:
            return finish(LivenessStatus.FACE_NOT_FOUND)

        # 2. Zoom ratio
        metrics['base_face_area'] = base_face.area
        metrics['zoomed_face_area'] = zoomed_face.area
        if base_face.area >= cfg.zoom_ratio * zoomed_face.area:
            return finish(LivenessStatus.FACE_NOT_ZOOMED)

        # 3. Blurriness parity on size-normalized faces
        size = cfg.normalized_face_size
        base_sharpness = primitives.blurriness(primitives.resize(base_crop, size, size, size, size))
        zoomed_sharpness = primitives.blurriness(primitives.resize(zoomed_crop, size, size, size, size))
        metrics['base_sharpness'] = round(base_sharpness, 2)
        metrics['zoomed_sharpness'] = round(zoomed_sharpness, 2)
        if base_sharpness <= 0:
            return finish(LivenessStatus.BLURRINESS_CHECK_FAILED)
        coefficient = zoomed_sharpness / base_sharpness
        metrics['blur_coefficient'] = round(coefficient, 4)
        if not cfg.min_blur_coefficient <= coefficient <= cfg.max_blur_coefficient:
            return finish(LivenessStatus.BLURRINESS_CHECK_FAILED)

        # 4. Quality of the full images
        base_stats = self.assessor.assess(base_image)
        zoomed_stats = self.assessor.assess(zoomed_image)
        metrics['base_stats'] = base_stats.to_dict()
        metrics['zoomed_stats'] = zoomed_stats.to_dict()
        if min(base_stats.quality, zoomed_stats.quality) < cfg.min_quality:
            return finish(LivenessStatus.QUALITY_CHECK_FAILED)

        # 5. Brightness of the full images
        if not (self._brightness_ok(base_stats.brightness) and self._brightness_ok(zoomed_stats.brightness)):
            return finish(LivenessStatus.BRIGHTNESS_CHECK_FAILED)

        # 6. Histogram correlation between the full images
        correlation = self.assessor.histogram_correlation(base_image, zoomed_image)
        metrics['histogram_correlation'] = round(correlation, 4)
        if correlation < cfg.min_histogram_correlation:
            return finish(LivenessStatus.HISTOGRAM_CHECK_FAILED)

        # 7. Moiré disturbance on the raw face crops
        analyse = self.moire_analyzer.analyse_bands if cfg.banded_moire else self.moire_analyzer.analyse
        base_moire = analyse(base_crop)
        zoomed_moire = analyse(zoomed_crop)
        metrics['base_moire'] = round(base_moire, 4)
        metrics['zoomed_moire'] = round(zoomed_moire, 4)
        if max(base_moire, zoomed_moire) > cfg.max_moire_percentage:
            return finish(LivenessStatus.MOIRE_PATTERN_CHECK_FAILED)

        return finish(LivenessStatus.SUCCESS)

    def _brightness_ok(self, brightness: float) -> bool:
        cfg = self.config
        return abs(brightness - cfg.optimal_brightness) <= cfg.brightness_tolerance

    @staticmethod
    def _face_crop(image: np.ndarray, face: Optional[Rectangle]) -> Optional[np.ndarray]:
        """Face pixels clipped to the image, None if missing or empty."""
        if image is None or face is None or face.is_empty:
            return None
        crop = primitives.crop(image, face)
        return crop if crop.size > 0 else None
