"""
Tests for the liveness statistics, moiré analysis and evaluator.
"""
from dataclasses import replace

import numpy as np
import pytest

from layer1_imaging import Rectangle
from layer4_liveness import (
    LivenessEvaluator,
    LivenessResult,
    LivenessStatus,
    MoirePatternAnalyzer,
    QualityAssessor,
)

BASE_FACE = Rectangle(200, 150, 100, 100)
ZOOMED_FACE = Rectangle(150, 100, 200, 200)


def gaussian_bump(size=400, sigma=80.0):
    y, x = np.mgrid[0:size, 0:size]
    center = size / 2.0
    bump = 255.0 * np.exp(-((x - center) ** 2 + (y - center) ** 2) / (2 * sigma ** 2))
    return bump


class TestQualityAssessor:
    """Test single-image statistics."""

    def test_brightness_is_mean_luminance(self):
        """Test a flat image reports its gray level."""
        stats = QualityAssessor().assess(np.full((50, 50, 3), 200, dtype=np.uint8))
        assert stats.brightness == pytest.approx(200)
        assert stats.sharpness == 0.0

    def test_flat_image_has_poor_quality(self, noise_image):
        """Test a flat image scores lower than a rich one."""
        assessor = QualityAssessor()
        flat = assessor.assess(np.full((100, 100, 3), 128, dtype=np.uint8))
        rich = assessor.assess(noise_image(1))
        assert 0.0 <= flat.quality < rich.quality <= 1.0

    def test_identical_histograms_correlate(self, noise_image):
        """Test an image correlates perfectly with itself."""
        image = noise_image(2)
        assert QualityAssessor().histogram_correlation(image, image.copy()) == pytest.approx(1.0)

    def test_to_dict(self):
        """Test statistics serialize with rounded values."""
        stats = QualityAssessor().assess(np.full((10, 10, 3), 10, dtype=np.uint8))
        assert set(stats.to_dict()) == {'quality', 'brightness', 'sharpness'}


class TestMoirePatternAnalyzer:
    """Test radial-frequency disturbance."""

    def test_percentage_range(self, noise_image):
        """Test the disturbance is a percentage."""
        value = MoirePatternAnalyzer().analyse(noise_image(3, shape=(120, 100, 3)))
        assert 0.0 <= value <= 100.0

    def test_deterministic(self, noise_image):
        """Test identical input gives the identical disturbance."""
        analyzer = MoirePatternAnalyzer()
        image = noise_image(4, shape=(150, 150, 3))
        assert analyzer.analyse(image) == analyzer.analyse(image.copy())

    def test_unreachable_deviation(self, noise_image):
        """Test no pixel is an outlier with an enormous deviation factor."""
        analyzer = MoirePatternAnalyzer(deviation_factor=1e9)
        assert analyzer.analyse(noise_image(5, shape=(100, 100, 3))) == 0.0

    def test_periodic_pattern_raises_disturbance(self):
        """Test a halftone-like grid scores above the same face without it."""
        bump = gaussian_bump()
        x = np.arange(400)
        grid = np.sign(np.outer(np.cos(2 * np.pi * x / 8), np.cos(2 * np.pi * x / 8)))
        direct = np.round(bump).astype(np.uint8)
        printed = np.round(bump * (0.6 + 0.4 * grid)).astype(np.uint8)

        analyzer = MoirePatternAnalyzer()
        assert analyzer.analyse(printed) > analyzer.analyse(direct)

    def test_bands_percentage_range(self, noise_image):
        """Test the banded sweep also yields a percentage."""
        analyzer = MoirePatternAnalyzer(size=128)
        value = analyzer.analyse_bands(noise_image(6, shape=(90, 90, 3)))
        assert 0.0 <= value <= 100.0


class TestLivenessResult:
    """Test the response shape."""

    def test_success_has_no_status(self):
        """Test a live result only reports liveness."""
        assert LivenessResult(LivenessStatus.SUCCESS).to_dict() == {'liveness': True}

    def test_failure_reports_status_code(self):
        """Test a failed result carries the integer status."""
        result = LivenessResult(LivenessStatus.HISTOGRAM_CHECK_FAILED)
        assert result.to_dict() == {'liveness': False, 'status': 6}


class TestLivenessEvaluator:
    """Test the ordered liveness battery."""

    @pytest.fixture
    def pair(self, noise_image):
        return noise_image(10), noise_image(11)

    def evaluate(self, config, base, zoomed, base_face=BASE_FACE, zoomed_face=ZOOMED_FACE):
        return LivenessEvaluator(config).evaluate(base, zoomed, base_face, zoomed_face)

    def test_success(self, permissive_liveness_config, pair):
        """Test a textured pair passes permissive thresholds."""
        status = self.evaluate(permissive_liveness_config, *pair)
        assert status == LivenessStatus.SUCCESS

    def test_success_with_banded_moire(self, permissive_liveness_config, pair):
        """Test the banded moiré variant can be selected."""
        config = replace(permissive_liveness_config, banded_moire=True)
        assert self.evaluate(config, *pair) == LivenessStatus.SUCCESS

    def test_face_not_found_first(self, permissive_liveness_config):
        """Test a missing face wins even when every other check would fail."""
        dark = np.zeros((480, 640, 3), dtype=np.uint8)
        config = replace(permissive_liveness_config, min_quality=2.0, brightness_tolerance=-1.0)
        assert self.evaluate(config, dark, dark, None, ZOOMED_FACE) == LivenessStatus.FACE_NOT_FOUND
        assert self.evaluate(config, dark, dark, BASE_FACE, None) == LivenessStatus.FACE_NOT_FOUND

    def test_face_outside_image(self, permissive_liveness_config, pair):
        """Test a face rectangle with no pixels inside the image counts as missing."""
        outside = Rectangle(5000, 5000, 50, 50)
        assert self.evaluate(permissive_liveness_config, *pair, outside, ZOOMED_FACE) \
            == LivenessStatus.FACE_NOT_FOUND

    def test_face_not_zoomed(self, permissive_liveness_config):
        """Test equal face sizes fail before the blur check."""
        flat = np.zeros((480, 640, 3), dtype=np.uint8)
        status = self.evaluate(permissive_liveness_config, flat, flat, ZOOMED_FACE, ZOOMED_FACE)
        assert status == LivenessStatus.FACE_NOT_ZOOMED

    def test_flat_base_face_is_blurry(self, permissive_liveness_config):
        """Test a base face without texture fails the blur check."""
        flat = np.zeros((480, 640, 3), dtype=np.uint8)
        assert self.evaluate(permissive_liveness_config, flat, flat) == LivenessStatus.BLURRINESS_CHECK_FAILED

    def test_blur_coefficient_range(self, permissive_liveness_config, pair):
        """Test an unreachable blur coefficient fails."""
        config = replace(permissive_liveness_config, min_blur_coefficient=1e9)
        assert self.evaluate(config, *pair) == LivenessStatus.BLURRINESS_CHECK_FAILED

    def test_quality_before_brightness(self, permissive_liveness_config, pair):
        """Test quality is reported ahead of brightness."""
        config = replace(permissive_liveness_config, min_quality=2.0, brightness_tolerance=-1.0)
        assert self.evaluate(config, *pair) == LivenessStatus.QUALITY_CHECK_FAILED

    def test_brightness_before_histogram(self, permissive_liveness_config, pair):
        """Test brightness is reported ahead of histogram correlation."""
        config = replace(permissive_liveness_config, brightness_tolerance=-1.0,
                         min_histogram_correlation=2.0)
        assert self.evaluate(config, *pair) == LivenessStatus.BRIGHTNESS_CHECK_FAILED

    def test_histogram_before_moire(self, permissive_liveness_config, pair):
        """Test histogram correlation is reported ahead of moiré."""
        config = replace(permissive_liveness_config, min_histogram_correlation=2.0,
                         max_moire_percentage=-1.0)
        assert self.evaluate(config, *pair) == LivenessStatus.HISTOGRAM_CHECK_FAILED

    def test_moire(self, permissive_liveness_config, pair):
        """Test the moiré threshold is the last check."""
        config = replace(permissive_liveness_config, max_moire_percentage=-1.0)
        assert self.evaluate(config, *pair) == LivenessStatus.MOIRE_PATTERN_CHECK_FAILED

    def test_metrics_recorded(self, permissive_liveness_config, pair):
        """Test the measured statistics are kept with the result."""
        result = LivenessEvaluator(permissive_liveness_config).assess(*pair, BASE_FACE, ZOOMED_FACE)
        assert result.alive
        for key in ('blur_coefficient', 'base_stats', 'histogram_correlation', 'zoomed_moire'):
            assert key in result.metrics

    def test_status_codes(self):
        """Test the integer codes of the statuses."""
        assert [int(status) for status in LivenessStatus] == list(range(8))
