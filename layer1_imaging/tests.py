"""
Tests for the imaging geometry types and primitives.
"""
import cv2
import numpy as np
import pytest

from layer1_imaging import Rectangle, RotatedRectangle, primitives


class TestRectangle:
    """Test axis-aligned rectangles."""

    def test_negative_size_rejected(self):
        """Test a negative width raises ValueError."""
        with pytest.raises(ValueError):
            Rectangle(0, 0, -1, 10)

    def test_clip_to_frame(self):
        """Test clipping keeps only the part inside the image."""
        clipped = Rectangle(-10, 20, 50, 100).clip(30, 60)
        assert clipped == Rectangle(0, 20, 30, 40)

    def test_clip_outside_frame_is_empty(self):
        """Test a rectangle fully outside the frame clips to nothing."""
        assert Rectangle(100, 100, 10, 10).clip(50, 50).is_empty


class TestRotatedRectangle:
    """Test canonical rotated rectangles."""

    def test_axis_aligned_wide(self):
        """Test a wide axis-aligned box keeps width along x."""
        points = np.array([[0, 0], [100, 0], [100, 20], [0, 20]])
        rect = RotatedRectangle.from_box_points(points)
        assert rect.width == pytest.approx(100)
        assert rect.height == pytest.approx(20)
        assert rect.angle == pytest.approx(0)
        assert rect.center == pytest.approx((50, 10))

    def test_axis_aligned_tall(self):
        """Test a tall axis-aligned box reports height as the long side."""
        points = np.array([[0, 0], [20, 0], [20, 100], [0, 100]])
        rect = RotatedRectangle.from_box_points(points)
        assert rect.width == pytest.approx(20)
        assert rect.height == pytest.approx(100)
        assert rect.angle == pytest.approx(0)

    def test_slightly_rotated_wide(self):
        """Test the angle follows the long side of a leaning strip."""
        rect = RotatedRectangle.from_box_points(cv2.boxPoints(((200, 200), (100, 20), 10)))
        assert rect.width == pytest.approx(100, abs=0.01)
        assert rect.height == pytest.approx(20, abs=0.01)
        assert rect.angle == pytest.approx(10, abs=0.01)

    def test_steep_box_is_folded(self):
        """Test a box at 80 degrees becomes a tall box at -10 degrees."""
        rect = RotatedRectangle.from_box_points(cv2.boxPoints(((200, 200), (100, 20), 80)))
        assert rect.width == pytest.approx(20, abs=0.01)
        assert rect.height == pytest.approx(100, abs=0.01)
        assert rect.angle == pytest.approx(-10, abs=0.01)
        assert -45 < rect.angle <= 45

    def test_aspect_ratio_degenerate(self):
        """Test a zero-height rectangle has aspect ratio 0."""
        assert RotatedRectangle(0, 0, 10, 0, 0).aspect_ratio == 0.0

    def test_padded_grows_long_side(self):
        """Test padding applies the long factor to the longer side."""
        rect = RotatedRectangle(0, 0, 20, 100, 5).padded(1.2, 1.1)
        assert rect.height == pytest.approx(120)
        assert rect.width == pytest.approx(22)
        assert rect.angle == 5


class TestResize:
    """Test aspect-preserving resize."""

    def test_max_width(self):
        """Test shrinking to a maximum width."""
        image = np.zeros((100, 200), dtype=np.uint8)
        assert primitives.resize(image, max_width=100).shape == (50, 100)

    def test_min_height(self):
        """Test growing to a minimum height."""
        image = np.zeros((100, 200), dtype=np.uint8)
        assert primitives.resize(image, min_height=200).shape == (200, 400)

    def test_min_wins_over_max(self):
        """Test the minimum constraints are applied last."""
        image = np.zeros((200, 100), dtype=np.uint8)
        assert primitives.resize(image, 400, 400, 400, 400).shape == (800, 400)

    def test_does_not_mutate_input(self):
        """Test the input is left untouched."""
        image = np.full((10, 10), 7, dtype=np.uint8)
        result = primitives.resize(image)
        result[:] = 0
        assert image.min() == 7


class TestContours:
    """Test contour selection and rectangle fitting."""

    def test_largest_contour_uses_perimeter(self):
        """Test a long thin strip beats a compact square with more area."""
        square = np.array([[[0, 0]], [[100, 0]], [[100, 100]], [[0, 100]]], dtype=np.int32)
        strip = np.array([[[0, 200]], [[300, 200]], [[300, 204]], [[0, 204]]], dtype=np.int32)
        assert primitives.largest_contour([square, strip]) is strip

    def test_largest_contour_empty(self):
        """Test no contours gives None."""
        assert primitives.largest_contour([]) is None

    def test_min_area_rect_canonical(self):
        """Test the fitted rectangle of a filled wide box."""
        mask = np.zeros((200, 300), dtype=np.uint8)
        mask[80:120, 50:250] = 255
        contour = primitives.largest_contour(primitives.external_contours(mask))
        rect = primitives.min_area_rect(contour)
        assert rect.width > rect.height
        assert abs(rect.angle) < 1.0


class TestExtractRotatedRegion:
    """Test rectified region extraction."""

    def test_translation_only(self):
        """Test an unrotated window lands exactly on the block."""
        image = np.zeros((200, 200), dtype=np.uint8)
        image[90:110, 80:120] = 255
        region = primitives.extract_rotated_region(image, (100, 100), (40, 20), 0)
        assert region.shape == (20, 40)
        assert region.min() == 255

    def test_rotation_levels_block(self):
        """Test a leaning block is brought to horizontal."""
        image = np.zeros((300, 300), dtype=np.uint8)
        corners = cv2.boxPoints(((150, 150), (100, 30), 10))
        cv2.fillPoly(image, [np.round(corners).astype(np.int32)], 255)
        region = primitives.extract_rotated_region(image, (150, 150), (100, 30), 10)
        assert region.shape == (30, 100)
        assert region[4:-4, 4:-4].mean() > 240


class TestFrequencyAndStatistics:
    """Test spectrum and sharpness measures."""

    def test_stretch_to_full_range(self):
        """Test the observed range is mapped onto 0-255."""
        image = np.array([[10, 15], [20, 20]], dtype=np.float32)
        stretched = primitives.stretch_to_full_range(image)
        assert stretched.min() == 0
        assert stretched.max() == 255

    def test_stretch_constant_is_zero(self):
        """Test a constant image stretches to zeros."""
        assert primitives.stretch_to_full_range(np.full((4, 4), 9.0)).max() == 0

    def test_spectrum_dc_at_center(self):
        """Test the DC component sits at the spectrum center."""
        rng = np.random.default_rng(3)
        image = rng.integers(50, 200, size=(128, 128), dtype=np.uint8)
        spectrum = primitives.magnitude_spectrum(image)
        rows, cols = spectrum.shape
        assert spectrum.dtype == np.uint8
        assert rows % 2 == 0 and cols % 2 == 0
        assert spectrum[rows // 2, cols // 2] == spectrum.max()

    def test_spectrum_deterministic(self):
        """Test identical input gives an identical spectrum."""
        rng = np.random.default_rng(4)
        image = rng.integers(0, 256, size=(100, 100), dtype=np.uint8)
        assert np.array_equal(primitives.magnitude_spectrum(image),
                              primitives.magnitude_spectrum(image.copy()))

    def test_blurriness_drops_when_smoothed(self):
        """Test smoothing lowers the Laplacian variance."""
        rng = np.random.default_rng(5)
        image = rng.integers(0, 256, size=(100, 100), dtype=np.uint8)
        smoothed = cv2.GaussianBlur(image, (9, 9), 3)
        assert primitives.blurriness(smoothed) < primitives.blurriness(image)

    def test_blurriness_of_flat_image(self):
        """Test a flat image has zero sharpness."""
        assert primitives.blurriness(np.full((50, 50), 128, dtype=np.uint8)) == 0.0
