"""
Tests for the MRZ and PDF417 region locators.
"""
import cv2
import numpy as np
import pytest

from layer2_readjustment import RegionLocator


@pytest.fixture
def locator():
    return RegionLocator()


class TestLocateMRZ:
    """Test MRZ strip location."""

    def test_level_strip_is_cropped(self, locator, text_block, mrz_lines):
        """Test a level text block is cropped without rotation."""
        candidate = locator.locate_mrz(text_block(mrz_lines))
        assert candidate is not None
        assert candidate.rotation == 0.0
        assert candidate.bounding_box is not None
        assert candidate.image.shape[1] > candidate.image.shape[0]

    def test_output_is_bilevel(self, locator, text_block, mrz_lines):
        """Test the strip handed to OCR holds only black and white."""
        candidate = locator.locate_mrz(text_block(mrz_lines))
        assert candidate.image.ndim == 2
        assert set(np.unique(candidate.image)) <= {0, 255}

    def test_leaning_strip_is_rotated(self, locator, text_block, mrz_lines):
        """Test a block rotated 10 degrees counter-clockwise is levelled."""
        candidate = locator.locate_mrz(text_block(mrz_lines, angle=10))
        assert candidate is not None
        assert candidate.rect.angle == pytest.approx(-10, abs=3)
        assert candidate.rotation == candidate.rect.angle
        assert candidate.bounding_box is None
        assert candidate.image.shape[1] > candidate.image.shape[0]
        # dark pixels of the rectified strip run along the rows
        rows, columns = np.nonzero(candidate.image == 0)
        slope = np.polyfit(columns, rows, 1)[0]
        assert abs(slope) < np.tan(np.radians(4))

    def test_vertical_strip_is_laid_flat(self, locator):
        """Test a block turned a quarter turn comes out wide."""
        photo = np.full((1400, 900, 3), 255, dtype=np.uint8)
        # three 700x20 bars standing upright, 20 px apart
        for left in (390, 430, 470):
            photo[350:1050, left:left + 20] = 0
        candidate = locator.locate_mrz(photo)
        assert candidate is not None
        assert abs(candidate.rotation) == pytest.approx(90, abs=3)
        assert candidate.image.shape[1] > candidate.image.shape[0]

    def test_blank_photo(self, locator, blank_photo):
        """Test a photo without text yields no candidate."""
        assert locator.locate_mrz(blank_photo) is None

    def test_compact_blob_rejected(self, locator):
        """Test a square dark patch is not taken for an MRZ."""
        photo = np.full((900, 1400, 3), 255, dtype=np.uint8)
        for row in range(300, 600, 12):
            cv2.line(photo, (550, row), (850, row), (0, 0, 0), 2)
        for column in range(550, 850, 12):
            cv2.line(photo, (column, 300), (column, 600), (0, 0, 0), 2)
        assert locator.locate_mrz(photo) is None

    def test_input_not_mutated(self, locator, text_block, mrz_lines):
        """Test the caller's photo is left untouched."""
        photo = text_block(mrz_lines)
        original = photo.copy()
        locator.locate_mrz(photo)
        assert np.array_equal(photo, original)


class TestLocatePDF417:
    """Test PDF417 blob location."""

    def test_barcode_shaped_blob(self, locator, blank_photo):
        """Test a dark 3:1 block yields one wide candidate."""
        photo = blank_photo.copy()
        photo[250:350, 250:550] = 0
        candidates = locator.locate_pdf417(photo)
        assert len(candidates) == 1
        candidate = candidates[0]
        assert 2.5 < candidate.rect.aspect_ratio
        assert abs(candidate.rotation) < 1.0
        assert candidate.image.shape[1] > candidate.image.shape[0]

    def test_square_blob_rejected(self, locator, blank_photo):
        """Test a square block does not qualify."""
        photo = blank_photo.copy()
        photo[200:400, 300:500] = 0
        assert locator.locate_pdf417(photo) == []

    def test_blank_photo(self, locator, blank_photo):
        """Test a blank photo yields an empty list."""
        assert locator.locate_pdf417(blank_photo) == []

    def test_sorted_largest_first(self, locator):
        """Test candidates are ordered by area, largest first."""
        photo = np.full((700, 800, 3), 255, dtype=np.uint8)
        photo[80:140, 100:280] = 0
        photo[350:470, 200:560] = 0
        candidates = locator.locate_pdf417(photo)
        assert len(candidates) == 2
        assert candidates[0].rect.area > candidates[1].rect.area

    def test_cut_from_full_resolution(self, locator):
        """Test candidates come from the original photo, not the working copy."""
        photo = np.full((1200, 1600, 3), 255, dtype=np.uint8)
        photo[500:700, 500:1100] = 0
        candidate = locator.locate_pdf417(photo)[0]
        # 600 px long side padded by 20 percent
        assert candidate.image.shape[1] > 600
