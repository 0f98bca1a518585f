"""
Layer 2 – Image Readjustment
Responsibility: Locate the MRZ strip or PDF417 blobs in a document photo and rectify them
Output: Region candidates (bi-level MRZ strip for OCR, barcode crops for decoding)
"""
import cv2
import numpy as np
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from layer1_imaging import RegionCandidate
from layer1_imaging import primitives

logger = logging.getLogger(__name__)


@dataclass
class MRZLocatorConfig:
    """Tunables for the MRZ strip pipeline."""
    target_height: int = 800
    median_kernel: int = 3
    blackhat_kernel: Tuple[int, int] = (13, 5)
    close_kernel: Tuple[int, int] = (21, 21)
    erode_iterations: int = 4
    margin_ratio: float = 0.05
    dilate_iterations: int = 16
    min_aspect_ratio: float = 3.8
    max_level_angle: float = 3.0      # degrees; below this the strip is cropped as-is
    threshold_block_size: int = 17
    threshold_bias: int = 5


@dataclass
class PDF417LocatorConfig:
    """Tunables for the PDF417 blob pipeline."""
    max_size: int = 800
    blur_kernel: int = 13
    threshold: int = 90
    dilate_iterations: int = 14
    erode_iterations: int = 9
    min_aspect_ratio: float = 2.5     # exclusive
    max_aspect_ratio: float = 5.0     # inclusive
    long_padding: float = 1.2
    short_padding: float = 1.1


class RegionLocator:
    """
    Finds machine-readable regions inside full document photos.

    Both pipelines are pure: no state is kept between calls, so one
    instance can be shared across concurrent requests.
    """

    def __init__(self,
                 mrz_config: Optional[MRZLocatorConfig] = None,
                 pdf417_config: Optional[PDF417LocatorConfig] = None):
        """
        Initialize region locator

        Args:
            mrz_config: MRZ pipeline settings (defaults if None)
            pdf417_config: PDF417 pipeline settings (defaults if None)
        """
        self.mrz_config = mrz_config or MRZLocatorConfig()
        self.pdf417_config = pdf417_config or PDF417LocatorConfig()

        logger.info("RegionLocator initialized")
        logger.debug(f"  MRZ config: {self.mrz_config}")
        logger.debug(f"  PDF417 config: {self.pdf417_config}")

    # ------------------------------------------------------------------
    # MRZ strip
    # ------------------------------------------------------------------

    def locate_mrz(self, photo: np.ndarray) -> Optional[RegionCandidate]:
        """
        Locate and rectify the MRZ strip

        Args:
            photo: numpy.ndarray document photo (BGR or gray)

        Returns:
            RegionCandidate with a bi-level strip image, or None when no
            elongated text block was found

        Pipeline:
        1. Resize to a fixed height, median blur
        2. Black-hat + horizontal gradient to isolate dark text rows
        3. Close / Otsu / close / erode to build line blocks
        4. Clear side margins, dilate to fuse lines into one blob
        5. Largest contour by perimeter -> rotated rectangle
        6. Orientation by aspect ratio, rectify, adaptive threshold
        """
        cfg = self.mrz_config
        logger.debug("Locating MRZ region")

        resized, _ = primitives.resize_to_height(photo, cfg.target_height)
        mask = self._mrz_mask(resized)

        contour = primitives.largest_contour(primitives.external_contours(mask))
        if contour is None:
            logger.info("No MRZ candidate contour found")
            return None

        rect = primitives.min_area_rect(contour)
        logger.debug(f"  MRZ rect: {rect.to_dict()}")

        bounding_box = None
        if rect.width > cfg.min_aspect_ratio * rect.height:
            if abs(rect.angle) > cfg.max_level_angle:
                rotation = rect.angle
                region = primitives.extract_rotated_region(
                    resized, rect.center, (rect.width, rect.height), rotation
                )
            else:
                rotation = 0.0
                bounding_box = primitives.bounding_rect(contour)
                region = primitives.crop(resized, bounding_box)
        elif rect.height > cfg.min_aspect_ratio * rect.width:
            rotation = _vertical_rotation(rect.angle)
            region = primitives.extract_rotated_region(
                resized, rect.center, (rect.height, rect.width), rotation
            )
        else:
            logger.info(f"MRZ candidate rejected (aspect ratio {rect.aspect_ratio:.2f})")
            return None

        if region.size == 0:
            logger.info("MRZ candidate produced an empty crop")
            return None

        logger.info(f"✓ MRZ region located (rotation {rotation:.1f}°)")
        return RegionCandidate(
            image=self._binarize(region),
            rect=rect,
            rotation=rotation,
            bounding_box=bounding_box,
        )

    def _mrz_mask(self, resized: np.ndarray) -> np.ndarray:
        """Binary mask whose largest blob should be the MRZ block."""
        cfg = self.mrz_config

        gray = primitives.to_grayscale(resized)
        gray = cv2.medianBlur(gray, cfg.median_kernel)

        kernel = primitives.rect_kernel(*cfg.blackhat_kernel)
        blackhat = primitives.black_hat(gray, kernel)

        gradient = cv2.Sobel(blackhat, cv2.CV_32F, 1, 0)
        gradient = primitives.stretch_to_full_range(gradient)
        gradient = primitives.close(gradient, kernel)

        _, thresh = cv2.threshold(gradient, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
        thresh = primitives.close(thresh, primitives.rect_kernel(*cfg.close_kernel))
        thresh = primitives.erode(thresh, iterations=cfg.erode_iterations)

        width = thresh.shape[1]
        margin = int(width * cfg.margin_ratio)
        if margin > 0:
            thresh[:, :margin] = 0
            thresh[:, width - margin:] = 0

        return primitives.dilate(thresh, iterations=cfg.dilate_iterations)

    def _binarize(self, region: np.ndarray) -> np.ndarray:
        """Clean bi-level text image handed to OCR."""
        cfg = self.mrz_config
        gray = primitives.to_grayscale(region)
        binary = cv2.adaptiveThreshold(
            gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY,
            cfg.threshold_block_size, cfg.threshold_bias
        )
        binary = primitives.erode(binary, iterations=1)
        return primitives.dilate(binary, iterations=1)

    # ------------------------------------------------------------------
    # PDF417 blobs
    # ------------------------------------------------------------------

    def locate_pdf417(self, photo: np.ndarray) -> List[RegionCandidate]:
        """
        Locate every blob shaped like a PDF417 symbol

        Args:
            photo: numpy.ndarray document photo (BGR or gray)

        Returns:
            list: RegionCandidates cut from the full-resolution photo,
                  largest first; empty when nothing qualifies
        """
        cfg = self.pdf417_config
        logger.debug("Locating PDF417 regions")

        resized = primitives.resize(photo, max_width=cfg.max_size, max_height=cfg.max_size)
        scale = photo.shape[1] / float(resized.shape[1])

        gray = primitives.to_grayscale(resized)
        blurred = cv2.GaussianBlur(gray, (cfg.blur_kernel, cfg.blur_kernel), 0)
        _, binary = cv2.threshold(blurred, cfg.threshold, 255, cv2.THRESH_BINARY_INV)
        binary = primitives.dilate(binary, iterations=cfg.dilate_iterations)
        binary = primitives.erode(binary, iterations=cfg.erode_iterations)

        candidates = []
        for contour in primitives.external_contours(binary):
            rect = primitives.min_area_rect(contour)
            aspect = rect.aspect_ratio
            if not (cfg.min_aspect_ratio < aspect <= cfg.max_aspect_ratio):
                continue

            full_rect = rect.scaled(scale).padded(cfg.long_padding, cfg.short_padding)
            if full_rect.width >= full_rect.height:
                rotation = full_rect.angle
                size = (full_rect.width, full_rect.height)
            else:
                rotation = _vertical_rotation(full_rect.angle)
                size = (full_rect.height, full_rect.width)

            region = primitives.extract_rotated_region(photo, full_rect.center, size, rotation)
            candidates.append(RegionCandidate(image=region, rect=full_rect, rotation=rotation))

        candidates.sort(key=lambda candidate: candidate.rect.area, reverse=True)
        logger.info(f"PDF417 candidates found: {len(candidates)}")
        return candidates


def _vertical_rotation(angle: float) -> float:
    """Rotation laying a tall rectangle's long axis horizontal."""
    return angle + 90.0 if angle <= 0 else angle - 90.0
