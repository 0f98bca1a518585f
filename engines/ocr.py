"""
External collaborators
Component: Tesseract OCR engine
"""
import os
import logging
from typing import Optional

import numpy as np

from .base import OCREngine

logger = logging.getLogger(__name__)

MRZ_WHITELIST = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ<"


class TesseractOCR(OCREngine):
    """pytesseract wrapper tuned for monospaced MRZ text"""

    def __init__(self, tessdata_path: Optional[str] = None, language: str = "mrz",
                 page_segmentation_mode: int = 6, whitelist: str = MRZ_WHITELIST):
        """
        Initialize OCR engine

        Args:
            tessdata_path: Directory holding the traineddata files (Tesseract default if None)
            language: Tesseract language model name
            page_segmentation_mode: Tesseract --psm value (6 = single uniform block)
            whitelist: Characters Tesseract may emit
        """
        self.tessdata_path = tessdata_path
        self.language = language
        self.page_segmentation_mode = page_segmentation_mode
        self.whitelist = whitelist
        logger.info(f"TesseractOCR initialized (lang={language}, psm={page_segmentation_mode})")
        logger.debug(f"  Tessdata path: {tessdata_path}")

    @property
    def tesseract_config(self) -> str:
        parts = []
        if self.tessdata_path:
            parts.append(f"--tessdata-dir {os.path.abspath(self.tessdata_path)}")
        parts.append(f"--psm {self.page_segmentation_mode}")
        parts.append("-c load_system_dawg=F")
        parts.append("-c load_freq_dawg=F")
        if self.whitelist:
            parts.append(f"-c tessedit_char_whitelist={self.whitelist}")
        return " ".join(parts)

    def read_text(self, image: np.ndarray) -> str:
        """
        Run Tesseract on an image

        Args:
            image: numpy.ndarray (gray or BGR)

        Returns:
            str: Raw recognized text (may be empty)
        """
        import pytesseract

        text = pytesseract.image_to_string(image, lang=self.language, config=self.tesseract_config)
        logger.debug(f"Tesseract returned {len(text)} characters")
        return text
