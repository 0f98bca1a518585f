"""
External collaborators
Component: PDF417 barcode reader
"""
import logging
from typing import Optional

import numpy as np

from .base import BarcodeReader

logger = logging.getLogger(__name__)


class ZXingBarcodeReader(BarcodeReader):
    """zxing-cpp PDF417 decoder"""

    def read(self, image: np.ndarray) -> Optional[str]:
        """
        Decode the first PDF417 symbol in the image

        Args:
            image: numpy.ndarray (gray or BGR)

        Returns:
            str or None: Payload text, None if nothing decoded
        """
        import zxingcpp

        results = zxingcpp.read_barcodes(image, formats=zxingcpp.BarcodeFormat.PDF417)
        for result in results:
            if result.text:
                logger.debug(f"PDF417 decoded ({len(result.text)} chars)")
                return result.text
        return None
