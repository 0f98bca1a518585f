"""
Scanner coordinator
Thin wiring between the external engines and the scanning / liveness layers
"""
import logging
from typing import Dict, Optional

import numpy as np

from config import ServiceConfig
from error_handlers import BarcodeError, DocumentNotReadableError, MRZError
from layer2_readjustment import RegionLocator
from layer3_mrz import MRZDecoder, MRZDecoderConfig, MRZExtractor
from layer3_pdf417 import PDF417Extractor
from layer4_liveness import LivenessEvaluator

logger = logging.getLogger(__name__)

PDF417_TYPE = "PDF417"
MRZ_TYPE = "MRZ"


class ScannerCoordinator:
    """
    Coordinates the scanning pipeline across layers
    Thin wrapper that delegates to layer-specific components
    """

    def __init__(self, mrz_extractor: MRZExtractor, pdf417_extractor: PDF417Extractor,
                 face_detector, liveness_evaluator: Optional[LivenessEvaluator] = None):
        """
        Args:
            mrz_extractor: Layer 3 MRZ pipeline
            pdf417_extractor: Layer 3 PDF417 pipeline
            face_detector: FaceDetector used for liveness requests
            liveness_evaluator: Layer 4 battery (defaults if None)
        """
        self.mrz_extractor = mrz_extractor
        self.pdf417_extractor = pdf417_extractor
        self.face_detector = face_detector
        self.liveness_evaluator = liveness_evaluator or LivenessEvaluator()
        logger.info("ScannerCoordinator initialized successfully")

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "ScannerCoordinator":
        """Build the coordinator with the production engines."""
        from engines import CascadeFaceDetector, TesseractOCR, ZXingBarcodeReader

        logger.info("Initializing ScannerCoordinator")
        locator = RegionLocator()
        decoder = MRZDecoder(MRZDecoderConfig(prefix=config.mrz_prefix))
        ocr = TesseractOCR(tessdata_path=config.tessdata_path, language=config.ocr_language)
        return cls(
            mrz_extractor=MRZExtractor(ocr, locator, decoder),
            pdf417_extractor=PDF417Extractor(ZXingBarcodeReader(), locator),
            face_detector=CascadeFaceDetector(config.face_cascade_path),
        )

    def scan_mrz(self, image: np.ndarray) -> Dict:
        """
        Read the MRZ of one document photo

        Returns:
            dict: {"raw": 90-character code, "information": fields}

        Raises:
            MRZError: If no valid MRZ could be read
        """
        fields = self.mrz_extractor.extract(image)
        return {"raw": fields.raw, "information": fields.to_dict()}

    def scan_barcode(self, image: np.ndarray) -> Dict:
        """
        Read the PDF417 barcode of one document photo

        Returns:
            dict: {"raw": payload, "information": fields}

        Raises:
            BarcodeError: If no barcode could be decoded and parsed
        """
        fields = self.pdf417_extractor.extract(image)
        return {"raw": fields.raw, "information": fields.to_dict()}

    def scan_document(self, front: Optional[np.ndarray], back: Optional[np.ndarray]) -> Dict:
        """
        Read a document from both sides

        Barcode on the front then the back, then MRZ on the back then the front.

        Returns:
            dict: {"type": "PDF417" | "MRZ", "raw", "information"}

        Raises:
            DocumentNotReadableError: If every attempt failed
        """
        logger.info("=" * 60)
        logger.info("Starting document scan")

        for side, image in (("front", front), ("back", back)):
            if image is None:
                continue
            try:
                result = self.scan_barcode(image)
                logger.info(f"[PDF417] Read from {side}")
                return {"type": PDF417_TYPE, **result}
            except BarcodeError as e:
                logger.info(f"[PDF417] {side}: {e.error_code}")

        for side, image in (("back", back), ("front", front)):
            if image is None:
                continue
            try:
                result = self.scan_mrz(image)
                logger.info(f"[MRZ] Read from {side}")
                return {"type": MRZ_TYPE, **result}
            except MRZError as e:
                logger.info(f"[MRZ] {side}: {e.error_code}")

        logger.warning("Document data could not be read")
        raise DocumentNotReadableError()

    def verify_liveness(self, picture: np.ndarray, zoomed_picture: np.ndarray) -> Dict:
        """
        Detect faces and run the liveness battery

        Returns:
            dict: {"liveness": bool} plus "status" on failure
        """
        logger.info("Starting liveness verification")
        base_face = self.face_detector.detect(picture)
        zoomed_face = self.face_detector.detect(zoomed_picture)
        result = self.liveness_evaluator.assess(picture, zoomed_picture, base_face, zoomed_face)
        return result.to_dict()
