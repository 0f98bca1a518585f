"""
External collaborators
OCR, barcode and face engines, constructed once and injected into the core
"""
from .base import OCREngine, BarcodeReader, FaceDetector
from .ocr import TesseractOCR
from .barcode import ZXingBarcodeReader
from .faces import CascadeFaceDetector

__all__ = [
    'OCREngine',
    'BarcodeReader',
    'FaceDetector',
    'TesseractOCR',
    'ZXingBarcodeReader',
    'CascadeFaceDetector',
]
