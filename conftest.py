"""
Pytest configuration and fixtures for the document scanner tests.
"""
import pytest
import os
import sys
from datetime import date

import cv2
import numpy as np

# Add the project root to the path
sys.path.insert(0, os.path.dirname(__file__))

from engines.base import BarcodeReader, FaceDetector, OCREngine


MRZ_LINES = (
    "IDARG34567890<2" + "<" * 15,
    "8503150M3105205ARG" + "<" * 11 + "4",
    "PEREZ<<JUAN<CARLOS" + "<" * 12,
)

PDF417_SCHEMA_A = "00123456789@PEREZ@JUAN CARLOS@M@34567890@A@15/03/1985@01/01/2015@200"
PDF417_SCHEMA_B = (
    "@34567890    @A@1@PEREZ@JUAN CARLOS@ARGENTINA@15/03/1985@M@01/01/2015@00123456789@"
)


class FakeOCR(OCREngine):
    """Returns canned text and records the images it was given."""

    def __init__(self, text):
        self.text = text
        self.images = []

    def read_text(self, image):
        self.images.append(image)
        return self.text


class FakeBarcodeReader(BarcodeReader):
    """Returns canned payloads in order, repeating the last one."""

    def __init__(self, *payloads):
        self.payloads = list(payloads) or [None]
        self.images = []

    def read(self, image):
        self.images.append(image)
        index = min(len(self.images), len(self.payloads)) - 1
        return self.payloads[index]


class FakeFaceDetector(FaceDetector):
    """Returns canned rectangles in order, repeating the last one."""

    def __init__(self, *faces):
        self.faces = list(faces) or [None]
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        return self.faces[min(self.calls, len(self.faces)) - 1]


def render_text_block(lines, angle=0.0, canvas_size=(1400, 900)):
    """White BGR canvas with dark monospace-ish text lines, optionally rotated."""
    width, height = canvas_size
    canvas = np.full((height, width, 3), 255, dtype=np.uint8)
    (text_width, _), _ = cv2.getTextSize(lines[0], cv2.FONT_HERSHEY_SIMPLEX, 1.0, 2)
    x = (width - text_width) // 2
    y = height // 2 - 40
    for index, line in enumerate(lines):
        cv2.putText(canvas, line, (x, y + index * 40), cv2.FONT_HERSHEY_SIMPLEX,
                    1.0, (0, 0, 0), 2, cv2.LINE_AA)
    if angle:
        matrix = cv2.getRotationMatrix2D((width / 2.0, height / 2.0), angle, 1.0)
        canvas = cv2.warpAffine(canvas, matrix, (width, height),
                                borderValue=(255, 255, 255))
    return canvas


def encode_png(image):
    ok, buffer = cv2.imencode('.png', image)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def mrz_lines():
    """Valid 3x30 identity card MRZ (check digits 2, 0, 5 and composite 4)."""
    return list(MRZ_LINES)


@pytest.fixture
def mrz_text(mrz_lines):
    return "\n".join(mrz_lines)


@pytest.fixture
def reference_date():
    return date(2026, 1, 1)


@pytest.fixture
def schema_a_payload():
    return PDF417_SCHEMA_A


@pytest.fixture
def schema_b_payload():
    return PDF417_SCHEMA_B


@pytest.fixture
def fakes():
    """Namespace of the fake engine classes."""
    class Fakes:
        OCR = FakeOCR
        BarcodeReader = FakeBarcodeReader
        FaceDetector = FakeFaceDetector
    return Fakes


@pytest.fixture
def text_block():
    """Factory rendering MRZ-like text on a white document canvas."""
    return render_text_block


@pytest.fixture
def noise_image():
    """Factory for reproducible colour noise images."""
    def make(seed, shape=(480, 640, 3)):
        rng = np.random.default_rng(seed)
        return rng.integers(0, 256, size=shape, dtype=np.uint8)
    return make


@pytest.fixture
def blank_photo():
    return np.full((600, 800, 3), 255, dtype=np.uint8)


@pytest.fixture
def permissive_liveness_config():
    """Thresholds every non-degenerate selfie pair passes."""
    from layer4_liveness import LivenessConfig
    return LivenessConfig(
        min_blur_coefficient=0.0,
        max_blur_coefficient=float('inf'),
        min_quality=0.0,
        brightness_tolerance=255.0,
        min_histogram_correlation=-1.0,
        max_moire_percentage=100.0,
    )


@pytest.fixture
def make_app(reference_date, permissive_liveness_config):
    """
    Factory for a Flask app wired to fake engines.

    The locator, decoders and liveness battery are the real ones.
    """
    from app import create_app
    from config import ServiceConfig
    from coordinator import ScannerCoordinator
    from layer2_readjustment import RegionLocator
    from layer3_mrz import MRZDecoder, MRZExtractor
    from layer3_pdf417 import PDF417Extractor
    from layer4_liveness import LivenessEvaluator

    def make(ocr_text="", payloads=(None,), faces=(None,), liveness_config=None, **config):
        locator = RegionLocator()
        coordinator = ScannerCoordinator(
            mrz_extractor=MRZExtractor(
                FakeOCR(ocr_text), locator, MRZDecoder(reference_date=reference_date)
            ),
            pdf417_extractor=PDF417Extractor(FakeBarcodeReader(*payloads), locator),
            face_detector=FakeFaceDetector(*faces),
            liveness_evaluator=LivenessEvaluator(liveness_config or permissive_liveness_config),
        )
        flask_app = create_app(coordinator=coordinator, config=ServiceConfig(**config))
        flask_app.config['TESTING'] = True
        return flask_app
    return make


@pytest.fixture
def app(make_app, mrz_text):
    """Create Flask test application (MRZ readable, no barcode, no faces)."""
    return make_app(ocr_text=mrz_text)


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def png_upload():
    """Factory for multipart file tuples holding a PNG encoded image."""
    import io

    def make(image, filename='photo.png'):
        return (io.BytesIO(encode_png(image)), filename)
    return make
