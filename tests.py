"""
Tests for the document scanner Flask application and its wiring.
"""
import io
import json
import logging
import pytest

import numpy as np

from config import ServiceConfig
from coordinator import ScannerCoordinator
from error_handlers import MRZChecksumError, handle_error
from layer1_imaging import Rectangle
from layer2_readjustment import RegionLocator
from layer3_mrz import MRZDecoder, MRZExtractor
from layer3_pdf417 import PDF417Extractor

BASE_FACE = Rectangle(200, 150, 100, 100)
ZOOMED_FACE = Rectangle(150, 100, 200, 200)


def post_files(client, url, **files):
    return client.post(url, data=files, content_type='multipart/form-data')


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_returns_ok(self, client):
        """Test /health returns OK status."""
        response = client.get('/health')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['service'] == 'document-scanner'

    def test_cors_enabled(self, client):
        """Test cross-origin requests are allowed."""
        response = client.get('/health', headers={'Origin': 'http://frontend.example.com'})
        assert response.headers.get('Access-Control-Allow-Origin') == '*'

    def test_cors_wildcard_not_echoed(self, client):
        """Test the wildcard is sent instead of the caller's origin."""
        for origin in ('http://kiosk.example.com', 'https://other.example.org'):
            response = client.get('/api/status', headers={'Origin': origin})
            assert response.headers.get('Access-Control-Allow-Origin') == '*'

    def test_status_lists_endpoints(self, client):
        """Test /api/status describes the service."""
        data = json.loads(client.get('/api/status').data)
        assert data['success'] is True
        assert data['endpoints']['verify_liveness'] == '/api/verify_liveness'


class TestScanMRZEndpoint:
    """Test MRZ scanning endpoint."""

    def test_requires_image(self, client):
        """Test a request without an image is rejected."""
        response = post_files(client, '/api/scan_mrz_data')
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['success'] is False
        assert data['error_code'] == 'NO_IMAGE'

    def test_rejects_undecodable_image(self, client):
        """Test bytes that are not an image are rejected."""
        response = post_files(client, '/api/scan_mrz_data', image=(io.BytesIO(b'not an image'), 'x.png'))
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_IMAGE'

    def test_rejects_large_image(self, make_app, png_upload, blank_photo):
        """Test uploads above the configured size are rejected."""
        client = make_app(max_image_bytes=10).test_client()
        response = post_files(client, '/api/scan_mrz_data', image=png_upload(blank_photo))
        assert response.status_code == 413
        assert json.loads(response.data)['error_code'] == 'IMAGE_TOO_LARGE'

    def test_oversized_body_refused_unread(self, make_app, png_upload, noise_image):
        """Test a body above the request limit is refused before parsing."""
        flask_app = make_app(max_image_bytes=1000)
        assert flask_app.config['MAX_CONTENT_LENGTH'] == 2000 + 64 * 1024
        response = post_files(flask_app.test_client(), '/api/scan_mrz_data',
                              image=png_upload(noise_image(3)))
        assert response.status_code == 413
        data = json.loads(response.data)
        assert data['success'] is False
        assert data['error_code'] == 'IMAGE_TOO_LARGE'

    def test_returns_fields(self, client, png_upload, blank_photo):
        """Test a readable MRZ returns the raw code and the fields."""
        response = post_files(client, '/api/scan_mrz_data', image=png_upload(blank_photo))
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['success'] is True
        assert len(data['raw']) == 90
        assert data['information']['document_number'] == 34567890
        assert data['information']['last_name'] == 'Perez'
        assert data['information']['birth_date'] == '1985-03-15'

    def test_no_mrz(self, make_app, png_upload, blank_photo):
        """Test empty OCR output is a 422 with a named code."""
        client = make_app(ocr_text='').test_client()
        response = post_files(client, '/api/scan_mrz_data', image=png_upload(blank_photo))
        assert response.status_code == 422
        assert json.loads(response.data)['error_code'] == 'MRZ_NOT_FOUND'


class TestScanBarcodeEndpoint:
    """Test PDF417 scanning endpoint."""

    def test_returns_fields(self, make_app, png_upload, blank_photo, schema_a_payload):
        """Test a decoded payload returns the parsed fields."""
        client = make_app(payloads=(schema_a_payload,)).test_client()
        response = post_files(client, '/api/scan_barcode_data', image=png_upload(blank_photo))
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['raw'] == schema_a_payload
        assert data['information']['national_identification_number'] == 123456789
        assert data['information']['expiration_date'] is None

    def test_no_barcode(self, client, png_upload, blank_photo):
        """Test a photo without a barcode is a 422."""
        response = post_files(client, '/api/scan_barcode_data', image=png_upload(blank_photo))
        assert response.status_code == 422
        assert json.loads(response.data)['error_code'] == 'BARCODE_NOT_FOUND'

    def test_unrecognized_payload(self, make_app, png_upload, blank_photo):
        """Test an unknown payload reports the schema error."""
        client = make_app(payloads=('garbage',)).test_client()
        response = post_files(client, '/api/scan_barcode_data', image=png_upload(blank_photo))
        data = json.loads(response.data)
        assert response.status_code == 422
        assert data['error'] == 'Unrecognized pdf417 type'


class TestScanDocumentEndpoint:
    """Test combined document scanning endpoint."""

    def test_requires_a_side(self, client):
        """Test a request without either side is rejected."""
        response = post_files(client, '/api/scan_document_data')
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'NO_IMAGE'

    def test_mrz_from_back(self, client, png_upload, blank_photo):
        """Test the MRZ is used when no barcode is found."""
        response = post_files(client, '/api/scan_document_data', documentBack=png_upload(blank_photo))
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['type'] == 'MRZ'
        assert data['information']['expiration_date'] == '2031-05-20'

    def test_barcode_preferred(self, make_app, mrz_text, png_upload, blank_photo, schema_b_payload):
        """Test the barcode wins when both could be read."""
        client = make_app(ocr_text=mrz_text, payloads=(schema_b_payload,)).test_client()
        response = post_files(client, '/api/scan_document_data',
                              documentFront=png_upload(blank_photo),
                              documentBack=png_upload(blank_photo))
        data = json.loads(response.data)
        assert data['type'] == 'PDF417'
        assert data['raw'] == schema_b_payload

    def test_unreadable(self, make_app, png_upload, blank_photo):
        """Test a document with neither barcode nor MRZ is a 422."""
        client = make_app(ocr_text='').test_client()
        response = post_files(client, '/api/scan_document_data',
                              documentFront=png_upload(blank_photo),
                              documentBack=png_upload(blank_photo))
        assert response.status_code == 422
        assert json.loads(response.data)['error_code'] == 'DOCUMENT_NOT_READABLE'


class TestVerifyLivenessEndpoint:
    """Test liveness endpoint."""

    def test_requires_both_pictures(self, client, png_upload, noise_image):
        """Test the zoomed picture is mandatory."""
        response = post_files(client, '/api/verify_liveness', picture=png_upload(noise_image(1)))
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'NO_IMAGE'

    def test_live_pair(self, make_app, png_upload, noise_image):
        """Test a pair passing every check reports liveness."""
        client = make_app(faces=(BASE_FACE, ZOOMED_FACE)).test_client()
        response = post_files(client, '/api/verify_liveness',
                              picture=png_upload(noise_image(1)),
                              zoomedPicture=png_upload(noise_image(2)))
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['liveness'] is True
        assert 'status' not in data

    def test_no_face(self, client, png_upload, noise_image):
        """Test a failed check is a successful request with a status code."""
        response = post_files(client, '/api/verify_liveness',
                              picture=png_upload(noise_image(1)),
                              zoomedPicture=png_upload(noise_image(2)))
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['liveness'] is False
        assert data['status'] == 1


class TestUnexpectedErrors:
    """Test unexpected failures are reported, not raised."""

    def test_internal_error(self, png_upload, blank_photo):
        """Test an engine crash becomes a 500 response."""
        from app import create_app

        class BrokenCoordinator:
            def scan_mrz(self, image):
                raise RuntimeError("engine crashed")

        flask_app = create_app(coordinator=BrokenCoordinator(), config=ServiceConfig())
        flask_app.config['TESTING'] = True
        response = post_files(flask_app.test_client(), '/api/scan_mrz_data', image=png_upload(blank_photo))
        assert response.status_code == 500
        data = json.loads(response.data)
        assert data['error_code'] == 'UNEXPECTED_ERROR'
        assert data['details']['error_type'] == 'RuntimeError'


class TestScannerCoordinator:
    """Test the scan order of the coordinator."""

    @pytest.fixture
    def build(self, fakes, reference_date):
        def make(ocr, reader):
            locator = RegionLocator()
            return ScannerCoordinator(
                mrz_extractor=MRZExtractor(ocr, locator, MRZDecoder(reference_date=reference_date)),
                pdf417_extractor=PDF417Extractor(reader, locator),
                face_detector=fakes.FaceDetector(),
            )
        return make

    def test_barcode_front_then_back(self, build, fakes, schema_a_payload):
        """Test the back is tried for a barcode after the front."""
        front = np.full((300, 400, 3), 255, dtype=np.uint8)
        back = np.full((320, 420, 3), 255, dtype=np.uint8)
        reader = fakes.BarcodeReader(None, schema_a_payload)
        result = build(fakes.OCR(''), reader).scan_document(front, back)
        assert result['type'] == 'PDF417'
        assert reader.images[0] is front
        assert reader.images[1] is back

    def test_mrz_back_then_front(self, build, fakes, mrz_text):
        """Test the MRZ is read from the back first."""
        front = np.full((300, 400, 3), 255, dtype=np.uint8)
        back = np.full((320, 420, 3), 255, dtype=np.uint8)
        ocr = fakes.OCR(mrz_text)
        result = build(ocr, fakes.BarcodeReader(None)).scan_document(front, back)
        assert result['type'] == 'MRZ'
        assert ocr.images[0].shape == (320, 420)

    def test_from_config(self):
        """Test the production engines can be wired from settings."""
        from engines import TesseractOCR

        coordinator = ScannerCoordinator.from_config(ServiceConfig(mrz_prefix="IDCHL"))
        assert isinstance(coordinator.mrz_extractor.ocr_engine, TesseractOCR)
        assert coordinator.mrz_extractor.decoder.config.prefix == "IDCHL"

    def test_missing_front(self, build, fakes, mrz_text):
        """Test a single side is enough."""
        back = np.full((320, 420, 3), 255, dtype=np.uint8)
        result = build(fakes.OCR(mrz_text), fakes.BarcodeReader(None)).scan_document(None, back)
        assert result['information']['first_name'] == 'Juan Carlos'


class TestServiceConfig:
    """Test environment configuration."""

    def test_defaults(self):
        """Test an empty environment gives the defaults."""
        config = ServiceConfig.from_env({})
        assert config == ServiceConfig()

    def test_overrides(self):
        """Test variables override the defaults with the right types."""
        config = ServiceConfig.from_env({
            'TESSDATA_PATH': '',
            'PORT': '8080',
            'LOG_LEVEL': 'debug',
            'MAX_IMAGE_BYTES': '2048',
            'MRZ_PREFIX': 'IDCHL',
        })
        assert config.tessdata_path is None
        assert config.port == 8080
        assert config.log_level == 'DEBUG'
        assert config.max_image_bytes == 2048
        assert config.mrz_prefix == 'IDCHL'


class TestErrorHandlers:
    """Test error serialization."""

    def test_known_error(self):
        """Test a scanner error serializes its code and details."""
        data = handle_error(MRZChecksumError("birth_date", "0", "1"))
        assert data['success'] is False
        assert data['error_code'] == 'BIRTH_DATE_CHECKSUM_FAILED'
        assert data['details']['expected'] == '0'

    def test_unexpected_error(self):
        """Test a foreign exception is wrapped."""
        data = handle_error(ValueError("boom"))
        assert data['error_code'] == 'UNEXPECTED_ERROR'
        assert data['details']['error_message'] == 'boom'

    def test_known_error_is_logged(self, caplog):
        """Test the error code is logged once per handled error."""
        with caplog.at_level(logging.ERROR, logger='error_handlers'):
            handle_error(MRZChecksumError("composite", "4", "7"))
        messages = [record.getMessage() for record in caplog.records]
        assert messages == ['COMPOSITE_CHECKSUM_FAILED: MRZ composite checksum failed']


class TestEngines:
    """Test production engine wiring that needs no external binaries."""

    def test_tesseract_config(self, tmp_path):
        """Test the Tesseract option string."""
        from engines import TesseractOCR

        ocr = TesseractOCR(tessdata_path=str(tmp_path), language='mrz')
        options = ocr.tesseract_config
        assert f"--tessdata-dir {tmp_path}" in options
        assert "--psm 6" in options
        assert "tessedit_char_whitelist=" in options

    def test_opencv_ships_haar_cascades(self):
        """Test the installed OpenCV still provides the cascade classifier."""
        import cv2

        assert hasattr(cv2, 'CascadeClassifier')
        assert int(cv2.__version__.split('.')[0]) == 4

    def test_face_detector_on_blank_image(self):
        """Test no face is found in a blank image."""
        from engines import CascadeFaceDetector

        detector = CascadeFaceDetector()
        assert detector.detect(np.full((240, 320, 3), 255, dtype=np.uint8)) is None

    def test_face_detector_bad_cascade(self, tmp_path):
        """Test a missing cascade file is reported."""
        from engines import CascadeFaceDetector

        with pytest.raises(ValueError):
            CascadeFaceDetector(str(tmp_path / 'missing.xml'))
