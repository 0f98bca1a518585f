"""
Identity Document Scanner / Liveness Microservice
Thin Flask surface over the layered scanning system.

Provides REST API for:
- Document data from PDF417 barcodes or MRZ (front / back photos)
- MRZ-only and barcode-only reads
- Selfie-pair liveness verification
"""
from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge
import cv2
import logging
import numpy as np

from config import ServiceConfig
from coordinator import ScannerCoordinator

# Import error handling
from error_handlers import (
    ScannerError,
    InvalidImageError,
    handle_error
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "document-scanner"
SERVICE_VERSION = "1.0.0"

# Multipart framing allowance on top of the image bytes
MULTIPART_OVERHEAD = 64 * 1024


class UploadError(Exception):
    """Request-level upload problem answered before any scanning starts"""
    def __init__(self, status_code, error_code, message):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        super().__init__(message)


def configure_logging(level):
    """Setup logging"""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def read_upload(field_name, max_bytes, required=True):
    """
    Decode an uploaded image field

    Args:
        field_name: multipart field holding the image
        max_bytes: Largest accepted upload
        required: Raise when the field is missing

    Returns:
        numpy.ndarray or None: BGR image, None for a missing optional field
    """
    image_file = request.files.get(field_name)
    if image_file is None or image_file.filename == '':
        if required:
            raise UploadError(400, "NO_IMAGE", f"No image file provided in '{field_name}'")
        return None

    data = image_file.read()
    if len(data) > max_bytes:
        raise UploadError(413, "IMAGE_TOO_LARGE", f"Image '{field_name}' exceeds {max_bytes} bytes")
    if not data:
        raise InvalidImageError(field_name, "empty upload")

    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise InvalidImageError(field_name, "not a supported image format")
    logger.debug(f"Decoded '{field_name}' - Shape: {image.shape}")
    return image


def create_app(coordinator=None, config=None):
    """
    Build the Flask application

    Args:
        coordinator: ScannerCoordinator (production engines if None)
        config: ServiceConfig (from environment if None)

    Returns:
        Flask: Configured application
    """
    config = config or ServiceConfig.from_env()
    configure_logging(config.log_level)

    logger.info("Starting application initialization")
    scanner = coordinator or ScannerCoordinator.from_config(config)

    app = Flask(__name__)
    # Enable CORS for cross-origin requests from client apps
    CORS(app, origins="*", send_wildcard=True)
    # Two uploads per request at most; larger bodies are refused unread
    app.config['MAX_CONTENT_LENGTH'] = 2 * config.max_image_bytes + MULTIPART_OVERHEAD
    app.config['SCANNER'] = scanner
    app.config['SERVICE_CONFIG'] = config

    def run(action, operation):
        """Execute a request and map failures to JSON error responses"""
        try:
            result = operation()
            logger.info(f"{action} successful")
            return jsonify({"success": True, **result})

        except UploadError as e:
            logger.warning(f"{action} rejected: {e.message}")
            return jsonify({
                "success": False,
                "error": e.message,
                "error_code": e.error_code
            }), e.status_code

        except RequestEntityTooLarge:
            logger.warning(f"{action} rejected: request body too large")
            return jsonify({
                "success": False,
                "error": f"Request exceeds {app.config['MAX_CONTENT_LENGTH']} bytes",
                "error_code": "IMAGE_TOO_LARGE"
            }), 413

        except InvalidImageError as e:
            return jsonify(handle_error(e)), 400

        except ScannerError as e:
            logger.info(f"{action} failed with known error")
            return jsonify(handle_error(e)), 422

        except Exception as e:
            logger.error(f"Unexpected error during {action}: {e}")
            return jsonify(handle_error(e)), 500

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint for service discovery and load balancers"""
        return jsonify({
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION
        })

    @app.route("/api/status", methods=["GET"])
    def api_status():
        """Get service status and capabilities"""
        return jsonify({
            "success": True,
            "tessdata_path": config.tessdata_path,
            "ocr_language": config.ocr_language,
            "max_image_bytes": config.max_image_bytes,
            "endpoints": {
                "health": "/health",
                "scan_document_data": "/api/scan_document_data",
                "scan_mrz_data": "/api/scan_mrz_data",
                "scan_barcode_data": "/api/scan_barcode_data",
                "verify_liveness": "/api/verify_liveness"
            }
        })

    @app.route("/api/scan_document_data", methods=["POST"])
    def scan_document_data():
        """
        Read document data from front and back photos.

        Request:
            - multipart/form-data with 'documentFront' and/or 'documentBack'

        Response:
            {"success": true, "type": "PDF417" | "MRZ", "raw": "...", "information": {...}}
        """
        logger.info("Document scan request received")

        def operation():
            front = read_upload('documentFront', config.max_image_bytes, required=False)
            back = read_upload('documentBack', config.max_image_bytes, required=False)
            if front is None and back is None:
                raise UploadError(400, "NO_IMAGE", "No document images provided")
            return scanner.scan_document(front, back)

        return run("Document scan", operation)

    @app.route("/api/scan_mrz_data", methods=["POST"])
    def scan_mrz_data():
        """Read the MRZ from the 'image' upload"""
        logger.info("MRZ scan request received")
        return run("MRZ scan", lambda: scanner.scan_mrz(
            read_upload('image', config.max_image_bytes)
        ))

    @app.route("/api/scan_barcode_data", methods=["POST"])
    def scan_barcode_data():
        """Read the PDF417 barcode from the 'image' upload"""
        logger.info("Barcode scan request received")
        return run("Barcode scan", lambda: scanner.scan_barcode(
            read_upload('image', config.max_image_bytes)
        ))

    @app.route("/api/verify_liveness", methods=["POST"])
    def verify_liveness():
        """
        Verify a selfie pair.

        Request:
            - multipart/form-data with 'picture' and 'zoomedPicture'

        Response:
            {"success": true, "liveness": bool, "status": int (on failure)}
        """
        logger.info("Liveness request received")

        def operation():
            picture = read_upload('picture', config.max_image_bytes)
            zoomed_picture = read_upload('zoomedPicture', config.max_image_bytes)
            return scanner.verify_liveness(picture, zoomed_picture)

        return run("Liveness verification", operation)

    return app


if __name__ == '__main__':
    service_config = ServiceConfig.from_env()
    app = create_app(config=service_config)
    logger.info("Flask server starting")
    app.run(host=service_config.host, port=service_config.port, threaded=True)
