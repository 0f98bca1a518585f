"""
Error Handling System
Provides consistent error responses across all layers
"""
import logging

logger = logging.getLogger(__name__)


class ScannerError(Exception):
    """Base exception for scanner errors"""
    def __init__(self, message, error_code, details=None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert error to JSON-serializable dict"""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class InvalidImageError(ScannerError):
    """Uploaded bytes could not be decoded as an image"""
    def __init__(self, field_name, reason=None):
        super().__init__(
            message=f"Could not decode image from '{field_name}'",
            error_code="INVALID_IMAGE",
            details={
                "field": field_name,
                "reason": reason,
                "suggestion": "Upload a JPEG or PNG photo"
            }
        )


# Layer 3 Errors - MRZ Decoding
class MRZError(ScannerError):
    """MRZ decoding errors"""
    pass


class MRZNotFoundError(MRZError):
    """No usable MRZ text was recovered"""
    def __init__(self, reason=None):
        super().__init__(
            message="No MRZ data found in the image",
            error_code="MRZ_NOT_FOUND",
            details={
                "reason": reason,
                "suggestion": "Ensure the MRZ area is clearly visible and in focus"
            }
        )


class MRZLayoutError(MRZError):
    """Text present but does not fit the 3x30 layout"""
    def __init__(self, reason):
        super().__init__(
            message=f"Unrecognized MRZ layout: {reason}",
            error_code="MRZ_UNRECOGNIZED_LAYOUT",
            details={
                "reason": str(reason),
                "suggestion": "Retake the photo with the whole MRZ inside the frame"
            }
        )


class MRZChecksumError(MRZError):
    """A check digit does not match its field"""

    FIELD_CODES = {
        "document": "DOCUMENT_CHECKSUM_FAILED",
        "birth_date": "BIRTH_DATE_CHECKSUM_FAILED",
        "expiration_date": "EXPIRATION_DATE_CHECKSUM_FAILED",
        "composite": "COMPOSITE_CHECKSUM_FAILED",
    }

    def __init__(self, field, expected, found):
        self.field = field
        super().__init__(
            message=f"MRZ {field.replace('_', ' ')} checksum failed",
            error_code=self.FIELD_CODES[field],
            details={
                "field": field,
                "expected": expected,
                "found": found,
                "suggestion": "Check image quality and lighting"
            }
        )


class UnexpectedCharacterError(MRZError):
    """Character outside the expected class that cannot be corrected"""
    def __init__(self, position, character):
        self.position = position
        self.character = character
        super().__init__(
            message=f"Unexpected character {character!r} at position {position}",
            error_code="UNEXPECTED_CHARACTER",
            details={
                "position": position,
                "character": character,
                "suggestion": "Check image quality and lighting"
            }
        )


# Layer 3 Errors - PDF417 Parsing
class BarcodeError(ScannerError):
    """PDF417 decoding / parsing errors"""
    pass


class BarcodeNotFoundError(BarcodeError):
    """No PDF417 payload could be decoded"""
    def __init__(self):
        super().__init__(
            message="Barcode data could not be read",
            error_code="BARCODE_NOT_FOUND",
            details={
                "suggestion": "Ensure the barcode is fully visible, flat and in focus"
            }
        )


class UnrecognizedSchemaError(BarcodeError):
    """Payload matches no known field layout"""
    def __init__(self, payload=None):
        super().__init__(
            message="Unrecognized pdf417 type",
            error_code="PDF417_UNRECOGNIZED_SCHEMA",
            details={
                "field_count": len(payload.split("@")) if payload else 0,
                "suggestion": "Only national identity card barcodes are supported"
            }
        )


class BarcodeFormatError(BarcodeError):
    """A field matched the schema but could not be converted"""
    def __init__(self, field, value):
        super().__init__(
            message=f"Invalid value for pdf417 field '{field}'",
            error_code="PDF417_INVALID_FIELD",
            details={
                "field": field,
                "value": value,
            }
        )


class DocumentNotReadableError(ScannerError):
    """Neither barcode nor MRZ could be read from the document"""
    def __init__(self):
        super().__init__(
            message="Document data could not be read",
            error_code="DOCUMENT_NOT_READABLE",
            details={
                "suggestion": "Upload clear photos of both sides of the document"
            }
        )


# Error response helpers
def handle_error(error):
    """
    Handle error consistently across the application

    Args:
        error: Exception that occurred

    Returns:
        dict: Error response for JSON serialization
    """
    if isinstance(error, ScannerError):
        # Known scanner error
        logger.error(f"{error.error_code}: {error.message}")
        if error.details:
            logger.debug(f"Error details: {error.details}")
        return error.to_dict()
    else:
        # Unexpected error
        logger.error(f"Unexpected error: {error}")
        logger.exception("Full traceback:")
        return {
            "success": False,
            "error": "An unexpected error occurred",
            "error_code": "UNEXPECTED_ERROR",
            "details": {
                "error_type": type(error).__name__,
                "error_message": str(error)
            }
        }
