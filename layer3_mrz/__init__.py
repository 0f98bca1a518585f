"""
Layer 3 — MRZ Extraction
Handles MRZ reconstruction, checksum validation and field decoding
"""
from .extractor import MRZDecoder, MRZDecoderConfig, MRZExtractor
from .fields import DocumentFields, format_name, format_number
from .checksum import compute_check_digit

__all__ = [
    'MRZDecoder',
    'MRZDecoderConfig',
    'MRZExtractor',
    'DocumentFields',
    'format_name',
    'format_number',
    'compute_check_digit',
]
