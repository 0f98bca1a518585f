"""
Layer 3 — PDF417 Extraction
Classifies identity-card barcode payloads and extracts typed fields
"""
from .parser import PDF417Parser, PDF417Extractor, classify, SCHEMA_A, SCHEMA_B

__all__ = ['PDF417Parser', 'PDF417Extractor', 'classify', 'SCHEMA_A', 'SCHEMA_B']
