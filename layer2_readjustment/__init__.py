"""
Layer 2 — Image Readjustment
Locates and rectifies MRZ strips and PDF417 blobs
"""
from .processor import RegionLocator, MRZLocatorConfig, PDF417LocatorConfig

__all__ = ['RegionLocator', 'MRZLocatorConfig', 'PDF417LocatorConfig']
