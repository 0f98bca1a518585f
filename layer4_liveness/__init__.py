"""
Layer 4 — Liveness
Selfie-pair liveness battery: zoom, sharpness, quality, exposure, histogram and moiré checks
"""
from .evaluator import LivenessEvaluator, LivenessConfig, LivenessResult, LivenessStatus
from .moire import MoirePatternAnalyzer
from .quality import QualityAssessor, ImageStatistics

__all__ = [
    'LivenessEvaluator',
    'LivenessConfig',
    'LivenessResult',
    'LivenessStatus',
    'MoirePatternAnalyzer',
    'QualityAssessor',
    'ImageStatistics',
]
