"""
Service configuration
Environment-driven settings for the scanning service
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass
class ServiceConfig:
    """Deployment settings; algorithm thresholds live beside their layers."""
    tessdata_path: Optional[str] = "models/"  # Directory containing mrz.traineddata
    ocr_language: str = "mrz"
    face_cascade_path: Optional[str] = None
    max_image_bytes: int = 10 * 1024 * 1024
    log_level: str = "INFO"
    mrz_prefix: str = "IDARG"
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """
        Build settings from environment variables

        Args:
            environ: Mapping to read (os.environ if None)

        Returns:
            ServiceConfig: Settings with defaults for unset variables
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            tessdata_path=env.get('TESSDATA_PATH', defaults.tessdata_path) or None,
            ocr_language=env.get('OCR_LANGUAGE', defaults.ocr_language),
            face_cascade_path=env.get('FACE_CASCADE_PATH') or None,
            max_image_bytes=int(env.get('MAX_IMAGE_BYTES', defaults.max_image_bytes)),
            log_level=env.get('LOG_LEVEL', defaults.log_level).upper(),
            mrz_prefix=env.get('MRZ_PREFIX', defaults.mrz_prefix),
            host=env.get('HOST', defaults.host),
            port=int(env.get('PORT', defaults.port)),
        )
