"""Application configuration module.

Provides configuration classes for different environments with pathlib-based
paths and environment-variable overrides.
"""
import logging
import os
from pathlib import Path


# Base directories using pathlib
BASE_DIR = Path(__file__).parent.absolute()
STORAGE_DIR = BASE_DIR / 'storage'


class Config:
    """Base configuration with common settings."""

    # Flask secret key
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Uploaded photos are kept only while they are analyzed
    UPLOAD_FOLDER = Path(os.environ['UPLOAD_DIR']) if os.environ.get('UPLOAD_DIR') else STORAGE_DIR / 'uploads'
    MAX_CONTENT_LENGTH = 100 * 1024 * 1024  # 100 MB per request
    ALLOWED_EXTENSIONS = {
        'jpg', 'jpeg', 'png', 'heic', 'heif', 'tif', 'tiff', 'webp',  # Images
        'dng', 'cr2', 'nef', 'arw',                                    # RAW
    }

    # ExifTool binary (system default or override)
    EXIFTOOL_PATH = os.environ.get('EXIFTOOL_PATH', 'exiftool')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    @classmethod
    def validate_log_level(cls):
        """Validate LOG_LEVEL against the logging module's level names."""
        if not isinstance(logging.getLevelName(cls.LOG_LEVEL), int):
            raise ValueError(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}'")
        return True


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG').upper()


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False


class TestingConfig(Config):
    """Test configuration (uploads go to a throwaway directory set by the fixture)."""

    TESTING = True
    DEBUG = False


# Configuration dictionary for easy lookup
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
