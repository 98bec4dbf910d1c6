"""
Library modules for WhereShot.

Filename pattern matching, multi-source date-time reconciliation and the
supporting metadata, privacy, geo and presentation helpers.
"""
from whereshot.lib.timestamp import extract_candidates, get_datetime_from_name, FILENAME_PATTERNS
from whereshot.lib.confidence import (
    estimate_datetime,
    estimate_from_filename,
    EstimationInputError,
    SOURCE_RELIABILITY,
)
from whereshot.lib.metadata import (
    build_metadata_signals,
    extract_camera_info,
    get_metadata_signals,
    parse_exif_datetime,
    perform_security_analysis,
)
from whereshot.lib.export import confidence_bucket, export_result_json, result_to_dict
from whereshot.lib.processing import analyze_file, analyze_files

__all__ = [
    # Filename patterns
    'extract_candidates',
    'get_datetime_from_name',
    'FILENAME_PATTERNS',
    # Reconciliation
    'estimate_datetime',
    'estimate_from_filename',
    'EstimationInputError',
    'SOURCE_RELIABILITY',
    # Metadata extraction
    'build_metadata_signals',
    'extract_camera_info',
    'get_metadata_signals',
    'parse_exif_datetime',
    'perform_security_analysis',
    # Presentation
    'confidence_bucket',
    'export_result_json',
    'result_to_dict',
    # File pipeline
    'analyze_file',
    'analyze_files',
]
