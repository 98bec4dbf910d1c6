"""Presentation helpers for estimation results.

Handles:
- Confidence / reliability bucketing for badge styling
- Display formatting of instants and source lists
- JSON-serializable rendering of an EstimationResult for the API
"""
from datetime import datetime
import json
from typing import Optional, Sequence

from whereshot.lib.geo import degrees_to_cardinal, format_coordinates
from whereshot.lib.metadata import format_camera_name, format_full_camera_info
from whereshot.models import CameraInfo, EstimationResult, GPSInfo, SecurityAnalysis, TimestampCandidate

HIGH_BUCKET_THRESHOLD = 0.8
MEDIUM_BUCKET_THRESHOLD = 0.6


def confidence_bucket(value: float) -> str:
    """Bucket a confidence or reliability value: high (>=0.8), medium (>=0.6), low."""
    if value >= HIGH_BUCKET_THRESHOLD:
        return 'high'
    if value >= MEDIUM_BUCKET_THRESHOLD:
        return 'medium'
    return 'low'


def format_datetime(dt: Optional[datetime]) -> str:
    """Format an instant for display, '-' when missing."""
    if dt is None:
        return '-'
    return dt.strftime('%Y/%m/%d %H:%M:%S')


def format_sources(sources: Sequence[TimestampCandidate]) -> list[dict]:
    """
    Format candidates for the source list.

    Returns:
        List of dicts:
        [
            {
                'description': 'ファイル名 (IMG_YYYYMMDD_HHMMSS) (時間付き)',
                'date': '2023/06/15 14:30:00',
                'reliability': '95%',
                'bucket': 'high',
                'type': 'filename_pattern',
                'matched_text': 'IMG_20230615_143000'
            },
            ...
        ]
    """
    return [
        {
            'description': source.description + (' (時間付き)' if source.has_time else ' (日付のみ)'),
            'date': format_datetime(source.instant),
            'reliability': f"{round(source.reliability * 100)}%",
            'bucket': confidence_bucket(source.reliability),
            'type': source.source_kind.value,
            'matched_text': source.matched_text or '',
        }
        for source in sources
    ]


def _candidate_to_dict(candidate: TimestampCandidate) -> dict:
    return {
        'type': candidate.source_kind.value,
        'instant': candidate.instant.isoformat(),
        'reliability': candidate.reliability,
        'has_time': candidate.has_time,
        'description': candidate.description,
        'matched_text': candidate.matched_text,
        'pattern': candidate.pattern,
    }


def _gps_to_dict(gps: GPSInfo) -> dict:
    return {
        'latitude': gps.latitude,
        'longitude': gps.longitude,
        'altitude': gps.altitude,
        'img_direction': gps.img_direction,
        'img_direction_cardinal': (
            degrees_to_cardinal(gps.img_direction) if gps.img_direction is not None else None
        ),
        'formatted': format_coordinates(gps.latitude, gps.longitude),
    }


def _camera_to_dict(camera: CameraInfo, include_sensitive: bool) -> dict:
    payload = {
        'make': camera.make,
        'model': camera.model,
        'software': camera.software,
        'lens': camera.lens,
        'formatted': {
            'camera': format_camera_name(camera.make, camera.model),
            'full_info': format_full_camera_info(camera),
        },
    }
    if include_sensitive:
        payload['serial'] = camera.serial
        payload['lens_serial'] = camera.lens_serial
    return payload


def _security_to_dict(security: SecurityAnalysis) -> dict:
    return {
        'privacy_risk': security.privacy_risk.value,
        'has_gps': security.has_gps,
        'has_personal_info': security.has_personal_info,
        'has_camera_serial': security.has_camera_serial,
        'has_timestamp': security.has_timestamp,
        'warnings': list(security.warnings),
        'recommendations': list(security.recommendations),
    }


def result_to_dict(result: EstimationResult, include_sensitive: bool = True) -> dict:
    """
    Render an EstimationResult as a JSON-serializable dict.

    Args:
        result: Estimation output
        include_sensitive: When False, GPS and camera/lens serial numbers
                           are left out
    """
    analysis = result.analysis

    payload = {
        'best_estimate': result.best_estimate.isoformat() if result.best_estimate else None,
        'best_estimate_formatted': format_datetime(result.best_estimate),
        'confidence': result.confidence,
        'confidence_percent': round(result.confidence * 100),
        'confidence_bucket': confidence_bucket(result.confidence),
        'sources': [_candidate_to_dict(s) for s in result.sources],
        'sources_formatted': format_sources(result.sources),
        'analysis': {
            'consistency': analysis.consistency.value,
            'agreement_ratio': analysis.agreement_ratio,
            'has_time_info': analysis.has_time_info,
            'conflicts': [
                {
                    'source1': conflict.first.description,
                    'source2': conflict.second.description,
                    'difference_seconds': conflict.abs_difference.total_seconds(),
                    'difference_formatted': conflict.difference_formatted,
                }
                for conflict in analysis.conflicts
            ],
        },
        'warnings': [
            {
                'type': warning.kind,
                'message': warning.message,
                'severity': warning.severity.value,
            }
            for warning in result.warnings
        ],
        'timezone_offset': result.timezone_offset,
        'gps': None,
        'camera': None,
        'security': None,
    }

    if result.gps is not None and include_sensitive:
        payload['gps'] = _gps_to_dict(result.gps)
    if result.camera is not None:
        payload['camera'] = _camera_to_dict(result.camera, include_sensitive)
    if result.security is not None:
        payload['security'] = _security_to_dict(result.security)

    return payload


def export_result_json(result: EstimationResult, include_sensitive: bool = False) -> str:
    """Indented JSON export of a result; sensitive fields are left out by default."""
    return json.dumps(result_to_dict(result, include_sensitive), ensure_ascii=False, indent=2)
