"""API routes for date-time estimation.

Provides endpoints for:
- Estimating from already-extracted signals (POST /api/estimate)
- Uploading a photo for full analysis (POST /api/analyze)
- Health check (GET /api/health)
"""
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
import logging
import uuid

from flask import Blueprint, jsonify, request, current_app
from werkzeug.utils import secure_filename

from whereshot.lib.confidence import estimate_from_filename, EstimationInputError
from whereshot.lib.export import result_to_dict
from whereshot.lib.metadata import parse_exif_datetime
from whereshot.lib.processing import analyze_file
from whereshot.models import GPSInfo, MetadataSignals

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')


def allowed_file(filename: str) -> bool:
    """
    Check if file extension is allowed.

    Args:
        filename: Name of the file to check

    Returns:
        True if extension is in ALLOWED_EXTENSIONS
    """
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']


def parse_instant(value: Any) -> Optional[datetime]:
    """
    Parse an instant supplied by an API client.

    Accepts EXIF strings ("2024:01:15 12:00:00"), ISO 8601 strings and
    epoch seconds. Returns None when the value cannot be interpreted.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value)
        except (ValueError, OverflowError, OSError):
            return None
    if not isinstance(value, str):
        return None

    dt = parse_exif_datetime(value)
    if dt is not None:
        return dt

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def include_sensitive_arg() -> bool:
    """Read the include_sensitive query arg; anything but false/0/no keeps sensitive fields."""
    value = request.args.get('include_sensitive', 'true')
    return value.strip().lower() not in ('false', '0', 'no')


def _optional_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def metadata_from_json(data: dict) -> MetadataSignals:
    """Build MetadataSignals from a request body; bad fields are dropped."""
    fields = {}
    for name in ('original', 'digitized', 'modified'):
        if data.get(name) is None:
            continue
        dt = parse_instant(data[name])
        if dt is None:
            logger.debug(f"Ignoring unparseable metadata.{name}: {data[name]!r}")
            continue
        if dt.tzinfo is not None:
            dt = dt.replace(tzinfo=None)  # wall-clock kept, offset is display-only
        fields[name] = dt

    offset = data.get('timezone_offset')
    if not isinstance(offset, str):
        offset = None

    gps = None
    gps_data = data.get('gps')
    if isinstance(gps_data, dict):
        gps = GPSInfo(
            latitude=_optional_float(gps_data.get('latitude')),
            longitude=_optional_float(gps_data.get('longitude')),
            altitude=_optional_float(gps_data.get('altitude')),
            img_direction=_optional_float(gps_data.get('img_direction')),
        )

    return MetadataSignals(timezone_offset=offset, gps=gps, **fields)


@api_bp.route('/estimate', methods=['POST'])
def estimate():
    """
    Estimate capture time from already-extracted signals.

    Request JSON:
        {
            'filename': 'IMG_20230615_143000.jpg',
            'file_mtime': '2023-06-15T20:00:00' or epoch seconds,
            'metadata': {
                'original': '2023:06:15 14:30:00' | null,
                'digitized': ..., 'modified': ...,
                'timezone_offset': '+09:00',
                'gps': {'latitude': 35.6, 'longitude': 139.7}
            }
        }

    Query args:
        include_sensitive: 'false' drops GPS and serial numbers

    Returns:
        JSON: result_to_dict() payload, or {error} with 400 when a required
        field is missing or malformed
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'JSON object body required'}), 400

    filename = data.get('filename')
    if not isinstance(filename, str):
        return jsonify({'error': 'filename is required'}), 400

    metadata_data = data.get('metadata')
    if not isinstance(metadata_data, dict):
        return jsonify({'error': 'metadata object is required'}), 400

    if data.get('file_mtime') is None:
        return jsonify({'error': 'file_mtime is required'}), 400
    file_mtime = parse_instant(data['file_mtime'])
    if file_mtime is None:
        return jsonify({'error': f"file_mtime is not a valid instant: {data['file_mtime']!r}"}), 400

    try:
        result = estimate_from_filename(
            metadata_from_json(metadata_data),
            Path(filename).name,
            file_mtime
        )
    except EstimationInputError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify(result_to_dict(result, include_sensitive_arg()))


@api_bp.route('/analyze', methods=['POST'])
def analyze():
    """
    Analyze an uploaded photo.

    Accepts multipart/form-data with a 'file' field and an optional
    'last_modified' field (epoch milliseconds, as sent by a browser's
    File.lastModified). The upload is deleted after analysis.
    Honours the include_sensitive query arg like /estimate.

    Returns:
        JSON: result_to_dict() payload plus 'filename'
    """
    uploaded = request.files.get('file')
    if uploaded is None or not uploaded.filename:
        return jsonify({'error': 'No file provided'}), 400

    original_name = Path(uploaded.filename).name
    if not allowed_file(original_name):
        return jsonify({'error': f'File type not allowed: {original_name}'}), 400

    file_mtime = None
    last_modified = request.form.get('last_modified')
    if last_modified:
        try:
            file_mtime = datetime.fromtimestamp(int(last_modified) / 1000)
        except (ValueError, OverflowError, OSError):
            return jsonify({'error': f'Invalid last_modified: {last_modified!r}'}), 400

    upload_folder = Path(current_app.config['UPLOAD_FOLDER'])
    safe_name = secure_filename(original_name) or 'upload'
    stored_path = upload_folder / f"{uuid.uuid4().hex}_{safe_name}"

    try:
        uploaded.save(stored_path)
        analysis = analyze_file(
            stored_path,
            file_mtime=file_mtime,
            display_name=original_name,
            exiftool_path=current_app.config['EXIFTOOL_PATH'],
            include_sensitive=include_sensitive_arg()
        )
    finally:
        stored_path.unlink(missing_ok=True)

    if analysis['status'] == 'error':
        logger.error(f"Analysis failed for {original_name}: {analysis['error']}")
        return jsonify({'error': analysis['error'], 'filename': original_name}), 500

    response = analysis['result']
    response['filename'] = original_name
    return jsonify(response)


@api_bp.route('/health', methods=['GET'])
def health():
    """Liveness check."""
    return jsonify({'status': 'ok'})
