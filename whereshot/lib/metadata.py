"""
EXIF and file metadata extraction.

Wraps PyExifTool to read a photo's tags and maps them onto the
MetadataSignals record consumed by the reconciler: date-time tags, GPS,
camera identity and a privacy report of what the tags reveal.
"""
from datetime import datetime
from pathlib import Path
from typing import Optional, Any
import os
import re
import logging
import exiftool

from whereshot.lib.geo import dms_to_decimal
from whereshot.models import CameraInfo, GPSInfo, MetadataSignals, PrivacyRisk, SecurityAnalysis

logger = logging.getLogger(__name__)


# Path to exiftool executable - use system default or override via environment
EXIFTOOL_PATH = os.environ.get('EXIFTOOL_PATH', 'exiftool')

# Tag -> MetadataSignals field
DATETIME_TAGS = {
    'EXIF:DateTimeOriginal': 'original',   # Original capture time
    'EXIF:CreateDate': 'digitized',        # DateTimeDigitized
    'EXIF:ModifyDate': 'modified',         # IFD0 DateTime
}

OFFSET_TAGS = [
    'EXIF:OffsetTimeOriginal',
    'EXIF:OffsetTime',
]

# "YYYY:MM:DD HH:MM:SS" with optional sub-seconds and offset
EXIF_DATETIME_REGEX = re.compile(
    r'^\s*(\d{4})[:\-](\d{2})[:\-](\d{2})[ T](\d{2}):(\d{2}):(\d{2})(?:\.\d+)?\s*([+-]\d{2}:?\d{2}|Z)?\s*$'
)

# ExifTool's formatted coordinate (without -n): 35 deg 39' 31.20" N
DMS_REGEX = re.compile(
    r'^\s*(\d+(?:\.\d+)?)\s*deg\s*(\d+(?:\.\d+)?)\'\s*(\d+(?:\.\d+)?)"\s*([NSEW])?\s*$',
    re.IGNORECASE
)

# Tag names looked up in any group -> CameraInfo field
CAMERA_TAGS = {
    'make': ('Make',),
    'model': ('Model',),
    'software': ('Software',),
    'lens': ('LensModel', 'LensInfo'),
    'serial': ('SerialNumber', 'BodySerialNumber'),
    'lens_serial': ('LensSerialNumber',),
}

PERSONAL_INFO_TAGS = ('Artist', 'Copyright', 'UserComment')

# Control and non-printing characters
CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')
# Anything outside printable ASCII, hiragana, katakana and CJK ideographs
UNREADABLE_CHARS = re.compile(r'[^\x20-\x7e\u3040-\u309f\u30a0-\u30ff\u4e00-\u9faf]')
STRIPPED_CHARS = re.compile(r'[^\x20-\x7e\u3040-\u309f\u30a0-\u30ff\u4e00-\u9faf\s]')


def extract_metadata(file_path: Path | str, executable: Optional[str] = None) -> dict[str, Any]:
    """
    Extract all metadata from a file using ExifTool.

    Args:
        file_path: Path to the file
        executable: exiftool binary (defaults to EXIFTOOL_PATH)

    Returns:
        Dictionary of group-prefixed tags (e.g. 'EXIF:DateTimeOriginal')
    """
    path_str = str(file_path) if isinstance(file_path, Path) else file_path

    with exiftool.ExifToolHelper(executable=executable or EXIFTOOL_PATH) as et:
        metadata_list = et.get_metadata(path_str)
        if metadata_list:
            return metadata_list[0]
    return {}


def parse_exif_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an EXIF date-time string into a naive datetime.

    Any trailing offset is ignored: the wall-clock value is kept as recorded.
    Returns None for non-strings, zero-filled placeholders
    ("0000:00:00 00:00:00") and calendar-invalid values.
    """
    if not isinstance(value, str):
        return None

    match = EXIF_DATETIME_REGEX.match(value)
    if not match:
        return None

    try:
        return datetime(*(int(g) for g in match.groups()[:6]))
    except ValueError:
        return None


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_coordinate(value: Any) -> Optional[float]:
    """Decimal degrees from a number or an ExifTool DMS string."""
    if isinstance(value, str):
        match = DMS_REGEX.match(value)
        if match:
            degrees, minutes, seconds, direction = match.groups()
            return dms_to_decimal(float(degrees), float(minutes), float(seconds), (direction or 'N').upper())
    return _to_float(value)


def _signed_coordinate(value: Any, ref: Any, negative_refs: tuple[str, ...]) -> Optional[float]:
    number = _to_coordinate(value)
    if number is None:
        return None
    if isinstance(ref, str) and ref.strip().upper()[:1] in negative_refs:
        return -abs(number)
    return number


def extract_gps_info(metadata: dict[str, Any]) -> Optional[GPSInfo]:
    """
    Build GPSInfo from ExifTool tags.

    Prefers the signed Composite coordinates; falls back to the EXIF values
    plus their N/S and E/W reference tags. Coordinates may be numeric (-n)
    or formatted DMS strings. Returns None when no position, altitude or
    direction is present.
    """
    latitude = _to_coordinate(metadata.get('Composite:GPSLatitude'))
    longitude = _to_coordinate(metadata.get('Composite:GPSLongitude'))

    if latitude is None:
        latitude = _signed_coordinate(
            metadata.get('EXIF:GPSLatitude'), metadata.get('EXIF:GPSLatitudeRef'), ('S',)
        )
    if longitude is None:
        longitude = _signed_coordinate(
            metadata.get('EXIF:GPSLongitude'), metadata.get('EXIF:GPSLongitudeRef'), ('W',)
        )

    altitude = _to_float(metadata.get('EXIF:GPSAltitude'))
    if altitude is not None and str(metadata.get('EXIF:GPSAltitudeRef')) == '1':
        altitude = -altitude  # Below sea level

    direction = _to_float(metadata.get('EXIF:GPSImgDirection'))

    if latitude is None and longitude is None and altitude is None and direction is None:
        return None

    return GPSInfo(
        latitude=latitude,
        longitude=longitude,
        altitude=altitude,
        img_direction=direction,
    )


def find_tag(metadata: dict[str, Any], *names: str) -> Any:
    """
    First non-empty value among the given tag names, in any ExifTool group.

    Example:
        find_tag({'EXIF:Make': 'Canon'}, 'Make') -> 'Canon'
    """
    for name in names:
        for key, value in metadata.items():
            if key.rsplit(':', 1)[-1] == name and value is not None and value != '':
                return value
    return None


def sanitize_string(value: Any) -> Optional[str]:
    """
    Clean a free-text tag value for display.

    Lists yield their first element. Control characters are removed, values
    that are mostly unreadable characters (mojibake) become None, and the
    remaining unreadable characters are stripped. Empty results become None.
    """
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None

    text = CONTROL_CHARS.sub('', str(value))
    if len(UNREADABLE_CHARS.findall(text)) > len(text) * 0.5:
        return None

    text = STRIPPED_CHARS.sub('', text).strip()
    return text or None


def extract_camera_info(metadata: dict[str, Any]) -> Optional[CameraInfo]:
    """Build CameraInfo from make/model/lens/serial tags, None when all are absent."""
    fields = {
        field_name: sanitize_string(find_tag(metadata, *tags))
        for field_name, tags in CAMERA_TAGS.items()
    }
    if all(value is None for value in fields.values()):
        return None
    return CameraInfo(**fields)


def format_camera_name(make: Optional[str], model: Optional[str]) -> str:
    """
    Display name for a camera.

    The model alone is used when it already contains the make
    (e.g. Canon / "Canon EOS R5" -> "Canon EOS R5").
    """
    if not make and not model:
        return '不明'
    if not make:
        return model
    if not model:
        return make
    if make.lower() in model.lower():
        return model
    return f"{make} {model}"


def format_full_camera_info(camera: Optional[CameraInfo]) -> str:
    """Multi-line camera, lens and software summary."""
    if camera is None:
        return '情報なし'

    parts = []
    if camera.make and camera.model:
        parts.append(format_camera_name(camera.make, camera.model))
    if camera.lens:
        parts.append(f"レンズ: {camera.lens}")
    if camera.software:
        parts.append(f"ソフトウェア: {camera.software}")

    return '\n'.join(parts) if parts else '情報なし'


def perform_security_analysis(metadata: dict[str, Any]) -> SecurityAnalysis:
    """
    Report what identifying information a photo's tags reveal.

    Risk levels:
    - high: GPS position present
    - medium: camera/lens serial numbers or author details present
    - low: none of the above

    A later check never lowers a risk already raised by an earlier one.
    """
    risk = PrivacyRisk.LOW
    warnings: list[str] = []
    recommendations: list[str] = []

    gps = extract_gps_info(metadata)
    has_gps = gps is not None and gps.has_position
    if has_gps:
        risk = PrivacyRisk.HIGH
        warnings.append('GPS位置情報が含まれています')
        recommendations.append('公開前にGPS情報を削除することを推奨')

    has_serial = find_tag(metadata, *CAMERA_TAGS['serial'], *CAMERA_TAGS['lens_serial']) is not None
    if has_serial:
        if risk != PrivacyRisk.HIGH:
            risk = PrivacyRisk.MEDIUM
        warnings.append('カメラ/レンズのシリアル番号が含まれています')
        recommendations.append('デバイス特定を避けるためシリアル番号の削除を推奨')

    has_timestamp = find_tag(metadata, 'DateTimeOriginal', 'ModifyDate') is not None
    if has_timestamp:
        warnings.append('詳細な撮影時刻が記録されています')

    has_personal = find_tag(metadata, *PERSONAL_INFO_TAGS) is not None
    if has_personal:
        if risk != PrivacyRisk.HIGH:
            risk = PrivacyRisk.MEDIUM
        warnings.append('作者情報またはコメントが含まれています')

    return SecurityAnalysis(
        privacy_risk=risk,
        has_gps=has_gps,
        has_personal_info=has_personal,
        has_camera_serial=has_serial,
        has_timestamp=has_timestamp,
        warnings=warnings,
        recommendations=recommendations,
    )


def build_metadata_signals(metadata: dict[str, Any]) -> MetadataSignals:
    """
    Map an ExifTool tag dict onto MetadataSignals.

    Unparseable date tags are dropped, not reported as errors.
    """
    fields: dict[str, Optional[datetime]] = {}

    for tag, field_name in DATETIME_TAGS.items():
        if tag not in metadata:
            continue
        dt = parse_exif_datetime(metadata[tag])
        if dt is None:
            logger.debug(f"Ignoring unparseable {tag}: {metadata[tag]!r}")
            continue
        fields[field_name] = dt

    offset = None
    for tag in OFFSET_TAGS:
        value = metadata.get(tag)
        if isinstance(value, str) and value.strip():
            offset = value.strip()
            break

    return MetadataSignals(
        timezone_offset=offset,
        gps=extract_gps_info(metadata),
        camera=extract_camera_info(metadata),
        security=perform_security_analysis(metadata),
        **fields,
    )


def get_file_mtime(file_path: Path | str) -> datetime:
    """Return the filesystem modification time as a naive local datetime."""
    return datetime.fromtimestamp(os.path.getmtime(file_path))


def get_metadata_signals(file_path: Path | str, executable: Optional[str] = None) -> MetadataSignals:
    """Read a file with ExifTool and return its metadata signals."""
    return build_metadata_signals(extract_metadata(file_path, executable))
