"""Value types for date-time estimation.

Defines the candidate, conflict and result records exchanged between the
filename matcher, the reconciler and the presentation layer. All records are
built fresh per estimation call and never mutated afterwards.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum as PyEnum
from typing import Optional, List


# ============================================================================
# Enums
# ============================================================================

class SourceKind(str, PyEnum):
    """Where a timestamp candidate came from."""
    METADATA_ORIGINAL = "metadata_original"      # EXIF DateTimeOriginal
    METADATA_DIGITIZED = "metadata_digitized"    # EXIF DateTimeDigitized / CreateDate
    METADATA_MODIFIED = "metadata_modified"      # EXIF DateTime / ModifyDate
    FILENAME_PATTERN = "filename_pattern"
    FILESYSTEM_MTIME = "filesystem_mtime"


class ConsistencyLevel(str, PyEnum):
    """How well all candidates agree with each other."""
    HIGH = "high"        # No conflicts
    MEDIUM = "medium"    # Agreement ratio >= 0.7
    LOW = "low"          # Sources disagree significantly
    NONE = "none"        # No candidates


class Severity(str, PyEnum):
    """Warning severity, mapped to an icon by the presentation layer."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class PrivacyRisk(str, PyEnum):
    """How much identifying information a photo's metadata leaks."""
    LOW = "low"
    MEDIUM = "medium"      # Serial numbers or author details
    HIGH = "high"          # GPS position


# ============================================================================
# Inputs
# ============================================================================

@dataclass(frozen=True)
class GPSInfo:
    """Location recovered from metadata, passed through to solar cross-checks."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    img_direction: Optional[float] = None

    @property
    def has_position(self) -> bool:
        # 0.0 is a valid coordinate (equator / prime meridian)
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class CameraInfo:
    """Device fields, each a sanitized string or None."""
    make: Optional[str] = None
    model: Optional[str] = None
    software: Optional[str] = None
    lens: Optional[str] = None
    serial: Optional[str] = None
    lens_serial: Optional[str] = None


@dataclass(frozen=True)
class SecurityAnalysis:
    """Privacy report on what a photo's metadata reveals."""
    privacy_risk: PrivacyRisk = PrivacyRisk.LOW
    has_gps: bool = False
    has_personal_info: bool = False
    has_camera_serial: bool = False
    has_timestamp: bool = False
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MetadataSignals:
    """Fields recovered by the metadata extractor.

    Each instant is a naive local datetime, or None when the tag was absent
    or unparseable. ``timezone_offset`` is display-only and never applied.
    """
    original: Optional[datetime] = None
    digitized: Optional[datetime] = None
    modified: Optional[datetime] = None
    timezone_offset: Optional[str] = None
    gps: Optional[GPSInfo] = None
    camera: Optional[CameraInfo] = None
    security: Optional[SecurityAnalysis] = None


# ============================================================================
# Evidence
# ============================================================================

@dataclass(frozen=True)
class FilenamePatternMatch:
    """One timestamp recovered from a filename."""
    instant: datetime
    pattern: str            # Format id of the catalogue entry that matched
    reliability: float
    has_time: bool
    matched_text: str


@dataclass(frozen=True)
class TimestampCandidate:
    """One piece of evidence about when a photo was taken."""
    source_kind: SourceKind
    instant: datetime
    reliability: float
    has_time: bool
    description: str
    matched_text: Optional[str] = None   # Filename candidates only
    pattern: Optional[str] = None        # Filename candidates only


@dataclass(frozen=True)
class ConflictRecord:
    """A pair of candidates further apart than their tolerance."""
    first: TimestampCandidate
    second: TimestampCandidate
    difference: timedelta               # elapsed time from first to second
    difference_formatted: str

    @property
    def abs_difference(self) -> timedelta:
        return abs(self.difference)


@dataclass(frozen=True)
class ConflictAnalysis:
    """Pairwise agreement summary over all candidates."""
    consistency: ConsistencyLevel
    conflicts: List[ConflictRecord] = field(default_factory=list)
    agreement_ratio: float = 1.0
    has_time_info: bool = False


@dataclass(frozen=True)
class EstimationWarning:
    kind: str
    message: str
    severity: Severity


@dataclass(frozen=True)
class EstimationResult:
    """Output of one estimation run."""
    sources: List[TimestampCandidate]
    analysis: ConflictAnalysis
    best_estimate: Optional[datetime]
    confidence: float
    warnings: List[EstimationWarning]
    timezone_offset: Optional[str] = None
    gps: Optional[GPSInfo] = None
    camera: Optional[CameraInfo] = None
    security: Optional[SecurityAnalysis] = None
