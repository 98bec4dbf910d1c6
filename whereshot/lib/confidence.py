"""
Multi-source date-time reconciliation.

Merges timestamp candidates from metadata, filename patterns and the
filesystem into one best estimate. Agreement between sources is measured
pairwise, the best candidate is chosen by priority and consensus, and a
confidence score is derived from the winner's reliability and a set of
multiplicative boosts.

The confidence score is a heuristic: each boost models an independent reason
to trust the estimate more. It is not a calibrated probability.
"""
from datetime import datetime, timedelta
from typing import Optional, List, Sequence
import logging

from whereshot.lib.timestamp import extract_candidates, instant_difference
from whereshot.models import (
    ConflictAnalysis,
    ConflictRecord,
    ConsistencyLevel,
    EstimationResult,
    EstimationWarning,
    FilenamePatternMatch,
    MetadataSignals,
    Severity,
    SourceKind,
    TimestampCandidate,
)

logger = logging.getLogger(__name__)


# Reliability priors by source kind (filename priors come from the pattern)
SOURCE_RELIABILITY = {
    SourceKind.METADATA_ORIGINAL: 0.95,
    SourceKind.METADATA_DIGITIZED: 0.85,
    SourceKind.METADATA_MODIFIED: 0.65,
    SourceKind.FILESYSTEM_MTIME: 0.3,
}

SOURCE_DESCRIPTIONS = {
    SourceKind.METADATA_ORIGINAL: 'Exif撮影日時',
    SourceKind.METADATA_DIGITIZED: 'Exifデジタル化日時',
    SourceKind.METADATA_MODIFIED: 'Exif更新日時',
    SourceKind.FILESYSTEM_MTIME: 'ファイル更新日時',
}

# Pair tolerances: both time-bearing vs. at least one date-only (noon placeholder)
TIME_TOLERANCE = timedelta(hours=1)
DATE_TOLERANCE = timedelta(hours=24)

MEDIUM_AGREEMENT_THRESHOLD = 0.7

# Confidence boosts, applied in this order
MULTI_SOURCE_BOOST = 1.2
ORIGINAL_PRESENT_BOOST = 1.3
TIME_INFO_BOOST = 1.1
FILENAME_TIME_BOOST = 1.15


class EstimationInputError(TypeError):
    """Raised when the caller omits a required structural input.

    This is an integration bug, not uncertain data: uncertain data is always
    reported through the result's warnings.
    """


def _naive_local(value) -> Optional[datetime]:
    """Coerce a datetime or epoch seconds to a naive local datetime."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            # fromtimestamp sets fold for the repeated hour
            return datetime.fromtimestamp(value.timestamp())
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value)
        except (ValueError, OverflowError, OSError):
            return None
    return None


def _metadata_instant(value) -> Optional[datetime]:
    # Metadata wall-clock time is kept as recorded; offsets are display-only
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return None


def pair_tolerance(a: TimestampCandidate, b: TimestampCandidate) -> timedelta:
    """Tolerance for comparing two candidates."""
    return TIME_TOLERANCE if (a.has_time and b.has_time) else DATE_TOLERANCE


def _sort_key(candidate: TimestampCandidate):
    return (not candidate.has_time, -candidate.reliability)


def collect_sources(
    metadata: MetadataSignals,
    filename_matches: Sequence[FilenamePatternMatch],
    file_mtime,
) -> List[TimestampCandidate]:
    """
    Build the candidate list from every source.

    Args:
        metadata: Date-time signals recovered from the image metadata
        filename_matches: Deduplicated matches from extract_candidates()
        file_mtime: Filesystem modification time (datetime or epoch seconds)

    Returns:
        Candidates sorted time-bearing first, then by descending reliability

    Raises:
        EstimationInputError: metadata, filename matches or mtime are missing
    """
    if metadata is None:
        raise EstimationInputError("metadata signals are required (use an empty MetadataSignals)")
    if filename_matches is None or isinstance(filename_matches, (str, bytes)):
        raise EstimationInputError("filename_matches must be a sequence of FilenamePatternMatch")
    if file_mtime is None:
        raise EstimationInputError("file_mtime is required")

    mtime = _naive_local(file_mtime)
    if mtime is None:
        raise EstimationInputError(f"file_mtime is not a datetime or epoch value: {file_mtime!r}")

    sources: List[TimestampCandidate] = []

    for kind, value in (
        (SourceKind.METADATA_ORIGINAL, metadata.original),
        (SourceKind.METADATA_DIGITIZED, metadata.digitized),
        (SourceKind.METADATA_MODIFIED, metadata.modified),
    ):
        if value is None:
            continue
        instant = _metadata_instant(value)
        if instant is None:
            logger.debug(f"Discarded malformed {kind.value} value {value!r}")
            continue
        sources.append(TimestampCandidate(
            source_kind=kind,
            instant=instant,
            reliability=SOURCE_RELIABILITY[kind],
            has_time=True,
            description=SOURCE_DESCRIPTIONS[kind],
        ))

    for match in filename_matches:
        if not isinstance(match, FilenamePatternMatch) or not isinstance(match.instant, datetime):
            logger.debug(f"Discarded malformed filename match {match!r}")
            continue
        sources.append(TimestampCandidate(
            source_kind=SourceKind.FILENAME_PATTERN,
            instant=match.instant,
            reliability=match.reliability,
            has_time=match.has_time,
            description=f'ファイル名 ({match.pattern})',
            matched_text=match.matched_text,
            pattern=match.pattern,
        ))

    sources.append(TimestampCandidate(
        source_kind=SourceKind.FILESYSTEM_MTIME,
        instant=mtime,
        reliability=SOURCE_RELIABILITY[SourceKind.FILESYSTEM_MTIME],
        has_time=True,
        description=SOURCE_DESCRIPTIONS[SourceKind.FILESYSTEM_MTIME],
    ))

    # list.sort is stable, so equal keys keep collection order
    sources.sort(key=_sort_key)
    return sources


def format_time_difference(difference: timedelta) -> str:
    """Format a duration using its largest nonzero unit pair (e.g. 10日0時間)."""
    seconds = int(abs(difference).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f'{days}日{hours % 24}時間'
    elif hours > 0:
        return f'{hours}時間{minutes % 60}分'
    elif minutes > 0:
        return f'{minutes}分'
    return f'{seconds}秒'


def analyze_sources(sources: Sequence[TimestampCandidate]) -> ConflictAnalysis:
    """
    Measure pairwise agreement between all candidates.

    A pair conflicts when its absolute difference exceeds pair_tolerance().
    The agreement ratio is the share of non-conflicting pairs (1.0 when
    there are fewer than two candidates).
    """
    if not sources:
        return ConflictAnalysis(consistency=ConsistencyLevel.NONE)

    conflicts: List[ConflictRecord] = []
    for i in range(len(sources)):
        for j in range(i + 1, len(sources)):
            first, second = sources[i], sources[j]
            difference = instant_difference(first.instant, second.instant)
            if abs(difference) > pair_tolerance(first, second):
                conflicts.append(ConflictRecord(
                    first=first,
                    second=second,
                    difference=difference,
                    difference_formatted=format_time_difference(difference),
                ))

    total_pairs = len(sources) * (len(sources) - 1) // 2
    agreement = (total_pairs - len(conflicts)) / total_pairs if total_pairs > 0 else 1.0

    if not conflicts:
        consistency = ConsistencyLevel.HIGH
    elif agreement >= MEDIUM_AGREEMENT_THRESHOLD:
        consistency = ConsistencyLevel.MEDIUM
    else:
        consistency = ConsistencyLevel.LOW

    return ConflictAnalysis(
        consistency=consistency,
        conflicts=conflicts,
        agreement_ratio=agreement,
        has_time_info=any(s.has_time for s in sources),
    )


def find_consensus(sources: Sequence[TimestampCandidate]) -> Optional[TimestampCandidate]:
    """
    Find the most reliable member of the largest agreeing cluster.

    Clustering is single-pass first-fit: each candidate joins the first
    cluster whose first member is within pair tolerance, not the best
    fitting one. Depending on input order this can differ from an optimal
    single-link clustering; treat the result as an approximation.

    Returns:
        The chosen candidate, or None when no cluster has two members
    """
    clusters: List[List[TimestampCandidate]] = []

    for source in sources:
        for cluster in clusters:
            anchor = cluster[0]
            if abs(instant_difference(anchor.instant, source.instant)) <= pair_tolerance(anchor, source):
                cluster.append(source)
                break
        else:
            clusters.append([source])

    largest: List[TimestampCandidate] = []
    for cluster in clusters:
        if len(cluster) >= len(largest):
            largest = cluster

    if len(largest) < 2:
        return None

    best = largest[0]
    for candidate in largest[1:]:
        if candidate.reliability >= best.reliability:
            best = candidate
    return best


def select_best_candidate(
    sources: Sequence[TimestampCandidate],
    analysis: ConflictAnalysis
) -> Optional[TimestampCandidate]:
    """
    Choose the candidate whose instant becomes the best estimate.

    Priority:
    1. Only time-bearing candidates are considered when any exist
    2. EXIF DateTimeOriginal wins unconditionally
    3. With full agreement, the consensus cluster's most reliable member
    4. Otherwise the most reliable considered candidate
    """
    if not sources:
        return None

    time_aware = [s for s in sources if s.has_time]
    considered = sorted(time_aware or sources, key=_sort_key)

    for source in considered:
        if source.source_kind == SourceKind.METADATA_ORIGINAL:
            return source

    if analysis.consistency == ConsistencyLevel.HIGH and len(considered) > 1:
        consensus = find_consensus(considered)
        if consensus is not None:
            return consensus

    return considered[0]


def calculate_confidence(
    sources: Sequence[TimestampCandidate],
    analysis: ConflictAnalysis,
    best: Optional[TimestampCandidate] = None
) -> float:
    """
    Calculate a confidence score in [0, 1].

    Starts from the winning candidate's reliability (the top candidate when
    no winner is given) and applies, in order: agreement ratio, multi-source,
    EXIF original present, any time-bearing source, and time-bearing filename
    boosts. The product is clamped to 1.0.
    """
    if not sources:
        return 0.0

    confidence = (best or sources[0]).reliability

    confidence *= analysis.agreement_ratio

    if len(sources) > 1:
        confidence *= MULTI_SOURCE_BOOST

    if any(s.source_kind == SourceKind.METADATA_ORIGINAL for s in sources):
        confidence *= ORIGINAL_PRESENT_BOOST

    if analysis.has_time_info:
        confidence *= TIME_INFO_BOOST

    if any(s.source_kind == SourceKind.FILENAME_PATTERN and s.has_time for s in sources):
        confidence *= FILENAME_TIME_BOOST

    return max(0.0, min(confidence, 1.0))


def generate_warnings(
    sources: Sequence[TimestampCandidate],
    analysis: ConflictAnalysis
) -> List[EstimationWarning]:
    """Build the ordered, severity-graded warning list for a result."""
    warnings: List[EstimationWarning] = []

    if not sources:
        warnings.append(EstimationWarning(
            kind='no_datetime',
            message='日時情報が見つかりません',
            severity=Severity.ERROR,
        ))
        return warnings

    if analysis.consistency == ConsistencyLevel.LOW:
        warnings.append(EstimationWarning(
            kind='inconsistent',
            message='複数の日時情報に大きな差異があります',
            severity=Severity.WARNING,
        ))

    for conflict in analysis.conflicts:
        warnings.append(EstimationWarning(
            kind='conflict',
            message=(
                f'{conflict.first.description}と{conflict.second.description}に'
                f'{conflict.difference_formatted}の差があります'
            ),
            severity=Severity.WARNING,
        ))

    if not any(s.source_kind == SourceKind.METADATA_ORIGINAL for s in sources):
        warnings.append(EstimationWarning(
            kind='no_exif_original',
            message='Exif撮影日時が存在しません。推定日時の信頼性が低下します',
            severity=Severity.INFO,
        ))

    if len(sources) == 1 and sources[0].source_kind == SourceKind.FILESYSTEM_MTIME:
        warnings.append(EstimationWarning(
            kind='file_modified_only',
            message='ファイル更新日時のみで推定しています。実際の撮影日時と異なる可能性があります',
            severity=Severity.WARNING,
        ))

    if not analysis.has_time_info:
        warnings.append(EstimationWarning(
            kind='no_time_info',
            message='時間情報がないため、日付のみの推定です',
            severity=Severity.INFO,
        ))

    filename_with_time = next(
        (s for s in sources if s.source_kind == SourceKind.FILENAME_PATTERN and s.has_time),
        None
    )
    if filename_with_time is not None:
        warnings.append(EstimationWarning(
            kind='filename_time_extracted',
            message=f'ファイル名から時間情報を抽出しました ({filename_with_time.matched_text})',
            severity=Severity.INFO,
        ))

    return warnings


def estimate_datetime(
    metadata: MetadataSignals,
    filename_matches: Sequence[FilenamePatternMatch],
    file_mtime,
) -> EstimationResult:
    """
    Estimate when a photo was taken from all available signals.

    Pure function of its inputs: no I/O, no shared state, safe to call
    concurrently.

    Args:
        metadata: Date-time signals recovered from the image metadata
        filename_matches: Matches from extract_candidates()
        file_mtime: Filesystem modification time (datetime or epoch seconds)

    Returns:
        EstimationResult with sources, conflict analysis, best estimate,
        confidence and warnings

    Raises:
        EstimationInputError: a required input is structurally absent

    Example:
        >>> result = estimate_datetime(
        ...     MetadataSignals(original=datetime(2021, 1, 1, 9, 0)),
        ...     [],
        ...     datetime(2021, 1, 1, 9, 5),
        ... )
        >>> result.best_estimate
        datetime.datetime(2021, 1, 1, 9, 0)
    """
    sources = collect_sources(metadata, filename_matches, file_mtime)
    analysis = analyze_sources(sources)
    best = select_best_candidate(sources, analysis)
    confidence = calculate_confidence(sources, analysis, best)
    warnings = generate_warnings(sources, analysis)

    if best is not None:
        logger.info(
            f"Estimate {best.instant} from {best.source_kind.value} "
            f"(confidence={confidence:.2f}, consistency={analysis.consistency.value}, "
            f"{len(sources)} sources, {len(analysis.conflicts)} conflicts)"
        )
    else:
        logger.info("No datetime candidates available")

    return EstimationResult(
        sources=sources,
        analysis=analysis,
        best_estimate=best.instant if best is not None else None,
        confidence=confidence,
        warnings=warnings,
        timezone_offset=metadata.timezone_offset,
        gps=metadata.gps,
        camera=metadata.camera,
        security=metadata.security,
    )


def estimate_from_filename(
    metadata: MetadataSignals,
    filename: str,
    file_mtime,
    now: Optional[datetime] = None
) -> EstimationResult:
    """Run the filename matcher and reconcile its output with the other signals."""
    if not isinstance(filename, str):
        raise EstimationInputError(f"filename must be a string, got {type(filename).__name__}")
    return estimate_datetime(metadata, extract_candidates(filename, now), file_mtime)
