"""
Timestamp extraction from filenames.

Applies an ordered catalogue of date/time patterns to a filename and returns
every plausible embedded timestamp, tagged with the pattern that produced it
and that pattern's reliability. Patterns are matched unanchored, globally and
case-insensitively, so one filename can yield several independent candidates.

All instants are naive datetimes in the local time of the running process.
"""
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional, List, Pattern
import logging
import re

from whereshot.models import FilenamePatternMatch

logger = logging.getLogger(__name__)

# Plausibility window for filename-derived dates
VALID_DATE_YEAR_MIN = 1990
MAX_FUTURE_SKEW = timedelta(days=7)

# Matches closer than this are treated as the same evidence
DEDUP_WINDOW = timedelta(seconds=60)

# Date-only matches are placed at local noon
DATE_ONLY_HOUR = 12

# Capture-group layouts
LAYOUT_DATETIME = 'datetime'    # (year, month, day, hour?, minute?, second?)
LAYOUT_DATE = 'date'            # (year, month, day)
LAYOUT_EPOCH = 'epoch'          # (seconds,)
LAYOUT_EPOCH_MS = 'epoch_ms'    # (milliseconds,)


def instant_difference(earlier: datetime, later: datetime) -> timedelta:
    """
    Elapsed time from ``earlier`` to ``later``.

    Naive instants are resolved against local time, honouring ``fold`` for
    the repeated hour around a daylight-saving change.
    """
    return later.astimezone(timezone.utc) - earlier.astimezone(timezone.utc)


class FilenamePattern(NamedTuple):
    """Declarative catalogue entry."""
    regex: Pattern
    format: str
    reliability: float
    layout: str


def _pattern(source: str, format: str, reliability: float, layout: str = LAYOUT_DATETIME) -> FilenamePattern:
    return FilenamePattern(re.compile(source, re.IGNORECASE), format, reliability, layout)


# Order only affects iteration, not the resulting set
FILENAME_PATTERNS: tuple[FilenamePattern, ...] = (
    # --- date + time ---
    _pattern(r'(\d{4})[_\-/](\d{1,2})[_\-/](\d{1,2})[_\sT\-](\d{1,2})[_:\-](\d{1,2})[_:\-](\d{1,2})',
             'YYYY-MM-DD HH:MM:SS', 0.95),
    _pattern(r'(\d{4})(\d{2})(\d{2})[_\-\s](\d{2})(\d{2})(\d{2})',
             'YYYYMMDD_HHMMSS', 0.95),
    _pattern(r'(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})',
             'YYYYMMDDHHMMSS', 0.9),
    _pattern(r'IMG[_\-\s](\d{4})(\d{2})(\d{2})[_\-\s](\d{2})(\d{2})(\d{2})',
             'IMG_YYYYMMDD_HHMMSS', 0.95),
    _pattern(r'DSC[_\-\s](\d{4})(\d{2})(\d{2})[_\-\s](\d{2})(\d{2})(\d{2})',
             'DSC_YYYYMMDD_HHMMSS', 0.95),
    _pattern(r'PHOTO[_\-\s](\d{4})[_\-](\d{1,2})[_\-](\d{1,2})[_\-\s](\d{1,2})[_\-](\d{1,2})[_\-](\d{1,2})',
             'PHOTO_YYYY_MM_DD_HH_MM_SS', 0.9),
    _pattern(r'Screenshot[_\-\s](\d{4})[_\-](\d{1,2})[_\-](\d{1,2})[_\-\s](\d{1,2})[_\-](\d{1,2})[_\-](\d{1,2})',
             'Screenshot_YYYY-MM-DD-HH-MM-SS', 0.9),
    _pattern(r'(\d{4})[_\-/](\d{1,2})[_\-/](\d{1,2})[_\sT\-](\d{1,2})[_:\-](\d{1,2})',
             'YYYY-MM-DD HH:MM', 0.85),
    _pattern(r'(\d{4})(\d{2})(\d{2})[_\-\s](\d{2})(\d{2})(?!\d)',
             'YYYYMMDD_HHMM', 0.85),
    _pattern(r'VID[_\-\s](\d{4})(\d{2})(\d{2})[_\-\s](\d{2})(\d{2})(\d{2})',
             'VID_YYYYMMDD_HHMMSS', 0.95),
    _pattern(r'(\d{4})[_\-](\d{2})[_\-](\d{2})T(\d{2}):(\d{2}):(\d{2})',
             'ISO_DATETIME', 0.95),
    _pattern(r'(\d{4})[_\-/](\d{1,2})[_\-/](\d{1,2})[_\s](\d{1,2})[時h](\d{1,2})[分m](\d{1,2})[秒s]',
             'YYYY-MM-DD HH時MM分SS秒', 0.9),

    # --- date only ---
    # Must not swallow a trailing time component meant for the patterns above.
    # A space or 'T' after the date is allowed, so "2023-06-15 14-30" also
    # yields a noon date-only candidate that the time-bearing match outranks.
    _pattern(r'(\d{4})[_\-/](\d{1,2})[_\-/](\d{1,2})(?![_\-\d])',
             'YYYY-MM-DD', 0.7, LAYOUT_DATE),
    _pattern(r'(\d{4})(\d{2})(\d{2})(?![_\-\d])',
             'YYYYMMDD', 0.7, LAYOUT_DATE),
    _pattern(r'IMG[_\-](\d{4})(\d{2})(\d{2})[_\-]WA',
             'WhatsApp', 0.6, LAYOUT_DATE),

    # --- raw epoch ---
    _pattern(r'(?<!\d)(\d{10})(?!\d)', 'Unix_timestamp', 0.8, LAYOUT_EPOCH),
    _pattern(r'(?<!\d)(\d{13})(?!\d)', 'Unix_timestamp_ms', 0.8, LAYOUT_EPOCH_MS),
)


def parse_matched_datetime(groups: tuple, layout: str) -> Optional[tuple[datetime, bool]]:
    """
    Build a local datetime from a pattern's capture groups.

    Args:
        groups: Regex capture groups, in the layout's order
        layout: One of the LAYOUT_* constants

    Returns:
        Tuple of (datetime, has_time), or None when the captured values do not
        form a real calendar instant (e.g. month 13, hour 25)
    """
    try:
        if layout == LAYOUT_EPOCH:
            return datetime.fromtimestamp(int(groups[0])), True
        if layout == LAYOUT_EPOCH_MS:
            return datetime.fromtimestamp(int(groups[0]) / 1000), True

        year, month, day = (int(g) for g in groups[:3])
        if layout == LAYOUT_DATE:
            return datetime(year, month, day, DATE_ONLY_HOUR, 0, 0), False

        hour, minute, second = ([int(g) if g else 0 for g in groups[3:6]] + [0, 0, 0])[:3]
        return datetime(year, month, day, hour, minute, second), True
    except (ValueError, OverflowError, OSError):
        return None


def is_plausible_datetime(dt: datetime, now: Optional[datetime] = None) -> bool:
    """
    Check that a filename-derived instant is within the plausible range.

    Rejects years before VALID_DATE_YEAR_MIN or after next year, and anything
    more than MAX_FUTURE_SKEW past ``now``.
    """
    if now is None:
        now = datetime.now()

    if dt.year < VALID_DATE_YEAR_MIN or dt.year > now.year + 1:
        return False

    return dt <= now + MAX_FUTURE_SKEW


def dedupe_matches(matches: List[FilenamePatternMatch]) -> List[FilenamePatternMatch]:
    """
    Collapse matches within DEDUP_WINDOW of each other.

    Each match is compared against the first already-kept match it falls
    within the window of; the more reliable of the two is kept in place.
    """
    unique: List[FilenamePatternMatch] = []

    for match in matches:
        for index, existing in enumerate(unique):
            if abs(instant_difference(existing.instant, match.instant)) < DEDUP_WINDOW:
                if match.reliability > existing.reliability:
                    unique[index] = match
                break
        else:
            unique.append(match)

    return unique


def extract_candidates(
    filename: str,
    now: Optional[datetime] = None
) -> List[FilenamePatternMatch]:
    """
    Extract every plausible timestamp embedded in a filename.

    Looks for patterns like:
    - IMG_20240115_120000.jpg
    - Screenshot_2024-01-15-12-00-00.png
    - 2024-01-15.jpg (date only, placed at 12:00)
    - 1705320000.jpg (Unix epoch)

    Args:
        filename: The filename (not full path) to parse
        now: Evaluation time for the future-date bound (defaults to now)

    Returns:
        Deduplicated matches sorted by descending reliability. Empty when
        nothing matches; never raises for odd input.
    """
    if now is None:
        now = datetime.now()

    results: List[FilenamePatternMatch] = []

    for entry in FILENAME_PATTERNS:
        for match in entry.regex.finditer(filename):
            parsed = parse_matched_datetime(match.groups(), entry.layout)
            if parsed is None:
                logger.debug(f"Discarded invalid {entry.format} match {match.group(0)!r} in {filename}")
                continue

            dt, has_time = parsed
            if not is_plausible_datetime(dt, now):
                logger.debug(f"Discarded implausible {entry.format} match {match.group(0)!r} ({dt})")
                continue

            results.append(FilenamePatternMatch(
                instant=dt,
                pattern=entry.format,
                reliability=entry.reliability,
                has_time=has_time,
                matched_text=match.group(0),
            ))

    unique = dedupe_matches(results)
    unique.sort(key=lambda m: m.reliability, reverse=True)
    return unique


def get_datetime_from_name(filename: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Return the most reliable timestamp in a filename, or None."""
    matches = extract_candidates(filename, now)
    return matches[0].instant if matches else None
