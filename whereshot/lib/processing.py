"""
Single file analysis pipeline.

Runs the complete estimation for one photo on disk: ExifTool metadata,
filesystem mtime and filename patterns. Functions here are safe to run in
ThreadPoolExecutor workers; the estimate itself holds no shared state.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence
import logging
import os

from whereshot.lib.confidence import estimate_from_filename
from whereshot.lib.export import result_to_dict
from whereshot.lib.metadata import get_file_mtime, get_metadata_signals

logger = logging.getLogger(__name__)


def analyze_file(
    file_path: Path | str,
    now: Optional[datetime] = None,
    file_mtime=None,
    display_name: Optional[str] = None,
    exiftool_path: Optional[str] = None,
    include_sensitive: bool = True
) -> dict:
    """
    Estimate when a single photo was taken.

    Pipeline steps:
    1. File validation (exists)
    2. Extract metadata signals with ExifTool
    3. Read filesystem mtime (unless supplied by the caller)
    4. Match filename patterns and reconcile all candidates

    Args:
        file_path: Path to the photo
        now: Evaluation time for filename plausibility checks
        file_mtime: Override for the modification time (e.g. a browser's
                    File.lastModified for uploads)
        display_name: Filename to match patterns against (defaults to the
                      on-disk name; uploads are stored under a sanitized name)
        exiftool_path: exiftool binary override
        include_sensitive: Keep GPS and serial numbers in the result

    Returns:
        Dict with analysis results:
        {
            'status': 'success' or 'error',
            'file_path': str(absolute_path),
            'filename': str,
            'result': result_to_dict(...) or None,
            'error': str or None
        }

    Error Handling:
        Per-file errors (missing file, ExifTool failure) are caught and
        returned in the dict so batch callers can keep going.
    """
    path = Path(file_path) if isinstance(file_path, str) else file_path
    filename = display_name or path.name

    try:
        if not path.exists():
            return {
                'status': 'error',
                'file_path': str(path.absolute()),
                'filename': filename,
                'result': None,
                'error': 'File does not exist'
            }

        logger.debug(f"Reading metadata for {path.name}")
        metadata = get_metadata_signals(path, exiftool_path)

        if file_mtime is None:
            file_mtime = get_file_mtime(path)

        result = estimate_from_filename(metadata, filename, file_mtime, now)

        return {
            'status': 'success',
            'file_path': str(path.absolute()),
            'filename': filename,
            'result': result_to_dict(result, include_sensitive),
            'error': None
        }

    except Exception as e:
        logger.error(f"Error analyzing {path}: {e}", exc_info=True)
        return {
            'status': 'error',
            'file_path': str(path.absolute()),
            'filename': filename,
            'result': None,
            'error': str(e)
        }


def analyze_files(
    file_paths: Sequence[Path | str],
    max_workers: Optional[int] = None,
    now: Optional[datetime] = None
) -> list[dict]:
    """
    Analyze many photos in parallel.

    Args:
        file_paths: Photos to analyze
        max_workers: Thread count (None = CPU count)
        now: Shared evaluation time so every file is judged against the same clock

    Returns:
        One analyze_file() dict per input path, in input order
    """
    if not file_paths:
        return []

    if now is None:
        now = datetime.now()

    max_workers = max_workers or os.cpu_count() or 1
    logger.info(f"Analyzing {len(file_paths)} files with {max_workers} workers")

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(executor.map(lambda p: analyze_file(p, now=now), file_paths))

    error_count = sum(1 for r in results if r['status'] == 'error')
    if error_count:
        logger.warning(f"{error_count}/{len(results)} files failed analysis")

    return results
