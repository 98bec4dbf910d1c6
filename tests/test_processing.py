"""Tests for the file analysis pipeline."""
import os
from datetime import datetime

import pytest

from whereshot.lib import processing
from whereshot.lib.processing import analyze_file, analyze_files
from whereshot.models import MetadataSignals


@pytest.fixture
def fake_exiftool(monkeypatch):
    """Replace ExifTool with a lookup by filename."""
    signals_by_name = {}

    def fake_signals(path, exiftool_path=None):
        return signals_by_name.get(path.name, MetadataSignals())

    monkeypatch.setattr(processing, 'get_metadata_signals', fake_signals)
    return signals_by_name


def make_photo(directory, name, mtime):
    path = directory / name
    path.write_bytes(b'\xff\xd8\xff\xe0')
    os.utime(path, (mtime.timestamp(), mtime.timestamp()))
    return path


class TestAnalyzeFile:
    """Tests for analyze_file()."""

    def test_filename_and_mtime(self, temp_dir, fake_exiftool, now):
        path = make_photo(temp_dir, 'IMG_20230615_143000.jpg', datetime(2023, 6, 15, 20, 0, 0))

        result = analyze_file(path, now=now)

        assert result['status'] == 'success'
        assert result['filename'] == 'IMG_20230615_143000.jpg'
        assert result['result']['best_estimate'] == '2023-06-15T14:30:00'
        types = [s['type'] for s in result['result']['sources']]
        assert types == ['filename_pattern', 'filesystem_mtime']

    def test_metadata_original_wins(self, temp_dir, fake_exiftool, now):
        path = make_photo(temp_dir, 'IMG_20230615_143000.jpg', datetime(2023, 6, 15, 20, 0, 0))
        fake_exiftool['IMG_20230615_143000.jpg'] = MetadataSignals(original=datetime(2023, 6, 15, 14, 29, 58))

        result = analyze_file(path, now=now)

        assert result['result']['best_estimate'] == '2023-06-15T14:29:58'

    def test_mtime_and_display_name_overrides(self, temp_dir, fake_exiftool, now):
        path = make_photo(temp_dir, 'abc123_upload.jpg', datetime(2023, 1, 1))

        result = analyze_file(
            path,
            now=now,
            file_mtime=datetime(2023, 6, 15, 14, 31, 0),
            display_name='Screenshot_2023-06-15-14-30-00.png',
        )

        assert result['filename'] == 'Screenshot_2023-06-15-14-30-00.png'
        assert result['result']['analysis']['consistency'] == 'high'
        assert result['result']['best_estimate'] == '2023-06-15T14:30:00'

    def test_missing_file(self, temp_dir, fake_exiftool):
        result = analyze_file(temp_dir / 'missing.jpg')
        assert result['status'] == 'error'
        assert result['error'] == 'File does not exist'
        assert result['result'] is None

    def test_exiftool_failure_reported(self, temp_dir, monkeypatch):
        path = make_photo(temp_dir, 'photo.jpg', datetime(2023, 1, 1))

        def broken(path, exiftool_path=None):
            raise RuntimeError('exiftool not found')

        monkeypatch.setattr(processing, 'get_metadata_signals', broken)
        result = analyze_file(path)

        assert result['status'] == 'error'
        assert 'exiftool not found' in result['error']


class TestAnalyzeFiles:
    """Tests for analyze_files()."""

    def test_results_in_input_order(self, temp_dir, fake_exiftool, now):
        paths = [
            make_photo(temp_dir, f'IMG_202306{day:02d}_120000.jpg', datetime(2023, 6, day, 12, 5))
            for day in range(1, 6)
        ]
        paths.append(temp_dir / 'missing.jpg')

        results = analyze_files(paths, max_workers=3, now=now)

        assert [r['filename'] for r in results] == [p.name for p in paths]
        assert [r['status'] for r in results] == ['success'] * 5 + ['error']
        assert results[2]['result']['best_estimate'] == '2023-06-03T12:00:00'

    def test_empty(self):
        assert analyze_files([]) == []
