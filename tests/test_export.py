"""Tests for result presentation helpers."""
import json
from datetime import datetime

import pytest

from whereshot.lib.confidence import estimate_from_filename
from whereshot.lib.export import (
    confidence_bucket,
    export_result_json,
    format_datetime,
    format_sources,
    result_to_dict,
)
from whereshot.models import CameraInfo, GPSInfo, MetadataSignals, PrivacyRisk, SecurityAnalysis


class TestBuckets:
    """Tests for confidence_bucket()."""

    @pytest.mark.parametrize('value, expected', [
        (1.0, 'high'),
        (0.8, 'high'),
        (0.79, 'medium'),
        (0.6, 'medium'),
        (0.59, 'low'),
        (0.0, 'low'),
    ])
    def test_thresholds(self, value, expected):
        assert confidence_bucket(value) == expected


class TestFormatting:
    """Tests for display formatting."""

    def test_format_datetime(self):
        assert format_datetime(datetime(2023, 6, 15, 14, 30, 5)) == '2023/06/15 14:30:05'
        assert format_datetime(None) == '-'

    def test_format_sources(self, now):
        result = estimate_from_filename(
            MetadataSignals(),
            'IMG_20230615_143000.jpg',
            datetime(2023, 6, 15, 14, 35, 0),
            now,
        )
        formatted = format_sources(result.sources)

        assert formatted[0] == {
            'description': 'ファイル名 (YYYYMMDD_HHMMSS) (時間付き)',
            'date': '2023/06/15 14:30:00',
            'reliability': '95%',
            'bucket': 'high',
            'type': 'filename_pattern',
            'matched_text': '20230615_143000',
        }
        assert formatted[1]['reliability'] == '30%'
        assert formatted[1]['bucket'] == 'low'
        assert formatted[1]['matched_text'] == ''


class TestResultToDict:
    """Tests for result_to_dict()."""

    def test_json_serializable(self, now):
        metadata = MetadataSignals(
            original=datetime(2023, 6, 15, 14, 30, 0),
            timezone_offset='+09:00',
            gps=GPSInfo(latitude=35.6812, longitude=139.7671),
        )
        result = estimate_from_filename(metadata, 'photo.jpg', datetime(2023, 6, 20, 9, 0, 0), now)

        payload = result_to_dict(result)
        json.dumps(payload)

        assert payload['best_estimate'] == '2023-06-15T14:30:00'
        assert payload['confidence_percent'] == round(result.confidence * 100)
        assert payload['timezone_offset'] == '+09:00'
        assert payload['gps']['latitude'] == 35.6812
        assert payload['analysis']['consistency'] == 'low'
        conflict = payload['analysis']['conflicts'][0]
        assert conflict['difference_formatted'] == '4日18時間'
        assert conflict['difference_seconds'] == pytest.approx(4 * 86400 + 18.5 * 3600)
        assert [w['severity'] for w in payload['warnings']][:2] == ['warning', 'warning']

    def test_without_gps(self, now):
        result = estimate_from_filename(MetadataSignals(), 'photo.jpg', datetime(2023, 6, 20), now)
        payload = result_to_dict(result)
        assert payload['gps'] is None
        assert payload['best_estimate'] == '2023-06-20T00:00:00'

    def test_image_direction_cardinal(self, now):
        metadata = MetadataSignals(gps=GPSInfo(latitude=35.0, longitude=139.0, img_direction=92.0))
        result = estimate_from_filename(metadata, 'photo.jpg', datetime(2023, 6, 20), now)

        gps = result_to_dict(result)['gps']
        assert gps['img_direction'] == 92.0
        assert gps['img_direction_cardinal'] == 'E'

    def test_no_image_direction(self, now):
        metadata = MetadataSignals(gps=GPSInfo(latitude=35.0, longitude=139.0))
        result = estimate_from_filename(metadata, 'photo.jpg', datetime(2023, 6, 20), now)
        assert result_to_dict(result)['gps']['img_direction_cardinal'] is None


class TestSensitiveFields:
    """Tests for camera/security rendering and sensitive field stripping."""

    @pytest.fixture
    def result(self, now):
        metadata = MetadataSignals(
            original=datetime(2023, 6, 15, 14, 30, 0),
            gps=GPSInfo(latitude=35.6812, longitude=139.7671),
            camera=CameraInfo(
                make='Canon',
                model='Canon EOS R5',
                lens='RF24-105mm F4 L IS USM',
                serial='012345678901',
                lens_serial='9900001234',
            ),
            security=SecurityAnalysis(
                privacy_risk=PrivacyRisk.HIGH,
                has_gps=True,
                has_camera_serial=True,
                warnings=['GPS位置情報が含まれています'],
                recommendations=['公開前にGPS情報を削除することを推奨'],
            ),
        )
        return estimate_from_filename(metadata, 'photo.jpg', datetime(2023, 6, 15, 14, 31, 0), now)

    def test_camera_block(self, result):
        camera = result_to_dict(result)['camera']

        assert camera['make'] == 'Canon'
        assert camera['serial'] == '012345678901'
        assert camera['lens_serial'] == '9900001234'
        assert camera['formatted']['camera'] == 'Canon EOS R5'
        assert camera['formatted']['full_info'] == 'Canon EOS R5\nレンズ: RF24-105mm F4 L IS USM'

    def test_security_block(self, result):
        security = result_to_dict(result)['security']

        assert security['privacy_risk'] == 'high'
        assert security['has_gps'] is True
        assert security['has_camera_serial'] is True
        assert security['has_personal_info'] is False
        assert security['warnings'] == ['GPS位置情報が含まれています']

    def test_sensitive_fields_stripped(self, result):
        payload = result_to_dict(result, include_sensitive=False)

        assert payload['gps'] is None
        assert 'serial' not in payload['camera']
        assert 'lens_serial' not in payload['camera']
        assert payload['camera']['model'] == 'Canon EOS R5'
        # The report still says what the file contains
        assert payload['security']['has_gps'] is True

    def test_export_json_omits_sensitive_by_default(self, result):
        text = export_result_json(result)
        payload = json.loads(text)

        assert payload['gps'] is None
        assert '012345678901' not in text
        assert 'GPS位置情報が含まれています' in text  # ensure_ascii=False
        assert text.startswith('{\n  ')

    def test_export_json_with_sensitive(self, result):
        payload = json.loads(export_result_json(result, include_sensitive=True))
        assert payload['gps']['latitude'] == 35.6812
        assert payload['camera']['serial'] == '012345678901'

    def test_no_camera_or_security(self, now):
        result = estimate_from_filename(MetadataSignals(), 'photo.jpg', datetime(2023, 6, 20), now)
        payload = result_to_dict(result)
        assert payload['camera'] is None
        assert payload['security'] is None
