"""
Coordinate helpers for the location side of an estimate.

Closed-form conversions between DMS and decimal degrees, display formatting
and compass names; no projection or datum handling.
"""
from typing import Optional
import math

CARDINAL_POINTS = (
    'N', 'NNE', 'NE', 'ENE', 'E', 'ESE', 'SE', 'SSE',
    'S', 'SSW', 'SW', 'WSW', 'W', 'WNW', 'NW', 'NNW',
)


def dms_to_decimal(degrees: float, minutes: float, seconds: float, direction: str = 'N') -> float:
    """Convert degrees/minutes/seconds plus N/S/E/W to signed decimal degrees."""
    decimal = abs(degrees) + minutes / 60 + seconds / 3600
    if direction in ('S', 'W'):
        decimal = -decimal
    return decimal


def decimal_to_dms(decimal: Optional[float], is_latitude: bool = True) -> str:
    """Format decimal degrees as e.g. 35°39'31.20"N. Empty string for None."""
    if decimal is None:
        return ''

    absolute = abs(decimal)
    degrees = math.floor(absolute)
    minutes_float = (absolute - degrees) * 60
    minutes = math.floor(minutes_float)
    seconds = (minutes_float - minutes) * 60

    if is_latitude:
        direction = 'N' if decimal >= 0 else 'S'
    else:
        direction = 'E' if decimal >= 0 else 'W'

    return f"{degrees}°{minutes}'{seconds:.2f}\"{direction}"


def format_coordinates(lat: Optional[float], lng: Optional[float]) -> str:
    """Format a position as DMS plus decimal; 0.0 is a valid coordinate."""
    if lat is None or lng is None:
        return 'GPS情報なし'

    return (
        f"{decimal_to_dms(lat, True)}, {decimal_to_dms(lng, False)}\n"
        f"({lat:.6f}, {lng:.6f})"
    )


def degrees_to_cardinal(degrees: float) -> str:
    """16-point compass name for a bearing."""
    index = int(round((degrees % 360) / 22.5)) % 16
    return CARDINAL_POINTS[index]
