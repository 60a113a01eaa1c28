"""
GPS utilities for distance, speed and coordinate validation.

Pure functions with no side effects.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .models import FraudRisk, GPSFix

EARTH_RADIUS_METERS = 6_371_000

# Accuracy above this is considered unreasonable (10 km)
MAX_REASONABLE_ACCURACY_METERS = 10_000

# Verification method cut-offs (meters)
GPS_METHOD_MAX_ACCURACY = 100
NETWORK_METHOD_MAX_ACCURACY = 1000


@dataclass
class CoordinateValidation:
    """Result of validating a GPS fix."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    normalized: GPSFix | None = None


@dataclass
class LocationVerification:
    """Result of checking a fix against a target radius."""

    is_valid: bool
    distance_meters: float
    accuracy_meters: float
    fraud_risk: FraudRisk
    verification_method: str  # "gps", "network", "manual"


@dataclass(frozen=True)
class ServiceArea:
    """Latitude/longitude bounding box, inclusive on every edge."""

    north: float
    south: float
    east: float
    west: float


# Approximate state outline, Upper Peninsula included
MICHIGAN_SERVICE_AREA = ServiceArea(north=48.2388, south=41.6961, east=-82.1228, west=-90.4186)


def distance_meters(a: GPSFix, b: GPSFix) -> float:
    """
    Great-circle distance between two fixes using the haversine formula.

    Args:
        a: First fix
        b: Second fix

    Returns:
        Distance in meters (0.0 for identical coordinates)
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    delta_lat = math.radians(b.latitude - a.latitude)
    delta_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lon / 2) ** 2
    )
    # Rounding can push h a hair above 1 for antipodal points
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_METERS * c


def speed_meters_per_second(a: GPSFix, b: GPSFix) -> float | None:
    """
    Speed implied by moving from fix `a` to fix `b`.

    Returns:
        Meters per second, or None if either fix has no timestamp or
        `b` was not captured strictly after `a`.
    """
    if a.captured_at is None or b.captured_at is None:
        return None

    elapsed = (b.captured_at - a.captured_at).total_seconds()
    if elapsed <= 0:
        return None

    return distance_meters(a, b) / abs(elapsed)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_coordinate(fix: GPSFix | Mapping[str, Any] | None) -> CoordinateValidation:
    """
    Validate a GPS fix and return a normalized copy when valid.

    Accepts either a GPSFix or a raw mapping (e.g. an untrusted request body)
    so that missing fields are reported rather than raised.

    Args:
        fix: GPS fix to validate

    Returns:
        CoordinateValidation with is_valid, error messages and the
        normalized fix (~1cm precision, whole-meter accuracy)
    """
    if fix is None:
        return CoordinateValidation(is_valid=False, errors=["GPS coordinates are required"])

    if isinstance(fix, Mapping):
        latitude = fix.get("latitude")
        longitude = fix.get("longitude")
        accuracy = fix.get("accuracy_meters")
        captured_at = fix.get("captured_at")
    else:
        latitude = fix.latitude
        longitude = fix.longitude
        accuracy = fix.accuracy_meters
        captured_at = fix.captured_at

    errors = []

    if latitude is None:
        errors.append("Latitude is required")
    if longitude is None:
        errors.append("Longitude is required")
    if errors:
        return CoordinateValidation(is_valid=False, errors=errors)

    if not _is_number(latitude) or not _is_number(longitude):
        return CoordinateValidation(is_valid=False, errors=["Coordinates must be valid numbers"])

    if not math.isfinite(latitude) or not math.isfinite(longitude):
        errors.append("Coordinates must be valid numbers")
    else:
        if latitude < -90 or latitude > 90:
            errors.append("Latitude must be between -90 and 90 degrees")
        if longitude < -180 or longitude > 180:
            errors.append("Longitude must be between -180 and 180 degrees")

    if accuracy is not None:
        if not _is_number(accuracy) or not math.isfinite(accuracy):
            errors.append("GPS accuracy must be a valid number")
        elif accuracy < 0:
            errors.append("GPS accuracy must be a positive number")
        elif accuracy > MAX_REASONABLE_ACCURACY_METERS:
            errors.append("GPS accuracy seems unreasonably high (>10km)")

    if errors:
        return CoordinateValidation(is_valid=False, errors=errors)

    normalized = GPSFix(
        latitude=round(latitude, 8),
        longitude=round(longitude, 8),
        accuracy_meters=round(accuracy) if accuracy is not None else None,
        captured_at=captured_at,
    )
    return CoordinateValidation(is_valid=True, normalized=normalized)


def verify_location_within_radius(
    user_location: GPSFix,
    target: GPSFix,
    radius_meters: float = 100,
) -> LocationVerification:
    """
    Check whether a user's fix lies within `radius_meters` of a target.

    Also classifies how the position was probably obtained (from the reported
    accuracy) and a coarse fraud risk.
    """
    user_check = validate_coordinate(user_location)
    target_check = validate_coordinate(target)
    accuracy = user_location.accuracy_meters

    if not user_check.is_valid or not target_check.is_valid:
        return LocationVerification(
            is_valid=False,
            distance_meters=-1,
            accuracy_meters=accuracy or 0,
            fraud_risk=FraudRisk.HIGH,
            verification_method="manual",
        )

    distance = distance_meters(user_check.normalized, target_check.normalized)

    if accuracy is None or accuracy > NETWORK_METHOD_MAX_ACCURACY:
        method = "manual"
    elif accuracy > GPS_METHOD_MAX_ACCURACY:
        method = "network"
    else:
        method = "gps"

    if method == "manual":
        fraud_risk = FraudRisk.HIGH
    elif accuracy > 50 or distance > radius_meters * 0.8:
        fraud_risk = FraudRisk.MEDIUM
    else:
        fraud_risk = FraudRisk.LOW

    return LocationVerification(
        is_valid=distance <= radius_meters,
        distance_meters=round(distance),
        accuracy_meters=accuracy or 0,
        fraud_risk=fraud_risk,
        verification_method=method,
    )


def format_distance(meters: float) -> str:
    """Human-readable distance: "850m", "1.2km", "15km"."""
    if meters < 1000:
        return f"{round(meters)}m"
    if meters < 10_000:
        return f"{meters / 1000:.1f}km"
    return f"{round(meters / 1000)}km"


def bearing_degrees(a: GPSFix, b: GPSFix) -> int:
    """Initial great-circle bearing from a to b, in whole degrees (0 = north, 90 = east)."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lng = math.radians(b.longitude - a.longitude)

    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    return round(math.degrees(math.atan2(y, x)) + 360) % 360


def is_within_service_area(fix: GPSFix, area: ServiceArea = MICHIGAN_SERVICE_AREA) -> bool:
    return (
        area.south <= fix.latitude <= area.north
        and area.west <= fix.longitude <= area.east
    )
