import math
from datetime import datetime, timedelta, timezone

EARTH_RADIUS_KM = 6371


def utcnow() -> datetime:
    ''' Current time as a naive UTC datetime, the form stored in the database. '''
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_date_aware(d: datetime):
    return d.tzinfo is not None and d.tzinfo.utcoffset(d) is not None


def to_naive_utc(d: datetime) -> datetime:
    if is_date_aware(d):
        return d.astimezone(timezone.utc).replace(tzinfo=None)
    return d


def is_date_passed(d: datetime):
    return utcnow() > to_naive_utc(d)


def add_minutes(d: datetime, minutes: int) -> datetime:
    return d + timedelta(minutes=minutes)


def ranges_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime):
    ''' Half-open ranges [start, end) overlap when each starts before the other ends. '''
    return start_a < end_b and start_b < end_a


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    ''' Great-circle distance in kilometres between two coordinates given in degrees. '''
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlng / 2) ** 2
    )

    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def within_radius(origin_lat: float, origin_lng: float, station, radius_km: float):
    return haversine_km(origin_lat, origin_lng, station.latitude, station.longitude) <= radius_km
