"""Great-circle distances on a spherical Earth."""

import numpy as np

__all__ = ['EARTH_RADIUS_M', 'haversine_distance', 'cumulative_distances']

EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1, lon1, lat2, lon2):
    """Haversine distance in meters between two points (or arrays of points).

    Parameters
    ----------
    lat1, lon1, lat2, lon2 : float or array-like
        Coordinates in decimal degrees. Arrays broadcast against each other.

    Returns
    -------
    float or np.ndarray
        Distance in meters. Identical coordinates give exactly 0.

    Examples
    --------
    >>> round(haversine_distance(48.8566, 2.3522, 45.7640, 4.8357) / 1000)
    392
    """
    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    d_phi = np.radians(np.subtract(lat2, lat1))
    d_lambda = np.radians(np.subtract(lon2, lon1))

    a = np.sin(d_phi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    distance = EARTH_RADIUS_M * c

    if np.ndim(distance) == 0:
        return float(distance)
    return distance


def cumulative_distances(lat, lon) -> np.ndarray:
    """Running along-track distance in meters, starting at 0."""
    lat = np.asarray(lat, dtype=np.float64)
    lon = np.asarray(lon, dtype=np.float64)
    if lat.size == 0:
        return np.zeros(0, dtype=np.float64)

    steps = haversine_distance(lat[:-1], lon[:-1], lat[1:], lon[1:])
    return np.concatenate(([0.0], np.cumsum(steps)))
