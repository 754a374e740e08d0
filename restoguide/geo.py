"""
Coordinate validation against Belarus and per-city bounding boxes.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from restoguide.errors import AppError


class Bounds(NamedTuple):
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.min_lat <= latitude <= self.max_lat
            and self.min_lon <= longitude <= self.max_lon
        )


BELARUS_BOUNDS = Bounds(51.0, 56.0, 23.0, 33.0)

CITY_BOUNDS = {
    "Минск": Bounds(53.75, 54.10, 27.30, 27.85),
    "Гродно": Bounds(53.55, 53.78, 23.70, 24.00),
    "Брест": Bounds(51.98, 52.20, 23.55, 23.85),
    "Гомель": Bounds(52.32, 52.52, 30.85, 31.15),
    "Витебск": Bounds(55.10, 55.28, 30.05, 30.35),
    "Могилев": Bounds(53.82, 54.00, 30.20, 30.50),
    "Бобруйск": Bounds(53.08, 53.22, 29.10, 29.40),
}


def city_for_point(latitude: float, longitude: float) -> Optional[str]:
    for city, bounds in CITY_BOUNDS.items():
        if bounds.contains(latitude, longitude):
            return city
    return None


def validate_coordinates(
    latitude: Optional[float], longitude: Optional[float], city: Optional[str] = None
) -> None:
    """
    Check that a point lies in Belarus and, when a city is given, inside that
    city's box. Raises AppError with INVALID_LATITUDE, INVALID_LONGITUDE or
    COORDINATES_CITY_MISMATCH.
    """
    if latitude is None or not (
        BELARUS_BOUNDS.min_lat <= latitude <= BELARUS_BOUNDS.max_lat
    ):
        raise AppError(
            "Latitude must be within Belarus bounds (51.0-56.0)",
            400,
            "INVALID_LATITUDE",
        )
    if longitude is None or not (
        BELARUS_BOUNDS.min_lon <= longitude <= BELARUS_BOUNDS.max_lon
    ):
        raise AppError(
            "Longitude must be within Belarus bounds (23.0-33.0)",
            400,
            "INVALID_LONGITUDE",
        )
    if city:
        bounds = CITY_BOUNDS.get(city)
        if bounds and not bounds.contains(latitude, longitude):
            raise AppError(
                f"Coordinates are outside {city}",
                422,
                "COORDINATES_CITY_MISMATCH",
                {
                    "city": city,
                    "latitude": latitude,
                    "longitude": longitude,
                    "expected_bounds": bounds._asdict(),
                },
            )
