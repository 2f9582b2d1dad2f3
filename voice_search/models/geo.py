"""
Geographic region model used to scope business search results.
"""

from typing import Tuple

from pydantic import BaseModel, Field, model_validator

from voice_search.config.constants import (
    REGION_CENTER_LATITUDE,
    REGION_CENTER_LONGITUDE,
    REGION_EAST,
    REGION_NAME,
    REGION_NORTH,
    REGION_SOUTH,
    REGION_WEST,
)


class GeoBounds(BaseModel):
    """Rectangular latitude/longitude region with a designated center point."""

    name: str = Field(REGION_NAME, description="Human readable region name")
    north: float = REGION_NORTH
    south: float = REGION_SOUTH
    east: float = REGION_EAST
    west: float = REGION_WEST
    center_latitude: float = REGION_CENTER_LATITUDE
    center_longitude: float = REGION_CENTER_LONGITUDE

    @model_validator(mode="after")
    def validate_extent(self):
        """Reject inverted boxes."""
        if self.south > self.north:
            raise ValueError("south bound must not exceed north bound")
        if self.west > self.east:
            raise ValueError("west bound must not exceed east bound")
        return self

    def contains(self, latitude: float, longitude: float) -> bool:
        """Inclusive bounding-box membership test."""
        return (
            self.south <= latitude <= self.north
            and self.west <= longitude <= self.east
        )

    @property
    def center(self) -> Tuple[float, float]:
        return self.center_latitude, self.center_longitude
