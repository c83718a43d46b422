# Models package
from .inventory import Property, RoomType, RatePlan, RoomTypeAvailability, RatePlanRate

__all__ = [
    "Property",
    "RoomType",
    "RatePlan",
    "RoomTypeAvailability",
    "RatePlanRate",
]
