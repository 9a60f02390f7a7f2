"""
Enumerations shared by destination adapters.
"""
from enum import Enum


class EntityType(str, Enum):
    DESTINATION = "DESTINATION"
    PARK = "PARK"
    ATTRACTION = "ATTRACTION"
    SHOW = "SHOW"
    RESTAURANT = "RESTAURANT"


class AttractionType(str, Enum):
    RIDE = "RIDE"
    SHOW = "SHOW"
    TRANSPORT = "TRANSPORT"
    PARADE = "PARADE"
    MEET_AND_GREET = "MEET_AND_GREET"
    OTHER = "OTHER"


class StatusType(str, Enum):
    OPERATING = "OPERATING"
    DOWN = "DOWN"
    CLOSED = "CLOSED"
    REFURBISHMENT = "REFURBISHMENT"


class QueueType(str, Enum):
    STANDBY = "STANDBY"
    SINGLE_RIDER = "SINGLE_RIDER"
    RETURN_TIME = "RETURN_TIME"
    PAID_RETURN_TIME = "PAID_RETURN_TIME"
    BOARDING_GROUP = "BOARDING_GROUP"


class ScheduleType(str, Enum):
    OPERATING = "OPERATING"
    TICKETED_EVENT = "TICKETED_EVENT"
    PRIVATE_EVENT = "PRIVATE_EVENT"
    EXTRA_HOURS = "EXTRA_HOURS"
    INFORMATIONAL = "INFORMATIONAL"


class ReturnTimeState(str, Enum):
    AVAILABLE = "AVAILABLE"
    TEMPORARILY_FULL = "TEMP_FULL"
    FINISHED = "FINISHED"
