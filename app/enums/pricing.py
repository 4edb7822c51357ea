from enum import Enum


class AppliesTo(str, Enum):
    hotel = "hotel"
    transfer = "transfer"
    activity = "activity"
    package = "package"
    visa = "visa"
    insurance = "insurance"
    flight_fee = "flight_fee"


class RuleType(str, Enum):
    percent = "percent"
    fixed = "fixed"


class VersionStatus(str, Enum):
    draft = "draft"
    active = "active"
    archived = "archived"


class Channel(str, Enum):
    b2c = "b2c"
    agent = "agent"
