# app/core/roles.py

import enum


class UserRoleName(str, enum.Enum):
    SUPERADMIN = "superadmin"            # platform staff, full access
    EVENT_ORGANIZER = "event_organizer"
    VENUE_ADMIN = "venue_admin"
    PROMOTER = "promoter"                # granted on first event assignment
    ATTENDEE = "attendee"


class AssignedBy(str, enum.Enum):
    ORGANIZER = "organizer"
    VENUE = "venue"


class CommissionType(str, enum.Enum):
    FLAT_PER_HEAD = "flat_per_head"
    ENHANCED = "enhanced"
