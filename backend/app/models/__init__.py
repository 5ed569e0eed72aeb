# Import models here so Alembic can discover metadata.
from app.models.user import User  # noqa: F401
from app.models.user_role import UserRole  # noqa: F401

# Event graph
from app.models.organizer import Organizer, OrganizerUser  # noqa: F401
from app.models.venue import Venue, VenueUser  # noqa: F401
from app.models.event import Event  # noqa: F401
from app.models.attendee import Attendee  # noqa: F401

# Promoters + assignments
from app.models.promoter import Promoter, PromoterOnboardingSent  # noqa: F401
from app.models.registration import Registration  # noqa: F401
from app.models.event_promoter import EventPromoter  # noqa: F401
from app.models.commission_template import CommissionTemplate  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401
