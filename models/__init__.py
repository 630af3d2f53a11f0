from .db import db
from .artist import Artist
from .service import Service, ServiceOnArtist
from .availability import AvailabilityTemplate, AvailabilityOverride
from .booking import Booking
from .audit_log import AuditLog
