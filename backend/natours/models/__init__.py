"""SQLAlchemy models for Natours.

All models are imported here so that ``Base.metadata`` knows every table
before ``create_all`` runs. If you add a new model, import it in this file.
"""

from natours.models.booking import Booking
from natours.models.review import Review
from natours.models.tour import Tour
from natours.models.user import User

__all__ = [
    "Booking",
    "Review",
    "Tour",
    "User",
]
