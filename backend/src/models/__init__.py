# Package initialization
# Import all models to ensure relationships are properly established
from .clinic import Clinic
from .user import User
from .user_clinic_association import UserClinicAssociation
from .contact import Contact
from .appointment import Appointment

__all__ = [
    "Clinic",
    "User",
    "UserClinicAssociation",
    "Contact",
    "Appointment",
]
