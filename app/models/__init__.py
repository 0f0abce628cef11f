from .user import User
from .patient import Patient
from .doctor import Doctor
from .staff import Pharmacist, LabTechnician
from .appointment import Appointment, AppointmentStatus
from .prescription import Prescription, PrescriptionItem, PrescriptionStatus
from .lab_test import LabTest, LabTestStatus, LabTestPriority
from .notification import Notification

__all__ = [
    "User",
    "Patient",
    "Doctor",
    "Pharmacist",
    "LabTechnician",
    "Appointment",
    "AppointmentStatus",
    "Prescription",
    "PrescriptionItem",
    "PrescriptionStatus",
    "LabTest",
    "LabTestStatus",
    "LabTestPriority",
    "Notification",
]
