"""
MediVault

A FastAPI-based healthcare records backend for patients, doctors, admins,
pharmacists and lab technicians: authentication, appointment scheduling,
prescriptions, lab test orders, notifications and administrative reporting.
"""

__version__ = "1.0.0"
