"""
Test suite for the MediVault API.

Integration tests drive the FastAPI app through TestClient against SQLite.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
