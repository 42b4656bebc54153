"""
Test suite for PatientHub.

Contains unit tests for the storage, cache and HDS services and API tests
driven through FastAPI's TestClient.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
