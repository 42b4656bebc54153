"""
Domain exceptions.

HTTP-facing authentication errors stay in ``core.security``; everything
raised by the storage layer and the HDS compliance services derives from
``PatientHubError`` and is mapped to a status code in ``main``.
"""


class PatientHubError(Exception):
    """Base class for all PatientHub domain errors."""

    status_code = 500

    def __init__(self, message="", details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageError(PatientHubError):
    """A local storage backend failed to read or write."""


class LocalStorageUnavailable(StorageError):
    status_code = 503


class EncryptionError(StorageError):
    """A payload could not be encrypted or decrypted."""


class MigrationInProgressError(PatientHubError):
    status_code = 409


class HDSComplianceError(PatientHubError):
    """Sensitive data is still present where it must not be."""


class HDSSecurityViolation(PatientHubError):
    """HDS-classified data was routed to cloud storage."""

    status_code = 403


class HDSAccessBlocked(PatientHubError):
    """The cloud table was blocked after migration."""

    status_code = 403

    def __init__(self, table_name):
        super().__init__(
            f"Access to {table_name} is blocked: data is held in local HDS storage",
            {"table": table_name},
        )
        self.table_name = table_name


class DemoSessionError(PatientHubError):
    status_code = 404
