# provisioner/errors.py
# -*- coding: utf-8 -*-
"""
Error taxonomy for the provisioner.

Backing operations raise :class:`RepositoryError` carrying a closed
:class:`RepositoryErrorKind`; the processor turns every failure into an
:class:`ErrorRecord` tagged with an :class:`ErrorCategory`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    MISSING_REQUIRED_PARAMETERS = "MissingRequiredParameters"
    INVALID_FILE_FORMAT = "InvalidFileFormat"
    INVALID_MANIFEST_CONTENT = "InvalidManifestContent"
    INVALID_ACTION = "InvalidAction"
    MISSING_MODULE_KEYS = "MissingModuleKeys"
    ADMIN_PRIVILEGES_REQUIRED = "AdminPrivilegesRequired"
    ELEVATION_FAILED = "ElevationFailed"
    DIRECTORY_CREATION_FAILED = "DirectoryCreationFailed"
    MODULE_INSTALLATION_FAILED = "ModuleInstallationFailed"


class ErrorCategory(str, Enum):
    INVALID_ARGUMENT = "InvalidArgument"
    PERMISSION_DENIED = "PermissionDenied"
    WRITE_ERROR = "WriteError"
    SECURITY_ERROR = "SecurityError"
    INVALID_OPERATION = "InvalidOperation"
    CONNECTION_ERROR = "ConnectionError"
    NOT_SPECIFIED = "NotSpecified"


class RepositoryErrorKind(str, Enum):
    """Failure kinds the backing layer is allowed to report."""

    INVALID_ARGUMENT = "invalid_argument"
    PERMISSION_DENIED = "permission_denied"
    WRITE_ERROR = "write_error"
    SECURITY_ERROR = "security_error"
    INVALID_OPERATION = "invalid_operation"
    CONNECTION_ERROR = "connection_error"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RepositoryErrorKind":
        """Parse a kind reported by the backing layer, falling back to UNKNOWN."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


_CATEGORY_BY_REPOSITORY_KIND: Dict[RepositoryErrorKind, ErrorCategory] = {
    RepositoryErrorKind.INVALID_ARGUMENT: ErrorCategory.INVALID_ARGUMENT,
    RepositoryErrorKind.PERMISSION_DENIED: ErrorCategory.PERMISSION_DENIED,
    RepositoryErrorKind.WRITE_ERROR: ErrorCategory.WRITE_ERROR,
    RepositoryErrorKind.SECURITY_ERROR: ErrorCategory.SECURITY_ERROR,
    RepositoryErrorKind.INVALID_OPERATION: ErrorCategory.INVALID_OPERATION,
    RepositoryErrorKind.CONNECTION_ERROR: ErrorCategory.CONNECTION_ERROR,
}


def categorize(kind: Any) -> ErrorCategory:
    """Map a backing-layer failure kind to its category. Total: unknown input yields NOT_SPECIFIED."""
    return _CATEGORY_BY_REPOSITORY_KIND.get(kind, ErrorCategory.NOT_SPECIFIED)


@dataclass(frozen=True)
class ErrorRecord:
    """A reported failure: what went wrong, how it is classified, and what it concerns."""

    kind: ErrorKind
    category: ErrorCategory
    message: str
    exception: Optional[BaseException] = None
    target: Any = None

    @property
    def target_name(self) -> Optional[str]:
        if self.target is None:
            return None
        return str(getattr(self.target, "name", self.target))

    def as_log_extra(self) -> Dict[str, Any]:
        return {
            "error_kind": self.kind.value,
            "error_category": self.category.value,
            "target": self.target_name,
        }


class ProvisioningError(Exception):
    """Batch-level failure; nothing is processed once one of these is raised."""

    def __init__(self, record: ErrorRecord):
        super().__init__(record.message)
        self.record = record

    @classmethod
    def invalid_argument(
        cls,
        kind: ErrorKind,
        message: str,
        target: Any = None,
        exception: Optional[BaseException] = None,
    ) -> "ProvisioningError":
        return cls(
            ErrorRecord(
                kind=kind,
                category=ErrorCategory.INVALID_ARGUMENT,
                message=message,
                exception=exception,
                target=target,
            )
        )


class RepositoryError(Exception):
    """Raised by repository clients when a backing operation fails."""

    def __init__(
        self,
        kind: RepositoryErrorKind,
        message: str,
        native_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.native_type = native_type

    def __str__(self) -> str:
        message = super().__str__()
        if self.native_type:
            return f"{message} ({self.native_type})"
        return message
