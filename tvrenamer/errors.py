"""Exception types raised by the tvrenamer package."""
from enum import Enum


class LookupFailure(Enum):
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    MALFORMED = "malformed"


class FilesystemFailure(Enum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    OTHER = "other"


class TVRenamerError(Exception):
    """Base class for all tvrenamer errors."""
    pass


class ConfigError(TVRenamerError):
    """Configuration or credentials could not be loaded."""
    pass


class AuthError(TVRenamerError):
    """Credentials were rejected or the session could not be refreshed.

    Unrecoverable without new credentials; aborts the whole run.
    """
    pass


class MetadataLookupError(TVRenamerError):
    """A series or episode lookup did not produce records."""

    def __init__(self, kind: LookupFailure, message: str = ""):
        self.kind = kind
        super().__init__(message or kind.value)

    @property
    def is_not_found(self) -> bool:
        return self.kind is LookupFailure.NOT_FOUND


class FilesystemError(TVRenamerError):
    """A rename or delete failed on disk."""

    def __init__(self, kind: FilesystemFailure, message: str = ""):
        self.kind = kind
        super().__init__(message or kind.value)

    @classmethod
    def from_os_error(cls, error: OSError) -> "FilesystemError":
        if isinstance(error, FileNotFoundError):
            kind = FilesystemFailure.NOT_FOUND
        elif isinstance(error, PermissionError):
            kind = FilesystemFailure.PERMISSION_DENIED
        else:
            kind = FilesystemFailure.OTHER
        return cls(kind, str(error))
