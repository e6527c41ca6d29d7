"""Error types raised by repofleet operations."""

from __future__ import annotations


class RepofleetError(Exception):
    """Base class for every error repofleet raises on purpose."""

    code = "INTERNAL_ERROR"
    label = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.label}: {self.message}"

    def to_dict(self) -> dict[str, str]:
        """Serializable shape for the command layer."""
        return {"code": self.code, "message": str(self)}


class NotFound(RepofleetError):
    """A scan root or stored record does not exist."""

    code = "NOT_FOUND"
    label = "Not found"


class NotADirectory(RepofleetError):
    """A scan root exists but is not a directory."""

    code = "NOT_A_DIRECTORY"
    label = "Not a directory"


class ScanError(RepofleetError):
    """A working tree could not be opened or introspected."""

    code = "SCAN_ERROR"
    label = "Scan error"


class InternalError(RepofleetError):
    """An invariant was violated."""

    code = "INTERNAL_ERROR"
    label = "Internal error"


class StoreError(RepofleetError):
    """The SQLite store failed."""

    code = "DATABASE_ERROR"
    label = "Database error"


class ConfigError(RepofleetError):
    """Configuration input could not be used."""

    code = "CONFIG_ERROR"
    label = "Configuration error"
