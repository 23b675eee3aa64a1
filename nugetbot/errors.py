"""Exception types raised by the update engine."""

from pathlib import Path


class NugetBotError(Exception):
    """Base class for all engine errors."""


class ParseError(NugetBotError):
    """A manifest could not be read or is not well-formed XML."""

    def __init__(self, path: Path | str, cause: Exception):
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Failed to parse {self.path}: {cause}")


class NetworkError(NugetBotError):
    """Querying the package index failed for a single package."""

    def __init__(self, package_id: str, message: str):
        self.package_id = package_id
        super().__init__(f"Failed to fetch versions for {package_id}: {message}")


class NotFoundError(NugetBotError):
    """The package id is absent from the file being mutated."""

    def __init__(self, package_id: str, path: Path | str):
        self.package_id = package_id
        self.path = Path(path)
        super().__init__(f"Package '{package_id}' not found in {self.path.name}")


class ValidationError(NugetBotError):
    """A mutated file is no longer a well-formed document."""


class RollbackError(NugetBotError):
    """Restoring a file from its backup failed."""


class ConfigError(NugetBotError):
    """Configuration values are missing or invalid."""


class InputError(NugetBotError):
    """A project path does not point to exactly one project file."""


class BackupError(NugetBotError):
    """A backup could not be created; nothing was modified."""
