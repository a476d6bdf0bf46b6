"""Exceptions raised by miglock."""


class MiglockError(Exception):
    """Base class for miglock errors."""


class ExtractionError(MiglockError):
    """Migration source could not be read into operations."""

    def __init__(self, message: str, file_name: str = ""):
        self.file_name = file_name
        super().__init__(f"{file_name}: {message}" if file_name else message)


class UnsupportedDialectError(MiglockError):
    """No extractor is registered for the requested dialect."""


class ConfigError(MiglockError, ValueError):
    """Configuration file is missing, unsupported or invalid."""
