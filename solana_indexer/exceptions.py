"""Indexer exceptions."""


class IndexerError(Exception):
    """Base exception for indexer errors."""
    pass


class ConfigError(IndexerError, ValueError):
    """Raised when the indexer configuration is invalid."""
    pass


class StorageError(IndexerError):
    """Raised when a storage adapter fails to connect, save or disconnect."""
    pass


class InvalidFilterError(IndexerError, ValueError):
    """Raised when a query filter holds an unsupported key or value."""
    pass


class ProcessorError(IndexerError):
    """Raised when a processor step fails on a record."""

    def __init__(self, step_name: str, original: Exception):
        super().__init__(f"Processor {step_name} failed: {original}")
        self.step_name = step_name
        self.original = original
