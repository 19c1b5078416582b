from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when the process is started without a usable configuration."""


# PUBLIC_INTERFACE
class StorageError(Exception):
    """
    Raised by task stores when the underlying database fails.

    A missing task is never a StorageError: stores report it by returning
    None (get/update) or False (delete) so handlers can answer 404.
    """

    def __init__(self, message: str, *, operation: str) -> None:
        super().__init__(message)
        self.operation = operation
