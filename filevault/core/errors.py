# filevault/core/errors.py
"""
Error types raised by the registry and blob store.

Each carries the HTTP status the routes translate it into.
"""


class FileVaultError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FileVaultError):
    """Unknown file name, or a token that is not currently public."""
    status_code = 404


class InvalidNameError(FileVaultError):
    """Empty name, or one that would escape the upload root."""
    status_code = 400


class TooLargeError(FileVaultError):
    status_code = 413


class StorageError(FileVaultError):
    """Any failure of the underlying filesystem."""
    status_code = 500


class UnavailableRandomnessError(StorageError):
    status_code = 503
