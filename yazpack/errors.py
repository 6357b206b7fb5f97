"""Exception hierarchy for yazpack."""

from __future__ import annotations


class YazError(Exception):
    """Base exception for package operations."""

    pass


# -----------------------------------------------------------------------------
# Preconditions
# -----------------------------------------------------------------------------


class DestinationExistsError(YazError, FileExistsError):
    """Raised when a pack/unpack target must be absent but already exists."""

    def __init__(self, path: str) -> None:
        super().__init__(f"destination {path} already exists")
        self.path = path


class PathEscapeError(YazError, ValueError):
    """Raised when a relative name resolves outside the package root."""

    def __init__(self, name: str, root: str) -> None:
        super().__init__(f"path {name!r} escapes package root {root}")
        self.name = name
        self.root = root


# -----------------------------------------------------------------------------
# Container format
# -----------------------------------------------------------------------------


class FormatError(YazError):
    """Raised when a container stream cannot be decoded."""

    pass


class UnsupportedEntryError(FormatError):
    """Raised for entries that are neither directories nor regular files."""

    def __init__(self, name: str, entry_type: bytes) -> None:
        super().__init__(f"unknown type {entry_type!r} in {name}")
        self.name = name
        self.entry_type = entry_type


# -----------------------------------------------------------------------------
# Cipher
# -----------------------------------------------------------------------------


class CipherError(YazError):
    """Raised when encryption or decryption fails."""

    pass


# -----------------------------------------------------------------------------
# Capabilities
# -----------------------------------------------------------------------------


class CapabilityError(YazError):
    """Raised when an operation is not supported by the package filesystem."""

    pass


class ReadOnlyError(CapabilityError):
    """Raised on any write or remove against an opened package."""

    def __init__(self, operation: str, name: str) -> None:
        super().__init__(f"{operation} {name!r}: yaz is a read only filesystem")
        self.operation = operation
        self.name = name


class WatchNotSupportedError(CapabilityError):
    """Raised when change notification is requested."""

    def __init__(self) -> None:
        super().__init__("yaz does not support watch")
