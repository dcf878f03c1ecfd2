"""
Exception classes for master key operations.

Every error is local to a single master key so callers holding several
independent keys can fall back to the next one.
"""

from __future__ import annotations


class KeySourceError(Exception):
    """Base exception for all master key operations."""

    pass


class ParseError(KeySourceError):
    """A key URL, URL list or persisted record could not be parsed."""

    pass


class ClientConstructionError(KeySourceError):
    """An authenticated Key Vault client could not be created."""

    pass


class WrapError(KeySourceError):
    """Encrypting the data key with Key Vault failed."""

    pass


class UnwrapError(KeySourceError):
    """Decrypting the data key with Key Vault failed."""

    pass


class ConfigError(KeySourceError):
    """Configuration error."""

    pass
