"""
Master key interface.

A master key protects the document data key under one trust authority.
Keys from different backends are combined by the caller, so every backend
exposes the same small surface: wrap, unwrap, identity and rotation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional


class MasterKey(ABC):
    """
    Abstract interface for master key backends.

    ``encrypt``, ``encrypt_if_needed`` and ``decrypt`` are the only methods
    that handle plaintext key material.
    """

    @abstractmethod
    async def encrypt(self, data_key: bytes) -> None:
        """Encrypt the data key and store the result on this key."""
        ...

    async def encrypt_if_needed(self, data_key: bytes) -> None:
        """Encrypt the data key unless an encrypted value is already held."""
        if not self.encrypted_data_key():
            await self.encrypt(data_key)

    @abstractmethod
    async def decrypt(self) -> bytes:
        """Decrypt the stored encrypted data key and return it."""
        ...

    @abstractmethod
    def needs_rotation(self, now: Optional[datetime] = None) -> bool:
        """Whether this key is old enough to be replaced."""
        ...

    @abstractmethod
    def to_string(self) -> str:
        """Identity string of this key."""
        ...

    @abstractmethod
    def to_map(self) -> Dict[str, Any]:
        """Record persisted alongside the document."""
        ...

    @abstractmethod
    def encrypted_data_key(self) -> bytes:
        """Return the encrypted data key this master key holds."""
        ...

    @abstractmethod
    def set_encrypted_data_key(self, enc: bytes) -> None:
        """Set the encrypted data key for this master key."""
        ...
