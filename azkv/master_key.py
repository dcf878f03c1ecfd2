"""
Azure Key Vault master key.

This module provides:
- AzureKeyVaultMasterKey: Reference to an RSA key in Azure Key Vault that
  wraps and unwraps the document data key

Key URL format: ``https://{vault-host}/keys/{key-name}/{key-version}``,
comma separated when several keys are given at once.

Persisted record (field names are a compatibility contract)::

    vaultUrl    https://myvault.vault.azure.net
    key         my-key
    version     3f1b...
    created_at  2024-01-31T12:00:00Z
    enc         <wrapped data key, URL-safe base64>
"""

from __future__ import annotations

import binascii
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple

import structlog

from .client import ClientFactory, KeyVaultClient, new_key_vault_client
from .config import KeySourceConfig
from .encoding import decode_key, encode_key
from .errors import ParseError, UnwrapError, WrapError
from .keys import MasterKey
from .rotation import ROTATION_THRESHOLD, needs_rotation

log = structlog.get_logger(__name__)

KEY_URL_PATTERN = re.compile(r"(https://[^/]+)/keys/([^/]+)/([^/]+)")
VAULT_URL_PATTERN = re.compile(r"https://[^/]+")

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

MAP_FIELDS: Tuple[str, ...] = ("vaultUrl", "key", "version", "created_at", "enc")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_rfc3339(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00").replace("z", "+00:00"))
    except ValueError:
        raise ParseError(f"Could not parse created_at timestamp {value!r}")
    if parsed.tzinfo is None:
        raise ParseError(f"created_at timestamp {value!r} has no UTC offset")
    return parsed.astimezone(timezone.utc)


def _options(
    config: Optional[KeySourceConfig], client_factory: Optional[ClientFactory]
) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    if config is not None:
        options["rotation_threshold"] = config.rotation_threshold
        options["client_factory"] = partial(new_key_vault_client, config)
    if client_factory is not None:
        options["client_factory"] = client_factory
    return options


@dataclass(eq=False)
class AzureKeyVaultMasterKey(MasterKey):
    """
    An Azure Key Vault key used to encrypt and decrypt the data key.

    Two keys are equal when they point at the same vault, key name and
    version; the encrypted data key and creation date are not compared.
    """

    vault_url: str
    name: str
    version: str
    encrypted_key: str = field(default="", repr=False)
    creation_date: datetime = field(default_factory=_utcnow)
    client_factory: ClientFactory = field(default=new_key_vault_client, repr=False)
    rotation_threshold: timedelta = field(default=ROTATION_THRESHOLD, repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ParseError("Key name must not be empty")
        if not VAULT_URL_PATTERN.fullmatch(self.vault_url):
            raise ParseError(f"Invalid vault URL {self.vault_url!r}")
        if self.creation_date.tzinfo is None:
            self.creation_date = self.creation_date.replace(tzinfo=timezone.utc)
        else:
            self.creation_date = self.creation_date.astimezone(timezone.utc)

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @classmethod
    def from_url(
        cls,
        url: str,
        config: Optional[KeySourceConfig] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> AzureKeyVaultMasterKey:
        """
        Create a master key from a Key Vault key URL.

        Args:
            url: ``https://{vault-host}/keys/{name}/{version}``
            config: Optional configuration for credentials and rotation
            client_factory: Optional client factory, overrides ``config``

        Returns:
            New AzureKeyVaultMasterKey with the creation date set to now

        Raises:
            ParseError: If the URL does not have exactly that shape
        """
        match = KEY_URL_PATTERN.fullmatch(url)
        if match is None:
            raise ParseError(f"Could not parse valid key from {url!r}")
        vault_url, name, version = match.groups()
        return cls(
            vault_url=vault_url,
            name=name,
            version=version,
            **_options(config, client_factory),
        )

    @classmethod
    def from_urls(
        cls,
        urls: str,
        config: Optional[KeySourceConfig] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> List[AzureKeyVaultMasterKey]:
        """
        Create master keys from a comma separated list of key URLs.

        Empty segments are skipped. Any malformed segment fails the whole
        call.

        Raises:
            ParseError: If any URL cannot be parsed
        """
        return [
            cls.from_url(url, config=config, client_factory=client_factory)
            for url in urls.split(",")
            if url
        ]

    @classmethod
    def from_map(
        cls,
        record: Mapping[str, Any],
        config: Optional[KeySourceConfig] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> AzureKeyVaultMasterKey:
        """
        Restore a master key from the record produced by ``to_map``.

        Raises:
            ParseError: If a field is missing or malformed
        """
        missing = [name for name in MAP_FIELDS if name not in record]
        if missing:
            raise ParseError(f"Key record is missing fields: {', '.join(missing)}")
        wrong = [
            name
            for name in MAP_FIELDS
            if not isinstance(record[name], str) and not (name == "enc" and record[name] is None)
        ]
        if wrong:
            raise ParseError(f"Key record fields must be strings: {', '.join(wrong)}")
        return cls(
            vault_url=record["vaultUrl"],
            name=record["key"],
            version=record["version"],
            encrypted_key=record["enc"] or "",
            creation_date=_parse_rfc3339(record["created_at"]),
            **_options(config, client_factory),
        )

    @property
    def identity(self) -> Tuple[str, str, str]:
        """The (vault URL, key name, version) triple identifying this key."""
        return (self.vault_url, self.name, self.version)

    def to_string(self) -> str:
        return f"{self.vault_url}/keys/{self.name}/{self.version}"

    def to_map(self) -> Dict[str, Any]:
        return {
            "vaultUrl": self.vault_url,
            "key": self.name,
            "version": self.version,
            "created_at": self.creation_date.astimezone(timezone.utc).strftime(RFC3339_FORMAT),
            "enc": self.encrypted_key,
        }

    def __str__(self) -> str:
        return self.to_string()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AzureKeyVaultMasterKey):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    # -------------------------------------------------------------------------
    # Encrypted data key
    # -------------------------------------------------------------------------

    def encrypted_data_key(self) -> bytes:
        return self.encrypted_key.encode("utf-8", errors="surrogateescape")

    def set_encrypted_data_key(self, enc: bytes) -> None:
        self.encrypted_key = enc.decode("utf-8", errors="surrogateescape")

    @asynccontextmanager
    async def _connect(self, key_log: Any) -> AsyncIterator[KeyVaultClient]:
        """Acquire a client for one operation; a failing close is logged, not raised."""
        client = self.client_factory()
        try:
            yield client
        finally:
            try:
                await client.close()
            except Exception as e:
                key_log.warning("Closing Key Vault client failed", error=str(e))

    async def encrypt(self, data_key: bytes) -> None:
        """
        Encrypt the data key with Key Vault and store the result.

        Always re-encrypts, even when an encrypted value is already held.
        The stored value is untouched if anything fails.

        Raises:
            ClientConstructionError: If no Key Vault client can be created
            WrapError: If the key has no version or the Key Vault call fails
        """
        key_log = log.bind(key=self.name, version=self.version)
        if not self.version:
            # Unpinned keys would be unwrapped by whatever version is current later
            key_log.error("Encryption failed", error="no key version")
            raise WrapError(f"Key {self.name} must pin a version before wrapping a data key")
        async with self._connect(key_log) as client:
            try:
                result = await client.encrypt(
                    self.vault_url, self.name, self.version, encode_key(data_key)
                )
            except Exception as e:
                key_log.error("Encryption failed", error=str(e))
                raise WrapError(
                    f"Failed to encrypt data key with {self.name} version {self.version}: {e}"
                ) from e
        if not result:
            key_log.error("Encryption failed", error="empty ciphertext")
            raise WrapError(
                f"Key Vault returned an empty ciphertext for {self.name} version {self.version}"
            )
        self.encrypted_key = result
        key_log.info("Encryption succeeded")

    async def decrypt(self) -> bytes:
        """
        Decrypt the stored data key with Key Vault.

        Raises:
            ClientConstructionError: If no Key Vault client can be created
            UnwrapError: If nothing is stored, the Key Vault call fails or
                the returned value is not valid base64
        """
        key_log = log.bind(key=self.name, version=self.version)
        if not self.encrypted_key:
            raise UnwrapError(f"No encrypted data key held for {self.name} version {self.version}")
        async with self._connect(key_log) as client:
            try:
                result = await client.decrypt(
                    self.vault_url, self.name, self.version, self.encrypted_key
                )
            except Exception as e:
                key_log.error("Decryption failed", error=str(e))
                raise UnwrapError(
                    f"Error decrypting data key with {self.name} version {self.version}: {e}"
                ) from e
        try:
            plaintext = decode_key(result)
        except binascii.Error as e:
            key_log.error("Decryption failed", error="result is not valid base64")
            raise UnwrapError(
                f"Error decoding data key from {self.name} version {self.version}"
            ) from e
        key_log.info("Decryption succeeded")
        return plaintext

    # -------------------------------------------------------------------------
    # Rotation
    # -------------------------------------------------------------------------

    def needs_rotation(self, now: Optional[datetime] = None) -> bool:
        return needs_rotation(self.creation_date, now, self.rotation_threshold)
