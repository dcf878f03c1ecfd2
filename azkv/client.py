"""
Key Vault client adapters.

This module provides:
- KeyVaultClient: Abstract wrap/unwrap capability against a remote key
- AzureKeyVaultClient: Azure Key Vault implementation (RSA-OAEP-256)
- InMemoryKeyVault: Process-local RSA implementation for testing
- new_key_vault_client: Default factory authenticating from the environment

Values passed to and returned by a client are unpadded URL-safe base64
text, matching the Key Vault REST API. Clients are created for a single
operation and closed afterwards; nothing is cached between calls.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog
from azure.identity.aio import ClientSecretCredential, DefaultAzureCredential
from azure.keyvault.keys.crypto import EncryptionAlgorithm
from azure.keyvault.keys.crypto.aio import CryptographyClient
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .config import CONFIG, KeySourceConfig
from .encoding import decode_key, encode_key
from .errors import ClientConstructionError

log = structlog.get_logger(__name__)

RSA_KEY_SIZE: int = 2048


def key_id(vault_url: str, name: str, version: str) -> str:
    """Key identifier URL, omitting the version segment when it is empty."""
    base = f"{vault_url}/keys/{name}"
    return f"{base}/{version}" if version else base


class KeyVaultClient(ABC):
    """
    Remote wrap/unwrap capability.

    Implementations are async context managers so per-call transports and
    credentials are released when the operation finishes.
    """

    @abstractmethod
    async def encrypt(self, vault_url: str, name: str, version: str, value: str) -> str:
        """Wrap ``value`` with the given key and return the ciphertext text."""
        ...

    @abstractmethod
    async def decrypt(self, vault_url: str, name: str, version: str, value: str) -> str:
        """Unwrap ciphertext text with the given key and return the plaintext text."""
        ...

    async def close(self) -> None:
        """Release any resources held by the client."""
        return None

    async def __aenter__(self) -> KeyVaultClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


ClientFactory = Callable[[], KeyVaultClient]


class AzureKeyVaultClient(KeyVaultClient):
    """Azure Key Vault client using RSA-OAEP-256 key operations."""

    algorithm = EncryptionAlgorithm.rsa_oaep_256

    def __init__(self, credential: Any) -> None:
        self._credential = credential

    @property
    def credential(self) -> Any:
        """Credential used to authenticate Key Vault requests."""
        return self._credential

    async def encrypt(self, vault_url: str, name: str, version: str, value: str) -> str:
        async with CryptographyClient(key_id(vault_url, name, version), self._credential) as crypto:
            result = await crypto.encrypt(self.algorithm, decode_key(value))
        return encode_key(result.ciphertext)

    async def decrypt(self, vault_url: str, name: str, version: str, value: str) -> str:
        async with CryptographyClient(key_id(vault_url, name, version), self._credential) as crypto:
            result = await crypto.decrypt(self.algorithm, decode_key(value))
        return encode_key(result.plaintext)

    async def close(self) -> None:
        await self._credential.close()


def new_key_vault_client(config: Optional[KeySourceConfig] = None) -> AzureKeyVaultClient:
    """
    Create an Azure Key Vault client authenticated from the environment.

    A configured service principal secret is used when present, otherwise
    the default credential chain (environment, workload identity, managed
    identity, Azure CLI).

    Raises:
        ClientConstructionError: If no credential can be created
    """
    config = config or CONFIG
    try:
        if config.has_client_secret:
            credential = ClientSecretCredential(
                tenant_id=config.tenant_id,
                client_id=config.client_id,
                client_secret=config.client_secret,
            )
        else:
            credential = DefaultAzureCredential()
    except Exception as e:
        log.error("Failed to create Azure credential", error=str(e))
        raise ClientConstructionError(f"Failed to create Azure credential: {e}") from e
    return AzureKeyVaultClient(credential)


class InMemoryKeyVault(KeyVaultClient):
    """
    Process-local key vault for testing and offline development.

    Holds RSA key pairs per vault, key name and version and performs real
    RSA-OAEP-SHA256. An empty version selects the newest version of a key.
    Uses asyncio.Lock for safe concurrent access.
    """

    def __init__(self) -> None:
        self._keys: Dict[Tuple[str, str], Dict[str, rsa.RSAPrivateKey]] = {}
        self._latest: Dict[Tuple[str, str], str] = {}
        self._lock = asyncio.Lock()
        self.operations: List[Tuple[str, str, str]] = []

    def create_key(self, vault_url: str, name: str, version: Optional[str] = None) -> str:
        """Create a new key version and return its version id."""
        version = version or uuid.uuid4().hex
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_SIZE)
        self._keys.setdefault((vault_url, name), {})[version] = private_key
        self._latest[(vault_url, name)] = version
        return version

    def _get(self, vault_url: str, name: str, version: str) -> rsa.RSAPrivateKey:
        versions = self._keys.get((vault_url, name))
        if not versions:
            raise LookupError(f"key {name} not found in {vault_url}")
        version = version or self._latest[(vault_url, name)]
        if version not in versions:
            raise LookupError(f"key {name} has no version {version}")
        return versions[version]

    @staticmethod
    def _padding() -> padding.OAEP:
        return padding.OAEP(
            mgf=padding.MGF1(algorithm=hashes.SHA256()),
            algorithm=hashes.SHA256(),
            label=None,
        )

    async def encrypt(self, vault_url: str, name: str, version: str, value: str) -> str:
        async with self._lock:
            self.operations.append(("encrypt", name, version))
            private_key = self._get(vault_url, name, version)
        return encode_key(private_key.public_key().encrypt(decode_key(value), self._padding()))

    async def decrypt(self, vault_url: str, name: str, version: str, value: str) -> str:
        async with self._lock:
            self.operations.append(("decrypt", name, version))
            private_key = self._get(vault_url, name, version)
        return encode_key(private_key.decrypt(decode_key(value), self._padding()))


__all__ = [
    "AzureKeyVaultClient",
    "ClientFactory",
    "InMemoryKeyVault",
    "KeyVaultClient",
    "key_id",
    "new_key_vault_client",
]
