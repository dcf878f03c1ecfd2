"""
Pytest configuration and fixtures for Key Vault master key tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List, Optional, Tuple

import pytest
from dotenv import load_dotenv

from azkv import (
    AzureKeyVaultMasterKey,
    InMemoryKeyVault,
    KeyVaultClient,
    encode_key,
)

VAULT_URL = "https://vault.example.com"


class StubKeyVault(KeyVaultClient):
    """Scripted client that records calls and returns canned values."""

    def __init__(
        self,
        encrypt_result: str = "CIPHERTEXT",
        decrypt_result: str = "",
        error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
    ) -> None:
        self.encrypt_result = encrypt_result
        self.decrypt_result = decrypt_result
        self.error = error
        self.close_error = close_error
        self.calls: List[Tuple[str, str, str, str, str]] = []
        self.closed = 0

    async def encrypt(self, vault_url: str, name: str, version: str, value: str) -> str:
        self.calls.append(("encrypt", vault_url, name, version, value))
        if self.error is not None:
            raise self.error
        return self.encrypt_result

    async def decrypt(self, vault_url: str, name: str, version: str, value: str) -> str:
        self.calls.append(("decrypt", vault_url, name, version, value))
        if self.error is not None:
            raise self.error
        return self.decrypt_result

    async def close(self) -> None:
        self.closed += 1
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def stub_vault() -> StubKeyVault:
    """Create a stub client returning a fixed ciphertext."""
    return StubKeyVault(decrypt_result=encode_key(b"\x01\x02\x03"))


@pytest.fixture
def stub_key(stub_vault: StubKeyVault) -> AzureKeyVaultMasterKey:
    """Master key wired to the stub client."""
    return AzureKeyVaultMasterKey.from_url(
        f"{VAULT_URL}/keys/my-key/v1", client_factory=lambda: stub_vault
    )


@pytest.fixture
def memory_vault() -> InMemoryKeyVault:
    """Create an in-memory key vault instance for testing."""
    return InMemoryKeyVault()


@pytest.fixture
def memory_key(memory_vault: InMemoryKeyVault) -> AzureKeyVaultMasterKey:
    """Master key backed by a fresh RSA key in the in-memory vault."""
    version = memory_vault.create_key(VAULT_URL, "sops")
    return AzureKeyVaultMasterKey(
        vault_url=VAULT_URL,
        name="sops",
        version=version,
        client_factory=lambda: memory_vault,
    )


@pytest.fixture
def live_key_url() -> str:
    """Key URL of a real Key Vault key for live tests."""
    # Load environment from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(env_path)

    key_url = os.environ.get("AZKV_TEST_KEY_URL")
    if not key_url:
        pytest.skip("AZKV_TEST_KEY_URL not set, skipping Key Vault tests")
    return key_url


def failing_factory(error: Exception) -> Any:
    def factory() -> KeyVaultClient:
        raise error

    return factory
