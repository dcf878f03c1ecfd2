"""
Azure Key Vault master keys for envelope encryption.

A document is encrypted with a random data key; the data key is then
wrapped by one or more master keys so any of them can recover it. This
package implements the Azure Key Vault master key: an RSA key held in Key
Vault that wraps and unwraps the data key with RSA-OAEP-256.

Quick Start
-----------
```python
import asyncio
import os
from azkv import AzureKeyVaultMasterKey

async def main():
    keys = AzureKeyVaultMasterKey.from_urls(
        "https://myvault.vault.azure.net/keys/sops/0123456789abcdef"
    )
    data_key = os.urandom(32)

    for key in keys:
        await key.encrypt_if_needed(data_key)
    records = [key.to_map() for key in keys]

    # Later, from the persisted records
    key = AzureKeyVaultMasterKey.from_map(records[0])
    assert await key.decrypt() == data_key

asyncio.run(main())
```

Credentials are resolved per operation from the environment
(``AZURE_TENANT_ID``, ``AZURE_CLIENT_ID``, ``AZURE_CLIENT_SECRET``, managed
identity or the Azure CLI login).
"""

__version__ = "0.1.0"

# =============================================================================
# Master Key Exports
# =============================================================================

from .keys import MasterKey
from .master_key import AzureKeyVaultMasterKey
from .rotation import ROTATION_THRESHOLD, needs_rotation

# =============================================================================
# Client Exports
# =============================================================================

from .client import (
    AzureKeyVaultClient,
    ClientFactory,
    InMemoryKeyVault,
    KeyVaultClient,
    new_key_vault_client,
)
from .encoding import decode_key, encode_key

# =============================================================================
# Config / Logging Exports
# =============================================================================

from .config import CONFIG, KeySourceConfig, load_config
from .logging import configure_logging

# =============================================================================
# Error Exports
# =============================================================================

from .errors import (
    ClientConstructionError,
    ConfigError,
    KeySourceError,
    ParseError,
    UnwrapError,
    WrapError,
)

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Version
    "__version__",
    # Master keys
    "MasterKey",
    "AzureKeyVaultMasterKey",
    "ROTATION_THRESHOLD",
    "needs_rotation",
    # Clients
    "KeyVaultClient",
    "ClientFactory",
    "AzureKeyVaultClient",
    "InMemoryKeyVault",
    "new_key_vault_client",
    "encode_key",
    "decode_key",
    # Config / logging
    "CONFIG",
    "KeySourceConfig",
    "load_config",
    "configure_logging",
    # Errors
    "KeySourceError",
    "ParseError",
    "ClientConstructionError",
    "WrapError",
    "UnwrapError",
    "ConfigError",
]
