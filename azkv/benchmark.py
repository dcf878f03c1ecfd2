"""
Key Vault master key benchmark CLI.

Usage:
    azkv-benchmark

Or run directly:
    python -m azkv.benchmark

Key Vault setup:
    1. Create an RSA key: az keyvault key create --vault-name <vault> --name sops --kty RSA
    2. Set AZKV_KEY_URLS (comma separated key URLs) in the environment or .env file
    3. Authenticate with ``az login`` or AZURE_TENANT_ID / AZURE_CLIENT_ID / AZURE_CLIENT_SECRET

Without AZKV_KEY_URLS the benchmark runs against an in-memory vault.
"""

from __future__ import annotations

import asyncio
import os
import sys
import time
from typing import List

from dotenv import load_dotenv

from azkv.client import InMemoryKeyVault
from azkv.config import load_config
from azkv.errors import KeySourceError
from azkv.logging import configure_logging
from azkv.master_key import AzureKeyVaultMasterKey

IN_MEMORY_VAULT_URL = "https://in-memory.vault.azure.net"


def _rate(count: int, duration: float) -> str:
    return f"{count / duration:.2f}" if duration > 0 else "inf"


async def run_benchmark() -> None:
    """Run the Key Vault master key benchmark."""
    print("=== Key Vault Master Key Benchmark ===\n")

    # Load environment variables
    load_dotenv()
    try:
        config = load_config()
    except KeySourceError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    configure_logging(config.log_level, json=config.log_json)

    key_urls = os.environ.get("AZKV_KEY_URLS", "")
    try:
        if key_urls:
            keys = AzureKeyVaultMasterKey.from_urls(key_urls, config=config)
            print(f"[STARTUP] Using {len(keys)} Key Vault key(s)")
        else:
            vault = InMemoryKeyVault()
            version = vault.create_key(IN_MEMORY_VAULT_URL, "benchmark")
            keys = AzureKeyVaultMasterKey.from_urls(
                f"{IN_MEMORY_VAULT_URL}/keys/benchmark/{version}",
                config=config,
                client_factory=lambda: vault,
            )
            print("[STARTUP] AZKV_KEY_URLS not set, using in-memory vault")
    except KeySourceError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if not keys:
        print("ERROR: AZKV_KEY_URLS did not contain any key URL")
        sys.exit(1)

    # Get test quantity from user
    try:
        user_input = input("Enter number of data keys to wrap (default: 10): ").strip()
        test_quantity = int(user_input) if user_input else 10
    except ValueError:
        test_quantity = 10
    print(f"Testing with {test_quantity} data keys per master key\n")

    print("=" * 70)
    print("                    BENCHMARK START")
    print("=" * 70 + "\n")

    # ========================================================================
    # Demo 1: Wrap data keys
    # ========================================================================
    print("+" + "-" * 68 + "+")
    print(f"|  Demo 1: Wrap {test_quantity} Data Keys" + " " * (45 - len(str(test_quantity))) + "|")
    print("+" + "-" * 68 + "+")

    data_keys: List[bytes] = [os.urandom(32) for _ in range(test_quantity)]
    wrapped: List[List[str]] = [[] for _ in keys]
    failures = 0

    wrap_start = time.perf_counter()
    for data_key in data_keys:
        # Keys are independent authorities, so they are wrapped concurrently
        results = await asyncio.gather(
            *(key.encrypt(data_key) for key in keys), return_exceptions=True
        )
        for idx, (key, result) in enumerate(zip(keys, results)):
            if isinstance(result, KeySourceError):
                failures += 1
                print(f"[ERROR] {key}: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                wrapped[idx].append(key.encrypted_key)
    wrap_duration = time.perf_counter() - wrap_start

    print(f"[OK] Wrapped {test_quantity} data keys with {len(keys)} master key(s), {failures} failure(s)")
    print(f"[PERF] Time: {wrap_duration * 1000:.3f}ms | Rate: {_rate(test_quantity, wrap_duration)} ops/sec\n")

    # ========================================================================
    # Demo 2: Unwrap and verify
    # ========================================================================
    print("+" + "-" * 68 + "+")
    print("|  Demo 2: Unwrap and Verify                                        |")
    print("+" + "-" * 68 + "+")

    verified = 0
    unwrap_count = 0
    unwrap_start = time.perf_counter()
    for idx, key in enumerate(keys):
        if len(wrapped[idx]) != test_quantity:
            print(f"[SKIP] {key}: not every data key was wrapped")
            continue
        for data_key, enc in zip(data_keys, wrapped[idx]):
            key.encrypted_key = enc
            unwrap_count += 1
            try:
                if await key.decrypt() == data_key:
                    verified += 1
            except KeySourceError as e:
                print(f"[ERROR] {key}: {e}")
    unwrap_duration = time.perf_counter() - unwrap_start

    print(f"[OK] {verified}/{unwrap_count} data keys recovered")
    print(f"[PERF] Time: {unwrap_duration * 1000:.3f}ms | Rate: {_rate(unwrap_count, unwrap_duration)} ops/sec\n")

    # ========================================================================
    # Demo 3: Already wrapped keys are left alone
    # ========================================================================
    print("+" + "-" * 68 + "+")
    print("|  Demo 3: Encrypt If Needed                                        |")
    print("+" + "-" * 68 + "+")

    noop_start = time.perf_counter()
    for key in keys:
        before = key.encrypted_key
        await key.encrypt_if_needed(os.urandom(32))
        status = "unchanged" if key.encrypted_key == before else "re-wrapped"
        print(f"  {key.name}/{key.version}: {status}")
    noop_duration = time.perf_counter() - noop_start
    print(f"[PERF] Time: {noop_duration * 1000:.3f}ms\n")

    # ========================================================================
    # Summary
    # ========================================================================
    print("=" * 70)
    print("                    BENCHMARK SUMMARY")
    print("=" * 70 + "\n")

    for key in keys:
        rotation = "needs rotation" if key.needs_rotation() else "fresh"
        print(f"  - {key} ({rotation})")

    print("\nTest Configuration:")
    print(f"  - Data keys per master key: {test_quantity}")
    print("  - Algorithm: RSA-OAEP-256")
    print(f"  - Rotation threshold: {config.rotation_threshold}")

    print("\n" + "=" * 70)
    print("                    BENCHMARK COMPLETE")
    print("=" * 70 + "\n")


def main() -> None:
    """CLI entry point for azkv-benchmark command."""
    asyncio.run(run_benchmark())


if __name__ == "__main__":
    main()
