"""
Tests for key URL parsing, persisted records and rotation.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from azkv import (
    AzureKeyVaultMasterKey,
    KeySourceConfig,
    MasterKey,
    ParseError,
    ROTATION_THRESHOLD,
    needs_rotation,
)

KEY_URL = "https://vault.example.com/keys/my-key/v1"
OTHER_URL = "https://other.vault.azure.net/keys/sops/0123456789abcdef"


class TestFromUrl:
    def test_parses_components(self) -> None:
        key = AzureKeyVaultMasterKey.from_url(KEY_URL)
        assert key.vault_url == "https://vault.example.com"
        assert key.name == "my-key"
        assert key.version == "v1"
        assert key.encrypted_key == ""

    def test_sets_creation_date_to_now(self) -> None:
        before = datetime.now(timezone.utc)
        key = AzureKeyVaultMasterKey.from_url(KEY_URL)
        after = datetime.now(timezone.utc)
        assert before <= key.creation_date <= after
        assert key.creation_date.tzinfo is not None

    @pytest.mark.parametrize("url", [KEY_URL, OTHER_URL])
    def test_to_string_round_trip(self, url: str) -> None:
        assert AzureKeyVaultMasterKey.from_url(url).to_string() == url
        assert str(AzureKeyVaultMasterKey.from_url(url)) == url

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "https://vault.example.com/keys/my-key",
            "https://vault.example.com/keys/my-key/",
            "https://vault.example.com/keys/my-key/v1/",
            "https://vault.example.com/keys/my-key/v1/extra",
            "https://vault.example.com//keys/my-key/v1",
            "http://vault.example.com/keys/my-key/v1",
            "vault.example.com/keys/my-key/v1",
            "https://vault.example.com/secrets/my-key/v1",
            "https:///keys/my-key/v1",
        ],
    )
    def test_rejects_malformed_urls(self, url: str) -> None:
        with pytest.raises(ParseError):
            AzureKeyVaultMasterKey.from_url(url)

    def test_config_sets_rotation_threshold(self) -> None:
        config = KeySourceConfig(rotation_threshold=timedelta(hours=1))
        key = AzureKeyVaultMasterKey.from_url(KEY_URL, config=config)
        assert key.rotation_threshold == timedelta(hours=1)


class TestFromUrls:
    def test_empty_input(self) -> None:
        assert AzureKeyVaultMasterKey.from_urls("") == []

    def test_preserves_order(self) -> None:
        keys = AzureKeyVaultMasterKey.from_urls(f"{KEY_URL},{OTHER_URL}")
        assert [k.to_string() for k in keys] == [KEY_URL, OTHER_URL]

    def test_skips_empty_segments(self) -> None:
        keys = AzureKeyVaultMasterKey.from_urls(f"{KEY_URL},,{OTHER_URL},")
        assert [k.to_string() for k in keys] == [KEY_URL, OTHER_URL]

    def test_one_bad_segment_fails_everything(self) -> None:
        with pytest.raises(ParseError):
            AzureKeyVaultMasterKey.from_urls(f"{KEY_URL},not-a-url,{OTHER_URL}")

    def test_whitespace_is_not_stripped(self) -> None:
        with pytest.raises(ParseError):
            AzureKeyVaultMasterKey.from_urls(f"{KEY_URL}, {OTHER_URL}")


class TestConstruction:
    def test_is_a_master_key(self) -> None:
        assert isinstance(AzureKeyVaultMasterKey.from_url(KEY_URL), MasterKey)

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ParseError):
            AzureKeyVaultMasterKey(vault_url="https://vault.example.com", name="", version="v1")

    def test_invalid_vault_url_rejected(self) -> None:
        with pytest.raises(ParseError):
            AzureKeyVaultMasterKey(vault_url="vault.example.com", name="k", version="v1")

    def test_naive_creation_date_is_utc(self) -> None:
        key = AzureKeyVaultMasterKey(
            vault_url="https://vault.example.com",
            name="k",
            version="v1",
            creation_date=datetime(2024, 1, 31, 12, 0, 0),
        )
        assert key.creation_date == datetime(2024, 1, 31, 12, 0, 0, tzinfo=timezone.utc)

    def test_equality_ignores_encrypted_key_and_date(self) -> None:
        a = AzureKeyVaultMasterKey.from_url(KEY_URL)
        b = AzureKeyVaultMasterKey.from_url(KEY_URL)
        b.encrypted_key = "something"
        b.creation_date = datetime(2000, 1, 1, tzinfo=timezone.utc)
        assert a == b
        assert len({a, b}) == 1
        assert a != AzureKeyVaultMasterKey.from_url(OTHER_URL)

    def test_repr_hides_encrypted_key(self) -> None:
        key = AzureKeyVaultMasterKey.from_url(KEY_URL)
        key.encrypted_key = "SECRET-CIPHERTEXT"
        assert "SECRET-CIPHERTEXT" not in repr(key)

    def test_encrypted_data_key_accessors(self) -> None:
        key = AzureKeyVaultMasterKey.from_url(KEY_URL)
        assert key.encrypted_data_key() == b""
        key.set_encrypted_data_key(b"abc_-123")
        assert key.encrypted_key == "abc_-123"
        assert key.encrypted_data_key() == b"abc_-123"

    def test_encrypted_data_key_accepts_any_bytes(self) -> None:
        key = AzureKeyVaultMasterKey.from_url(KEY_URL)
        key.set_encrypted_data_key(b"\xff\xfe")
        assert key.encrypted_data_key() == b"\xff\xfe"


class TestToMap:
    def test_fields_and_order(self) -> None:
        key = AzureKeyVaultMasterKey(
            vault_url="https://vault.example.com",
            name="my-key",
            version="v1",
            encrypted_key="CIPHERTEXT",
            creation_date=datetime(2024, 1, 31, 12, 30, 45, 123456, tzinfo=timezone.utc),
        )
        record = key.to_map()
        assert list(record) == ["vaultUrl", "key", "version", "created_at", "enc"]
        assert record == {
            "vaultUrl": "https://vault.example.com",
            "key": "my-key",
            "version": "v1",
            "created_at": "2024-01-31T12:30:45Z",
            "enc": "CIPHERTEXT",
        }

    def test_empty_enc_allowed(self) -> None:
        assert AzureKeyVaultMasterKey.from_url(KEY_URL).to_map()["enc"] == ""

    def test_created_at_converted_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        key = AzureKeyVaultMasterKey(
            vault_url="https://vault.example.com",
            name="k",
            version="v1",
            creation_date=datetime(2024, 1, 31, 14, 0, 0, tzinfo=plus_two),
        )
        assert key.to_map()["created_at"] == "2024-01-31T12:00:00Z"

    def test_from_map_round_trip(self) -> None:
        key = AzureKeyVaultMasterKey.from_url(KEY_URL)
        key.encrypted_key = "CIPHERTEXT"
        restored = AzureKeyVaultMasterKey.from_map(key.to_map())
        assert restored == key
        assert restored.encrypted_key == "CIPHERTEXT"
        assert restored.creation_date == key.creation_date.replace(microsecond=0)
        assert restored.to_map() == key.to_map()

    def test_from_map_accepts_offsets(self) -> None:
        record = AzureKeyVaultMasterKey.from_url(KEY_URL).to_map()
        record["created_at"] = "2024-01-31T14:00:00+02:00"
        restored = AzureKeyVaultMasterKey.from_map(record)
        assert restored.creation_date == datetime(2024, 1, 31, 12, 0, 0, tzinfo=timezone.utc)

    def test_from_map_missing_field(self) -> None:
        record = AzureKeyVaultMasterKey.from_url(KEY_URL).to_map()
        del record["version"]
        with pytest.raises(ParseError):
            AzureKeyVaultMasterKey.from_map(record)

    @pytest.mark.parametrize("created_at", ["yesterday", "2024-01-31T12:00:00"])
    def test_from_map_bad_timestamp(self, created_at: str) -> None:
        record = AzureKeyVaultMasterKey.from_url(KEY_URL).to_map()
        record["created_at"] = created_at
        with pytest.raises(ParseError):
            AzureKeyVaultMasterKey.from_map(record)


class TestRotation:
    def test_fresh_key_does_not_need_rotation(self) -> None:
        assert not AzureKeyVaultMasterKey.from_url(KEY_URL).needs_rotation()

    def test_old_key_needs_rotation(self) -> None:
        key = AzureKeyVaultMasterKey.from_url(KEY_URL)
        key.creation_date = datetime.now(timezone.utc) - timedelta(days=200)
        assert key.needs_rotation()

    def test_boundary_is_exclusive(self) -> None:
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert not needs_rotation(created, created + ROTATION_THRESHOLD)
        assert needs_rotation(created, created + ROTATION_THRESHOLD + timedelta(seconds=1))

    def test_default_threshold_is_six_months(self) -> None:
        assert ROTATION_THRESHOLD == timedelta(days=180)

    def test_custom_threshold(self) -> None:
        key = AzureKeyVaultMasterKey.from_url(KEY_URL)
        key.rotation_threshold = timedelta(hours=1)
        now = key.creation_date + timedelta(hours=2)
        assert key.needs_rotation(now)
        assert not key.needs_rotation(key.creation_date + timedelta(minutes=30))


@pytest.mark.parametrize("field", ["vaultUrl", "key", "version", "created_at"])
@pytest.mark.parametrize("value", [None, 1])
def test_from_map_rejects_non_string_fields(field: str, value: object) -> None:
    record = AzureKeyVaultMasterKey.from_url(KEY_URL).to_map()
    record[field] = value
    with pytest.raises(ParseError):
        AzureKeyVaultMasterKey.from_map(record)


def test_from_map_null_enc_is_unwrapped() -> None:
    record = AzureKeyVaultMasterKey.from_url(KEY_URL).to_map()
    record["enc"] = None
    assert AzureKeyVaultMasterKey.from_map(record).encrypted_key == ""
