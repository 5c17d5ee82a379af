"""Tests for secure store implementations."""

import os
import stat
import sys
import threading

import pytest

from polarkey.storage import (
    Accessibility,
    FileSecureStore,
    InMemorySecureStore,
    validate_identifier,
)
from polarkey.types import (
    CorruptedItemError,
    IncorrectPassphraseError,
    PasswordRequiredError,
    SecureStoreError,
)


SECRET = bytes(range(32))


@pytest.fixture
def file_store(tmp_path):
    """File store in a temporary directory."""
    return FileSecureStore(passphrase="correct horse", directory=tmp_path / "keys")


class TestIdentifiers:
    """Identifier validation shared by all stores."""

    @pytest.mark.parametrize("identifier", ["polarkey.signing-key", "a", "key_1"])
    def test_valid(self, identifier: str) -> None:
        assert validate_identifier(identifier) == identifier

    @pytest.mark.parametrize("identifier", ["", "..", "a/b", "../escape", "with space"])
    def test_invalid(self, identifier: str) -> None:
        with pytest.raises(ValueError):
            validate_identifier(identifier)


class TestInMemorySecureStore:
    """Tests for the in-memory store."""

    def test_put_get(self) -> None:
        store = InMemorySecureStore()
        store.put("key", SECRET)

        assert store.get("key") == SECRET
        assert store.contains("key")

    def test_missing_returns_none(self) -> None:
        store = InMemorySecureStore()

        assert store.get("key") is None
        assert not store.contains("key")

    def test_put_overwrites(self) -> None:
        store = InMemorySecureStore()
        store.put("key", SECRET)
        store.put("key", b"other")

        assert store.get("key") == b"other"

    def test_delete_is_idempotent(self) -> None:
        store = InMemorySecureStore()
        store.put("key", SECRET)
        store.delete("key")
        store.delete("key")

        assert store.get("key") is None

    def test_records_accessibility(self) -> None:
        store = InMemorySecureStore()
        store.put("key", SECRET, Accessibility.AFTER_FIRST_UNLOCK_THIS_DEVICE_ONLY)

        assert store.accessibility("key") is Accessibility.AFTER_FIRST_UNLOCK_THIS_DEVICE_ONLY

    def test_accessibility_validates_identifier(self) -> None:
        with pytest.raises(ValueError):
            InMemorySecureStore().accessibility("../key")

    def test_returns_copies(self) -> None:
        store = InMemorySecureStore()
        secret = bytearray(SECRET)
        store.put("key", secret)
        secret[0] ^= 0xFF

        assert store.get("key") == SECRET


class TestFileSecureStore:
    """Tests for the passphrase-protected file store."""

    def test_put_get(self, file_store) -> None:
        file_store.put("key", SECRET)

        assert file_store.get("key") == SECRET
        assert file_store.contains("key")
        assert file_store.list_identifiers() == ["key"]

    def test_file_does_not_contain_plaintext(self, file_store) -> None:
        file_store.put("key", SECRET)
        data = (file_store.directory / "key.key").read_bytes()

        assert SECRET not in data
        assert len(data) == 32 + 12 + len(SECRET) + 16

    def test_missing_returns_none(self, file_store) -> None:
        assert file_store.get("key") is None
        assert not file_store.contains("key")
        assert file_store.list_identifiers() == []

    def test_visible_to_another_instance(self, file_store) -> None:
        file_store.put("key", SECRET)
        other = FileSecureStore(passphrase="correct horse", directory=file_store.directory)

        assert other.get("key") == SECRET

    def test_wrong_passphrase(self, file_store) -> None:
        file_store.put("key", SECRET)
        other = FileSecureStore(passphrase="wrong", directory=file_store.directory)

        with pytest.raises(IncorrectPassphraseError):
            other.get("key")
        with pytest.raises(IncorrectPassphraseError):
            other.put("key", b"replacement")

        assert file_store.get("key") == SECRET

    def test_wrong_passphrase_is_not_corruption(self) -> None:
        assert issubclass(IncorrectPassphraseError, SecureStoreError)
        assert not issubclass(IncorrectPassphraseError, CorruptedItemError)

    def test_verifier_written_with_first_item(self, file_store) -> None:
        file_store.put("key", SECRET)
        verifier = file_store.directory / FileSecureStore.VERIFIER_NAME

        assert len(verifier.read_bytes()) == 64
        assert b"correct horse" not in verifier.read_bytes()

    def test_passphrase_change_on_same_instance(self, file_store) -> None:
        file_store.put("key", SECRET)

        file_store.set_passphrase("wrong")
        with pytest.raises(IncorrectPassphraseError):
            file_store.get("key")

        file_store.set_passphrase("correct horse")
        assert file_store.get("key") == SECRET

    def test_malformed_verifier(self, file_store) -> None:
        file_store.put("key", SECRET)
        (file_store.directory / FileSecureStore.VERIFIER_NAME).write_bytes(b"short")
        other = FileSecureStore(passphrase="correct horse", directory=file_store.directory)

        with pytest.raises(SecureStoreError):
            other.get("key")

    def test_shared_instance_across_threads(self, file_store) -> None:
        """Concurrent readers of different items each get their own secret."""
        secrets = {f"key-{i}": bytes([i]) * 32 for i in range(4)}
        for identifier, secret in secrets.items():
            file_store.put(identifier, secret)

        failures = []

        def read(identifier: str) -> None:
            for _ in range(3):
                try:
                    if file_store.get(identifier) != secrets[identifier]:
                        failures.append(identifier)
                except SecureStoreError as e:
                    failures.append(e)

        threads = [threading.Thread(target=read, args=(i,)) for i in secrets]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert failures == []

    def test_truncated_file(self, file_store) -> None:
        file_store.put("key", SECRET)
        path = file_store.directory / "key.key"
        path.write_bytes(path.read_bytes()[:40])

        with pytest.raises(CorruptedItemError):
            file_store.get("key")

    def test_tampered_file(self, file_store) -> None:
        file_store.put("key", SECRET)
        path = file_store.directory / "key.key"
        data = bytearray(path.read_bytes())
        data[-1] ^= 0x01
        path.write_bytes(bytes(data))

        with pytest.raises(CorruptedItemError):
            file_store.get("key")

    def test_item_bound_to_identifier(self, file_store) -> None:
        file_store.put("key", SECRET)
        directory = file_store.directory
        (directory / "key.key").rename(directory / "other.key")

        with pytest.raises(CorruptedItemError):
            file_store.get("other")

    def test_password_required(self, tmp_path) -> None:
        store = FileSecureStore(directory=tmp_path)

        with pytest.raises(PasswordRequiredError):
            store.put("key", SECRET)
        with pytest.raises(PasswordRequiredError):
            store.get("key")

    def test_password_required_is_store_error(self) -> None:
        assert issubclass(PasswordRequiredError, SecureStoreError)
        assert issubclass(CorruptedItemError, SecureStoreError)

    def test_set_and_clear_passphrase(self, tmp_path) -> None:
        store = FileSecureStore(directory=tmp_path)
        store.set_passphrase("secret")
        store.put("key", SECRET)
        assert store.get("key") == SECRET

        store.clear_passphrase()
        with pytest.raises(PasswordRequiredError):
            store.get("key")

    def test_delete(self, file_store) -> None:
        file_store.put("key", SECRET)
        file_store.delete("key")
        file_store.delete("key")

        assert file_store.get("key") is None

    def test_overwrite_leaves_no_temp_files(self, file_store) -> None:
        file_store.put("key", SECRET)
        file_store.put("key", b"replacement")

        assert file_store.get("key") == b"replacement"
        assert sorted(p.name for p in file_store.directory.iterdir()) == [".passphrase", "key.key"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_restrictive_permissions(self, file_store) -> None:
        file_store.put("key", SECRET)

        file_mode = stat.S_IMODE(os.stat(file_store.directory / "key.key").st_mode)
        dir_mode = stat.S_IMODE(os.stat(file_store.directory).st_mode)
        assert file_mode == 0o600
        assert dir_mode == 0o700

    def test_write_failure_surfaces_status(self, tmp_path) -> None:
        blocker = tmp_path / "not-a-directory"
        blocker.write_bytes(b"")
        store = FileSecureStore(passphrase="p", directory=blocker / "keys")

        with pytest.raises(SecureStoreError) as exc_info:
            store.put("key", SECRET)
        assert exc_info.value.status is not None
