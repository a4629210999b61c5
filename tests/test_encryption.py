"""Tests for the PHI encryption service."""

from cryptography.fernet import Fernet

from medregistry.services.encryption import EncryptionService


def test_encrypt_decrypt_roundtrip():
    svc = EncryptionService()
    original = "Alice Liddell – seasonal influenza"
    encrypted = svc.encrypt(original)

    assert encrypted != original  # not stored in plaintext
    assert svc.decrypt(encrypted) == original


def test_empty_string_passthrough():
    svc = EncryptionService()
    assert svc.encrypt("") == ""
    assert svc.decrypt("") == ""


def test_configured_key_is_shared_across_instances():
    key = Fernet.generate_key().decode()
    ciphertext = EncryptionService(key).encrypt("flu")
    assert EncryptionService(key).decrypt(ciphertext) == "flu"
