"""
Shared fixtures for the kmsenv test suite.
"""

import base64

import pytest

from kmsenv.errors import DecryptionError, EncryptionError
from kmsenv.gateway import KeyManagementGateway


class StubGateway(KeyManagementGateway):
    """
    Reversible fake gateway: encrypt(k, p) == b"ENC(" + p + ")".

    fail_on makes encrypt/decrypt raise for a given plaintext.
    """

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.encrypt_calls = []
        self.decrypt_calls = []

    def encrypt(self, key_id, plaintext):
        self.encrypt_calls.append((key_id, plaintext))
        if plaintext == self.fail_on:
            raise EncryptionError("AccessDeniedException: not allowed")
        return f"ENC({plaintext})".encode("utf-8")

    def decrypt(self, ciphertext):
        self.decrypt_calls.append(ciphertext)
        text = ciphertext.decode("utf-8")
        if not (text.startswith("ENC(") and text.endswith(")")):
            raise DecryptionError("InvalidCiphertextException")
        plaintext = text[4:-1]
        if plaintext == self.fail_on:
            raise DecryptionError("InvalidCiphertextException")
        return plaintext


def secure(plaintext: str) -> str:
    """Marked value as the stub gateway would produce it."""
    return "SECURE:" + base64.b64encode(f"ENC({plaintext})".encode("utf-8")).decode("ascii")


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def env_path(tmp_path):
    return tmp_path / "f.env"


@pytest.fixture
def initialized_path(env_path):
    env_path.write_text("key-123\n", encoding="utf-8")
    return env_path


@pytest.fixture
def isolated_env(monkeypatch, tmp_path):
    """Run with no kmsenv/AWS variables and no config file in cwd."""
    for name in (
        "KMSENV_CONFIG",
        "KMSENV_BACKEND",
        "ENCRYPTION_KEY",
        "AWS_REGION",
        "AWS_DEFAULT_REGION",
        "AWS_PROFILE",
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
